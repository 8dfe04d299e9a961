from .cart import CartLine, CartSnapshot, CartPricingRequest
from .tax import TaxType, TaxBreakdown, LineTaxBreakdown, TaxQuoteResult
from .campaign import (
    CampaignRuleSpec, CampaignActionSpec, MalformedRule,
    AppliedCampaign, NearestCampaign, CampaignEvaluation, CampaignQuoteResult,
)

__all__ = [
    "CartLine", "CartSnapshot", "CartPricingRequest",
    "TaxType", "TaxBreakdown", "LineTaxBreakdown", "TaxQuoteResult",
    "CampaignRuleSpec", "CampaignActionSpec", "MalformedRule",
    "AppliedCampaign", "NearestCampaign", "CampaignEvaluation", "CampaignQuoteResult",
]
