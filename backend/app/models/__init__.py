from .category import Category
from .collection import Collection, ProductCollection
from .product import Product
from .tax import TaxSettings, CategoryTaxRule, ProductTaxRule
from .campaign import (
    Campaign, CampaignRule, CampaignAction,
    CampaignStatus, EffectiveStatus, ApplyType,
    RuleOperator, DiscountType, AppliesTo,
)

__all__ = [
    "Category",
    "Collection", "ProductCollection",
    "Product",
    "TaxSettings", "CategoryTaxRule", "ProductTaxRule",
    "Campaign", "CampaignRule", "CampaignAction",
    "CampaignStatus", "EffectiveStatus", "ApplyType",
    "RuleOperator", "DiscountType", "AppliesTo",
]
