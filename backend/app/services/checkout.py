"""
Cart pricing entry points for the storefront.

Loads reference data once per call, runs the pure evaluators and turns
every failure into an explicit result so the storefront can fall back to
"price calculated at checkout" instead of blocking.
"""
import logging
from datetime import datetime
from functools import partial
from typing import Optional, List
from sqlmodel import Session
from app.core.errors import PricingValidationError, DataUnavailableError
from app.schemas.cart import CartLine, CartSnapshot, CartPricingRequest
from app.schemas.campaign import CampaignQuoteResult
from app.schemas.tax import TaxQuoteResult, TaxSettingsSummary
from app.services import repository
from app.services.campaigns import evaluate_campaigns
from app.services.tax import calculate_tax, tax_display_lines

logger = logging.getLogger(__name__)

VALIDATION_ERROR = "validation"
DATA_UNAVAILABLE = "data_unavailable"


def enrich_lines(db: Session, lines: List[CartLine]) -> List[CartLine]:
    """
    Category and collections come from the catalog for known products.

    Client-sent values are kept only for products the catalog does not know.
    """
    enriched = []
    for line in lines:
        placement = repository.get_product_category_and_collection(db, line.product_id)
        if placement is None:
            enriched.append(line)
            continue

        if line.category_id not in (None, placement.category_id):
            logger.info(
                "Ignoring client category %s for product %s (catalog: %s)",
                line.category_id, line.product_id, placement.category_id,
            )

        enriched.append(line.model_copy(update={
            "category_id": placement.category_id,
            "collection_ids": sorted(placement.collection_ids),
        }))
    return enriched


def price_cart_tax(db: Session, request: CartPricingRequest) -> TaxQuoteResult:
    """Tax breakdown for the cart, as a success/failure result"""
    try:
        items = enrich_lines(db, request.items)
        tax_settings = repository.get_tax_settings(db)
        category_rates = repository.get_category_tax_rules(db)
        product_rates = repository.get_product_tax_rules(db)

        breakdown = calculate_tax(
            items,
            request.customer_state,
            tax_settings,
            category_rates,
            product_rates,
        )
    except PricingValidationError as exc:
        return TaxQuoteResult(success=False, error=str(exc), error_type=VALIDATION_ERROR)
    except DataUnavailableError as exc:
        logger.error("Tax calculation unavailable: %s", exc)
        return TaxQuoteResult(success=False, error=str(exc), error_type=DATA_UNAVAILABLE)

    return TaxQuoteResult(
        success=True,
        tax_breakdown=breakdown,
        tax_settings=TaxSettingsSummary(
            tax_enabled=tax_settings.tax_enabled,
            price_includes_tax=tax_settings.price_includes_tax,
            default_gst_rate=tax_settings.default_gst_rate,
            store_state=tax_settings.store_state,
        ),
        display_lines=tax_display_lines(breakdown),
    )


def evaluate_cart_campaigns(
    db: Session,
    request: CartPricingRequest,
    now: Optional[datetime] = None,
) -> CampaignQuoteResult:
    """Best campaign (or nearest one) for the cart, as a success/failure result"""
    if not request.items:
        return CampaignQuoteResult(success=True)

    now = now or datetime.utcnow()

    try:
        cart = CartSnapshot(items=enrich_lines(db, request.items))
        campaigns = repository.get_active_campaigns(db, now)
        evaluation = evaluate_campaigns(
            cart,
            campaigns,
            now,
            collection_lookup=partial(repository.get_collection_ids, db),
        )
    except PricingValidationError as exc:
        return CampaignQuoteResult(success=False, error=str(exc), error_type=VALIDATION_ERROR)
    except DataUnavailableError as exc:
        logger.error("Campaign evaluation unavailable: %s", exc)
        return CampaignQuoteResult(success=False, error=str(exc), error_type=DATA_UNAVAILABLE)

    return CampaignQuoteResult(
        success=True,
        applied_campaign=evaluation.applied,
        nearest_campaign=evaluation.nearest,
    )
