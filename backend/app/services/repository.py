"""Read access to pricing reference data"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Set
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select
from app.core.config import settings as app_settings
from app.core.errors import DataUnavailableError
from app.models.campaign import Campaign, CampaignStatus, ApplyType
from app.models.collection import ProductCollection
from app.models.product import Product
from app.models.tax import TaxSettings, CategoryTaxRule, ProductTaxRule
from app.schemas.campaign import CampaignActionSpec
from app.services.campaign_rules import parse_rule
from app.schemas.common import as_naive_utc
from app.services.campaigns import CampaignDefinition

logger = logging.getLogger(__name__)


@dataclass
class ProductPlacement:
    category_id: Optional[int] = None
    collection_ids: Set[int] = field(default_factory=set)


def get_tax_settings(db: Session) -> TaxSettings:
    """Singleton row; created with configured defaults on first read"""
    try:
        tax_settings = db.exec(select(TaxSettings).order_by(TaxSettings.id)).first()
        if tax_settings:
            return tax_settings

        tax_settings = TaxSettings(
            tax_enabled=True,
            price_includes_tax=app_settings.DEFAULT_PRICE_INCLUDES_TAX,
            default_gst_rate=app_settings.DEFAULT_GST_RATE,
            store_state=app_settings.DEFAULT_STORE_STATE,
            gstin=app_settings.DEFAULT_GSTIN,
        )
        db.add(tax_settings)
        db.commit()
        db.refresh(tax_settings)
        logger.info("Created default tax settings for %s", tax_settings.store_state)
        return tax_settings
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to load tax settings: %s", exc)
        raise DataUnavailableError("Tax settings unavailable") from exc


def get_category_tax_rules(db: Session) -> Dict[int, Decimal]:
    try:
        rules = db.exec(select(CategoryTaxRule)).all()
    except SQLAlchemyError as exc:
        logger.error("Failed to load category tax rules: %s", exc)
        raise DataUnavailableError("Category tax rules unavailable") from exc
    return {rule.category_id: Decimal(rule.gst_rate) for rule in rules}


def get_product_tax_rules(db: Session) -> Dict[int, Decimal]:
    try:
        rules = db.exec(select(ProductTaxRule)).all()
    except SQLAlchemyError as exc:
        logger.error("Failed to load product tax rules: %s", exc)
        raise DataUnavailableError("Product tax rules unavailable") from exc
    return {rule.product_id: Decimal(rule.gst_rate) for rule in rules}


def parse_action(action) -> Optional[CampaignActionSpec]:
    try:
        return CampaignActionSpec.model_validate(action)
    except ValidationError as exc:
        logger.warning("Skipping malformed action %s: %s", action.id, exc.errors()[0]["msg"])
        return None


def to_definition(campaign: Campaign) -> CampaignDefinition:
    """ORM campaign -> evaluator input; malformed rules are kept as never-matching"""
    return CampaignDefinition(
        id=campaign.id,
        name=campaign.name,
        status=campaign.status,
        priority=campaign.priority,
        start_at=campaign.start_at,
        end_at=campaign.end_at,
        apply_type=campaign.apply_type,
        created_at=campaign.created_at,
        rules=[parse_rule(rule.rule_type, rule.operator, rule.value) for rule in campaign.rules],
        actions=[
            spec for spec in (
                parse_action(action) for action in sorted(campaign.actions, key=lambda a: a.id or 0)
            )
            if spec is not None
        ],
    )


def get_active_campaigns(db: Session, now: Optional[datetime] = None) -> List[CampaignDefinition]:
    """Active auto campaigns whose window contains now, highest priority first"""
    now = as_naive_utc(now or datetime.utcnow())

    stmt = select(Campaign).where(
        Campaign.status == CampaignStatus.ACTIVE,
        Campaign.apply_type == ApplyType.AUTO,
        Campaign.start_at <= now,
        (Campaign.end_at == None) | (Campaign.end_at >= now),
    ).order_by(Campaign.priority.desc(), Campaign.created_at, Campaign.id)

    try:
        campaigns = db.exec(stmt).all()
        definitions = [to_definition(campaign) for campaign in campaigns]
    except SQLAlchemyError as exc:
        logger.error("Failed to load active campaigns: %s", exc)
        raise DataUnavailableError("Campaigns unavailable") from exc

    logger.debug("Loaded %d active campaigns", len(definitions))
    return definitions


def get_collection_ids(db: Session, product_id: int) -> Set[int]:
    try:
        rows = db.exec(
            select(ProductCollection.collection_id).where(ProductCollection.product_id == product_id)
        ).all()
    except SQLAlchemyError as exc:
        raise DataUnavailableError(f"Collections unavailable for product {product_id}") from exc
    return set(rows)


def get_product_category_and_collection(db: Session, product_id: int) -> Optional[ProductPlacement]:
    """Category and collections of a catalog product, None if unknown"""
    try:
        product = db.get(Product, product_id)
    except SQLAlchemyError as exc:
        raise DataUnavailableError(f"Product {product_id} unavailable") from exc

    if not product:
        return None

    return ProductPlacement(
        category_id=product.category_id,
        collection_ids=get_collection_ids(db, product_id),
    )
