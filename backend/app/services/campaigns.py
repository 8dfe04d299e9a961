import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Tuple
from app.models.campaign import CampaignStatus, EffectiveStatus, ApplyType, DiscountType, AppliesTo
from app.schemas.cart import CartSnapshot, ensure_valid_lines
from app.schemas.common import as_naive_utc
from app.schemas.campaign import (
    CampaignActionSpec,
    AppliedCampaign,
    NearestCampaign,
    CampaignEvaluation,
)
from app.services.campaign_rules import RuleSpec, CollectionLookup, evaluate_rule, rule_shortfall
from app.services.tax import money, allocate

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class CampaignDefinition:
    """Campaign with parsed rules/actions, as the evaluator sees it"""
    id: int
    name: str
    status: CampaignStatus
    priority: int
    start_at: datetime
    end_at: Optional[datetime] = None
    apply_type: ApplyType = ApplyType.AUTO
    created_at: datetime = field(default_factory=lambda: datetime(1970, 1, 1))
    rules: List[RuleSpec] = field(default_factory=list)
    actions: List[CampaignActionSpec] = field(default_factory=list)


def effective_status(campaign, now: datetime) -> EffectiveStatus:
    """Expiry is derived from the window, never stored"""
    if campaign.status == CampaignStatus.DRAFT:
        return EffectiveStatus.DRAFT
    if campaign.status != CampaignStatus.ACTIVE:
        return EffectiveStatus.INACTIVE

    now = as_naive_utc(now)
    if as_naive_utc(campaign.start_at) > now:
        return EffectiveStatus.SCHEDULED
    if campaign.end_at is not None and as_naive_utc(campaign.end_at) < now:
        return EffectiveStatus.EXPIRED
    return EffectiveStatus.ACTIVE


def is_eligible(campaign, now: datetime) -> bool:
    return effective_status(campaign, now) == EffectiveStatus.ACTIVE


def campaign_matches(
    campaign: CampaignDefinition,
    cart: CartSnapshot,
    collection_lookup: Optional[CollectionLookup] = None,
) -> bool:
    """All rules must match (AND); campaigns without rules or actions never match"""
    if not campaign.rules or not campaign.actions:
        return False
    return all(evaluate_rule(rule, cart, collection_lookup) for rule in campaign.rules)


def _precedence(campaign: CampaignDefinition) -> Tuple:
    return (-campaign.priority, as_naive_utc(campaign.created_at), campaign.id)


def select_best_campaign(campaigns: List[CampaignDefinition]) -> Optional[CampaignDefinition]:
    """
    Highest priority wins; equal priority goes to the earliest created,
    then to the lowest id.
    """
    if not campaigns:
        return None
    return min(campaigns, key=_precedence)


def calculate_discount(action: CampaignActionSpec, cart: CartSnapshot) -> Tuple[Decimal, Optional[Dict[str, Decimal]]]:
    """Return (total discount, per-line discounts for items mode)"""
    subtotal = cart.subtotal

    if action.applies_to == AppliesTo.ITEMS:
        raw = []

        for line in cart.items:
            if action.discount_type == DiscountType.FLAT:
                line_discount = action.discount_value * line.quantity
            else:
                line_discount = line.line_total * action.discount_value / 100
                if action.max_discount is not None:
                    line_discount = min(line_discount, action.max_discount * line.quantity)

            # Never more than the line itself
            raw.append(min(line_discount, line.line_total))

        total = sum(raw, ZERO)
        capped = min(total, subtotal)
        if total > capped:
            raw = [part * capped / total for part in raw]

        discount = money(capped)
        item_discounts = {}
        for line, amount in zip(cart.items, allocate(discount, raw)):
            item_discounts[line.key] = item_discounts.get(line.key, ZERO) + amount

        return discount, item_discounts

    if action.discount_type == DiscountType.FLAT:
        discount = action.discount_value
    else:
        discount = subtotal * action.discount_value / 100
        if action.max_discount is not None:
            discount = min(discount, action.max_discount)

    return money(min(discount, subtotal)), None


def find_nearest_campaign(
    campaigns: List[CampaignDefinition],
    cart: CartSnapshot,
    collection_lookup: Optional[CollectionLookup] = None,
) -> Optional[NearestCampaign]:
    """
    Campaign the cart is one threshold away from, for "add N more" prompts.

    Only campaigns whose single unmet rule is a min_items / min_cart_value
    threshold qualify. The smallest relative shortfall wins.
    """
    candidates = []

    for campaign in campaigns:
        if not campaign.rules or not campaign.actions:
            continue

        unmet = [rule for rule in campaign.rules if not evaluate_rule(rule, cart, collection_lookup)]
        if len(unmet) != 1:
            continue

        shortfall = rule_shortfall(unmet[0], cart)
        if shortfall is None:
            continue

        kind, needed, target = shortfall
        candidates.append((needed / target, _precedence(campaign), campaign, kind, needed))

    if not candidates:
        return None

    _, _, campaign, kind, needed = min(candidates, key=lambda c: (c[0], c[1]))

    if kind == "items":
        return NearestCampaign(
            campaign_id=campaign.id,
            name=campaign.name,
            priority=campaign.priority,
            items_needed=int(needed),
        )
    return NearestCampaign(
        campaign_id=campaign.id,
        name=campaign.name,
        priority=campaign.priority,
        amount_needed=money(needed),
    )


def evaluate_campaigns(
    cart: CartSnapshot,
    campaigns: List[CampaignDefinition],
    now: datetime,
    collection_lookup: Optional[CollectionLookup] = None,
) -> CampaignEvaluation:
    """
    Pick the single best campaign for the cart.

    Pure: the same cart and campaign set always give the same result.
    Raises PricingValidationError only for invalid cart lines.
    """
    ensure_valid_lines(cart.items)

    if not cart.items:
        return CampaignEvaluation()

    # Coupon campaigns are redeemed by code, not evaluated automatically
    eligible = [c for c in campaigns if c.apply_type == ApplyType.AUTO and is_eligible(c, now)]
    if not eligible:
        return CampaignEvaluation()

    matching = [c for c in eligible if campaign_matches(c, cart, collection_lookup)]
    best = select_best_campaign(matching)

    if best is None:
        nearest = find_nearest_campaign(eligible, cart, collection_lookup)
        if nearest:
            logger.info("No campaign matched, nearest is %s (%s)", nearest.campaign_id, nearest.name)
        return CampaignEvaluation(nearest=nearest)

    # One action per campaign is applied
    action = best.actions[0]
    discount, item_discounts = calculate_discount(action, cart)

    logger.info(
        "Applied campaign %s (%s), priority %s, discount %s",
        best.id, best.name, best.priority, discount,
    )

    return CampaignEvaluation(
        applied=AppliedCampaign(
            campaign_id=best.id,
            name=best.name,
            discount_type=action.discount_type,
            discount=discount,
            applies_to=action.applies_to,
            item_discounts=item_discounts,
        )
    )
