import pytest
from datetime import timedelta, timezone
from decimal import Decimal
from app.core.errors import PricingValidationError
from app.models.campaign import CampaignStatus, EffectiveStatus, ApplyType, DiscountType, AppliesTo
from app.schemas.campaign import MalformedRule
from app.schemas.cart import CartLine
from app.services.campaigns import (
    evaluate_campaigns,
    effective_status,
    select_best_campaign,
    calculate_discount,
)
from conftest import NOW, line, cart, rule, action, campaign


def test_highest_priority_wins():
    snapshot = cart(line(1, "200", 3))
    by_items = campaign(1, priority=5, rules=[rule("min_items", count=3)], actions=[action("flat", "100")])
    by_value = campaign(2, priority=10, rules=[rule("min_cart_value", amount="500")],
                        actions=[action("percentage", "10")])

    result = evaluate_campaigns(snapshot, [by_items, by_value], NOW)

    assert result.applied.campaign_id == 2
    assert result.applied.discount == Decimal("60.00")
    assert result.nearest is None


def test_percentage_discount_respects_cap():
    snapshot = cart(line(1, "1000", 1))
    big = campaign(1, rules=[rule("min_cart_value", amount="500")],
                   actions=[action("percentage", "20", max_discount="100")])

    result = evaluate_campaigns(snapshot, [big], NOW)

    assert result.applied.discount == Decimal("100.00")
    assert result.applied.discount_type == DiscountType.PERCENTAGE


def test_nearest_reports_items_needed():
    snapshot = cart(line(1, "100", 2))
    five = campaign(1, rules=[rule("min_items", count=5)])

    result = evaluate_campaigns(snapshot, [five], NOW)

    assert result.applied is None
    assert result.nearest.campaign_id == 1
    assert result.nearest.items_needed == 3
    assert result.nearest.amount_needed is None


def test_nearest_reports_amount_needed():
    snapshot = cart(line(1, "120.50", 2))
    five_hundred = campaign(1, rules=[rule("min_cart_value", amount="500")])

    result = evaluate_campaigns(snapshot, [five_hundred], NOW)

    assert result.nearest.amount_needed == Decimal("259.00")


def test_nearest_prefers_smallest_relative_shortfall():
    snapshot = cart(line(1, "100", 4))
    items = campaign(1, priority=50, rules=[rule("min_items", count=10)])
    value = campaign(2, priority=1, rules=[rule("min_cart_value", amount="500")])

    result = evaluate_campaigns(snapshot, [items, value], NOW)

    assert result.nearest.campaign_id == 2
    assert result.nearest.amount_needed == Decimal("100.00")


def test_nearest_requires_exactly_one_unmet_threshold():
    snapshot = cart(line(1, "100", 1))
    two_unmet = campaign(1, rules=[rule("min_items", count=3), rule("min_cart_value", amount="1000")])
    category_unmet = campaign(2, rules=[rule("category", category_id=99)])

    result = evaluate_campaigns(snapshot, [two_unmet, category_unmet], NOW)

    assert result.applied is None
    assert result.nearest is None


def test_equal_priority_goes_to_earliest_created():
    older = campaign(7, priority=3, created_at=NOW - timedelta(days=30), rules=[rule("min_items", count=1)])
    newer = campaign(2, priority=3, created_at=NOW - timedelta(days=1), rules=[rule("min_items", count=1)])

    assert select_best_campaign([newer, older]).id == 7


def test_equal_priority_and_created_at_goes_to_lowest_id():
    first = campaign(3, priority=3, rules=[rule("min_items", count=1)])
    second = campaign(4, priority=3, rules=[rule("min_items", count=1)])

    result = evaluate_campaigns(cart(line(1, "10", 1)), [second, first], NOW)

    assert result.applied.campaign_id == 3


def test_evaluation_is_idempotent():
    snapshot = cart(line(1, "99.99", 3), line(2, "10", 1, category_id=2))
    campaigns = [
        campaign(1, priority=1, rules=[rule("category", category_id=2)], actions=[action("percentage", "15")]),
        campaign(2, priority=1, rules=[rule("min_items", count=10)]),
    ]

    first = evaluate_campaigns(snapshot, campaigns, NOW)
    second = evaluate_campaigns(snapshot, campaigns, NOW)

    assert first == second


def test_all_rules_must_match():
    snapshot = cart(line(1, "600", 1))
    both = campaign(1, rules=[rule("min_cart_value", amount="500"), rule("min_items", count=2)])

    result = evaluate_campaigns(snapshot, [both], NOW)

    assert result.applied is None
    assert result.nearest.items_needed == 1


@pytest.mark.parametrize("kwargs,expected", [
    ({}, EffectiveStatus.ACTIVE),
    ({"status": CampaignStatus.DRAFT}, EffectiveStatus.DRAFT),
    ({"status": CampaignStatus.INACTIVE}, EffectiveStatus.INACTIVE),
    ({"start_at": NOW + timedelta(hours=1)}, EffectiveStatus.SCHEDULED),
    ({"end_at": NOW - timedelta(seconds=1)}, EffectiveStatus.EXPIRED),
    ({"end_at": None}, EffectiveStatus.ACTIVE),
    ({"start_at": NOW, "end_at": NOW}, EffectiveStatus.ACTIVE),
])
def test_effective_status(kwargs, expected):
    assert effective_status(campaign(1, **kwargs), NOW) == expected


@pytest.mark.parametrize("kwargs", [
    {"status": CampaignStatus.DRAFT},
    {"status": CampaignStatus.INACTIVE},
    {"start_at": NOW + timedelta(days=1)},
    {"end_at": NOW - timedelta(days=1)},
    {"apply_type": ApplyType.COUPON},
])
def test_ineligible_campaigns_never_apply(kwargs):
    blocked = campaign(1, rules=[rule("min_items", count=1)], **kwargs)

    result = evaluate_campaigns(cart(line(1, "10", 1)), [blocked], NOW)

    assert result.applied is None
    assert result.nearest is None


def test_timezone_aware_now_is_normalised():
    live = campaign(1, rules=[rule("min_items", count=1)])
    aware_now = (NOW + timedelta(hours=5, minutes=30)).replace(tzinfo=timezone(timedelta(hours=5, minutes=30)))

    result = evaluate_campaigns(cart(line(1, "10", 1)), [live], aware_now)

    assert result.applied.campaign_id == 1


def test_campaign_without_rules_or_actions_never_matches():
    snapshot = cart(line(1, "100", 5))
    no_rules = campaign(1, priority=9, rules=[])
    no_actions = campaign(2, priority=8, rules=[rule("min_items", count=1)], actions=[])

    result = evaluate_campaigns(snapshot, [no_rules, no_actions], NOW)

    assert result.applied is None


def test_malformed_rule_blocks_campaign():
    broken = campaign(1, priority=9, rules=[
        rule("min_items", count=1),
        MalformedRule(rule_type="min_items", value={}, reason="count missing"),
    ])
    fallback = campaign(2, priority=1, rules=[rule("min_items", count=1)])

    result = evaluate_campaigns(cart(line(1, "10", 1)), [broken, fallback], NOW)

    assert result.applied.campaign_id == 2


def test_collection_lookup_is_used_and_failures_do_not_raise():
    summer = campaign(1, rules=[rule("collection", collection_id=5)])
    snapshot = cart(line(1, "10", 1))

    hit = evaluate_campaigns(snapshot, [summer], NOW, collection_lookup=lambda product_id: [5])

    def broken(product_id):
        raise ConnectionError("catalog down")

    miss = evaluate_campaigns(snapshot, [summer], NOW, collection_lookup=broken)

    assert hit.applied.campaign_id == 1
    assert miss.applied is None


def test_empty_cart_and_empty_campaigns():
    live = campaign(1, rules=[rule("min_items", count=1)])

    assert evaluate_campaigns(cart(), [live], NOW).applied is None
    assert evaluate_campaigns(cart(line(1, "10", 1)), [], NOW).applied is None


def test_invalid_line_raises():
    bad = CartLine.model_construct(product_id=1, quantity=0, unit_price=Decimal("10"))

    with pytest.raises(PricingValidationError):
        evaluate_campaigns(cart().model_copy(update={"items": [bad]}), [], NOW)


def test_flat_discount_never_exceeds_subtotal():
    discount, item_discounts = calculate_discount(action("flat", "500"), cart(line(1, "120", 2)))

    assert discount == Decimal("240.00")
    assert item_discounts is None


def test_percentage_without_cap():
    discount, _ = calculate_discount(action("percentage", "12.5"), cart(line(1, "99.99", 1)))

    assert discount == Decimal("12.50")


def test_items_mode_discounts_each_line():
    snapshot = cart(line(1, "100", 2, id="a"), line(2, "30", 1))

    discount, item_discounts = calculate_discount(action("flat", "40", applies_to="items"), snapshot)

    assert item_discounts == {"a": Decimal("80.00"), "2": Decimal("30.00")}
    assert discount == Decimal("110.00")


def test_items_mode_percentage_cap_is_per_unit():
    snapshot = cart(line(1, "1000", 2))

    discount, item_discounts = calculate_discount(
        action("percentage", "50", max_discount="100", applies_to="items"), snapshot,
    )

    assert discount == Decimal("200.00")
    assert item_discounts == {"1": Decimal("200.00")}


def test_items_mode_reported_on_applied_campaign():
    snapshot = cart(line(1, "100", 1))
    per_item = campaign(1, rules=[rule("product", product_id=1)], actions=[action("flat", "10", applies_to="items")])

    result = evaluate_campaigns(snapshot, [per_item], NOW)

    assert result.applied.applies_to == AppliesTo.ITEMS
    assert result.applied.item_discounts == {"1": Decimal("10.00")}


def test_items_mode_line_discounts_add_up_to_total():
    snapshot = cart(line(1, "3.33", 1, id="a"), line(2, "3.33", 1, id="b"), line(3, "3.33", 1, id="c"))

    discount, item_discounts = calculate_discount(action("percentage", "10", applies_to="items"), snapshot)

    assert discount == Decimal("1.00")
    assert sum(item_discounts.values()) == discount


def test_items_mode_lines_sharing_a_key_are_summed():
    snapshot = cart(line(1, "50", 1), line(1, "50", 1))

    discount, item_discounts = calculate_discount(action("flat", "10", applies_to="items"), snapshot)

    assert discount == Decimal("20.00")
    assert item_discounts == {"1": Decimal("20.00")}


def test_items_mode_capped_discount_still_adds_up():
    snapshot = cart(line(1, "1.01", 3, id="a"), line(2, "2.02", 1, id="b"))

    discount, item_discounts = calculate_discount(action("flat", "500", applies_to="items"), snapshot)

    assert discount == Decimal("5.05")
    assert item_discounts == {"a": Decimal("3.03"), "b": Decimal("2.02")}
    assert sum(item_discounts.values()) == discount
