import logging
import operator as op
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional, Tuple, Union
from pydantic import ValidationError
from app.models.campaign import RuleOperator
from app.schemas.cart import CartSnapshot
from app.schemas.campaign import (
    rule_adapter,
    MalformedRule,
    MinItemsRule,
    MinCartValueRule,
    CategoryRule,
    CollectionRule,
    ProductRule,
)

logger = logging.getLogger(__name__)

# product_id -> collection ids
CollectionLookup = Callable[[int], Iterable[int]]

RuleSpec = Union[MinItemsRule, MinCartValueRule, CategoryRule, CollectionRule, ProductRule, MalformedRule]

COMPARATORS = {
    RuleOperator.GTE: op.ge,
    RuleOperator.GT: op.gt,
    RuleOperator.EQ: op.eq,
    RuleOperator.LT: op.lt,
    RuleOperator.LTE: op.le,
}


def parse_rule(rule_type: Optional[str], operator: Optional[str], value: Any) -> RuleSpec:
    """Validate a stored rule row; invalid rows become MalformedRule"""
    payload = {"rule_type": rule_type, "value": value}
    if operator:
        payload["operator"] = operator

    try:
        return rule_adapter.validate_python(payload)
    except ValidationError as exc:
        logger.warning("Malformed campaign rule %s %r: %s", rule_type, value, exc.errors()[0]["msg"])
        return MalformedRule(
            rule_type=rule_type,
            operator=operator,
            value=value,
            reason=str(exc.errors()[0]["msg"]),
        )


def compare(actual, operator: RuleOperator, expected) -> bool:
    comparator = COMPARATORS.get(operator)
    if comparator is None:
        return False
    return comparator(actual, expected)


def evaluate_min_items(rule: MinItemsRule, cart: CartSnapshot, collection_lookup=None) -> bool:
    return compare(cart.item_count, rule.operator, rule.value.count)


def evaluate_min_cart_value(rule: MinCartValueRule, cart: CartSnapshot, collection_lookup=None) -> bool:
    return compare(cart.subtotal, rule.operator, rule.value.amount)


def evaluate_category(rule: CategoryRule, cart: CartSnapshot, collection_lookup=None) -> bool:
    target = rule.value.category_id
    return any(line.category_id == target for line in cart.items)


def evaluate_product(rule: ProductRule, cart: CartSnapshot, collection_lookup=None) -> bool:
    target = rule.value.product_id
    return any(line.product_id == target for line in cart.items)


def evaluate_collection(
    rule: CollectionRule,
    cart: CartSnapshot,
    collection_lookup: Optional[CollectionLookup] = None,
) -> bool:
    """Line membership from the line itself, else from the catalog lookup"""
    target = rule.value.collection_id

    for line in cart.items:
        if target in line.collection_ids:
            return True

    if collection_lookup is None:
        return False

    try:
        for line in cart.items:
            if target in set(collection_lookup(line.product_id)):
                return True
    except Exception:
        logger.warning("Collection lookup failed for rule collection %s", target, exc_info=True)
        return False

    return False


RULE_EVALUATORS = {
    MinItemsRule: evaluate_min_items,
    MinCartValueRule: evaluate_min_cart_value,
    CategoryRule: evaluate_category,
    CollectionRule: evaluate_collection,
    ProductRule: evaluate_product,
}


def evaluate_rule(
    rule: RuleSpec,
    cart: CartSnapshot,
    collection_lookup: Optional[CollectionLookup] = None,
) -> bool:
    """Route to the evaluator for the rule type; unknown rules never match"""
    evaluator = RULE_EVALUATORS.get(type(rule))
    if evaluator is None:
        return False
    return evaluator(rule, cart, collection_lookup)


def rule_shortfall(rule: RuleSpec, cart: CartSnapshot) -> Optional[Tuple[str, Decimal, Decimal]]:
    """
    How far the cart is from meeting a threshold rule.

    Returns (kind, shortfall, target) with kind "items" or "amount" and
    target the smallest value that satisfies the rule, or None when the
    rule is met or cannot be closed by adding to the cart.
    """
    if isinstance(rule, MinItemsRule):
        kind, actual, threshold = "items", Decimal(cart.item_count), Decimal(rule.value.count)
        step = Decimal("1")
    elif isinstance(rule, MinCartValueRule):
        kind, actual, threshold = "amount", cart.subtotal, rule.value.amount
        step = Decimal("0.01")
    else:
        return None

    if rule.operator == RuleOperator.GTE:
        target = threshold
    elif rule.operator == RuleOperator.GT:
        target = threshold + step
    else:
        return None

    needed = target - actual
    if needed <= 0:
        return None
    return kind, needed, target
