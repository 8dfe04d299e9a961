"""
GST calculation for the storefront.

Intra-state delivery (customer state == store state) splits the tax
equally into CGST and SGST, anything else is charged as IGST. Rates
resolve product override -> category override -> default rate.
Amounts are accumulated unrounded and rounded to paise once for the
cart; line amounts are then allocated so they add up to the cart totals.
"""
import logging
import re
from collections import OrderedDict
from datetime import date
from decimal import Decimal, ROUND_HALF_UP, ROUND_FLOOR
from typing import Optional, List, Dict, Tuple, Mapping
from app.core.config import settings as app_settings
from app.core.errors import PricingValidationError
from app.models.tax import TaxSettings
from app.schemas.cart import CartLine, ensure_valid_lines
from app.schemas.tax import TaxType, TaxBreakdown, LineTaxBreakdown, TaxDisplayLine

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
TWO_PLACES = Decimal("0.01")

# GST state codes (first two digits of a GSTIN)
STATE_CODES: Dict[str, str] = {
    "Andhra Pradesh": "37",
    "Arunachal Pradesh": "12",
    "Assam": "18",
    "Bihar": "10",
    "Chhattisgarh": "22",
    "Goa": "30",
    "Gujarat": "24",
    "Haryana": "06",
    "Himachal Pradesh": "02",
    "Jharkhand": "20",
    "Karnataka": "29",
    "Kerala": "32",
    "Madhya Pradesh": "23",
    "Maharashtra": "27",
    "Manipur": "14",
    "Meghalaya": "17",
    "Mizoram": "15",
    "Nagaland": "13",
    "Odisha": "21",
    "Punjab": "03",
    "Rajasthan": "08",
    "Sikkim": "11",
    "Tamil Nadu": "33",
    "Telangana": "36",
    "Tripura": "16",
    "Uttar Pradesh": "09",
    "Uttarakhand": "05",
    "West Bengal": "19",
    "Andaman and Nicobar Islands": "35",
    "Chandigarh": "04",
    "Dadra and Nagar Haveli and Daman and Diu": "26",
    "Delhi": "07",
    "Jammu and Kashmir": "01",
    "Ladakh": "38",
    "Lakshadweep": "31",
    "Puducherry": "34",
}

GST_RATES = (Decimal("0"), Decimal("5"), Decimal("12"), Decimal("18"), Decimal("28"))

GSTIN_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")

_STATES_BY_KEY = {name.lower(): name for name in STATE_CODES}


def money(value: Decimal) -> Decimal:
    """Round to paise"""
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def canonical_state_name(state: Optional[str]) -> str:
    """Trim and collapse whitespace; known states get their official spelling"""
    if not state:
        return ""
    cleaned = " ".join(state.split())
    return _STATES_BY_KEY.get(cleaned.lower(), cleaned)


def determine_tax_type(store_state: Optional[str], customer_state: Optional[str]) -> TaxType:
    """Intra-state only on an explicit match; a blank state is inter-state"""
    store = canonical_state_name(store_state)
    customer = canonical_state_name(customer_state)

    if store and customer and store == customer:
        return TaxType.INTRA_STATE
    return TaxType.INTER_STATE


def _check_rate(rate: Decimal, source: str) -> Decimal:
    rate = Decimal(rate)
    if rate < ZERO or rate > HUNDRED:
        raise PricingValidationError(f"GST rate {rate} from {source} is outside 0-100")
    return rate


def effective_gst_rate(
    line: CartLine,
    default_rate: Decimal,
    category_rates: Optional[Mapping[int, Decimal]] = None,
    product_rates: Optional[Mapping[int, Decimal]] = None,
) -> Decimal:
    """Product override > category override > default"""
    if product_rates and line.product_id in product_rates:
        return _check_rate(product_rates[line.product_id], f"product {line.product_id}")

    if category_rates and line.category_id is not None and line.category_id in category_rates:
        return _check_rate(category_rates[line.category_id], f"category {line.category_id}")

    return _check_rate(default_rate, "settings")


def line_tax(amount: Decimal, rate: Decimal, price_includes_tax: bool) -> Tuple[Decimal, Decimal]:
    """Return unrounded (taxable base, tax) for a line amount"""
    if price_includes_tax:
        base = amount / (1 + rate / HUNDRED)
        return base, amount - base
    return amount, amount * rate / HUNDRED


def allocate(total: Decimal, parts: List[Decimal]) -> List[Decimal]:
    """
    Round non-negative parts to paise so they add up exactly to money(total).

    Every part is floored, and the remaining paise go to the parts with
    the largest remainders (earlier parts first on ties).
    """
    if not parts:
        return []

    floors = [Decimal(part).quantize(TWO_PLACES, rounding=ROUND_FLOOR) for part in parts]
    cents = int((money(total) - sum(floors, ZERO)) / TWO_PLACES)
    order = sorted(range(len(parts)), key=lambda i: (floors[i] - parts[i], i))
    step = TWO_PLACES if cents >= 0 else -TWO_PLACES

    for n in range(abs(cents)):
        floors[order[n % len(order)]] += step
    return floors


def calculate_tax(
    items: List[CartLine],
    customer_state: Optional[str],
    settings: TaxSettings,
    category_rates: Optional[Mapping[int, Decimal]] = None,
    product_rates: Optional[Mapping[int, Decimal]] = None,
) -> TaxBreakdown:
    """
    Compute the GST breakdown for cart lines.

    Raises PricingValidationError for invalid lines or rates; an empty
    cart or disabled tax gives a zero breakdown.
    """
    ensure_valid_lines(items)

    tax_type = determine_tax_type(settings.store_state, customer_state)
    inclusive = bool(settings.price_includes_tax)
    subtotal = sum((line.line_total for line in items), ZERO)

    if not settings.tax_enabled:
        line_amounts = allocate(subtotal, [line.line_total for line in items])
        return TaxBreakdown(
            tax_type=tax_type,
            subtotal=money(subtotal),
            taxable_amount=money(subtotal),
            cgst=ZERO,
            sgst=ZERO,
            igst=ZERO,
            total_tax=ZERO,
            grand_total=money(subtotal),
            gst_rate=ZERO,
            is_tax_inclusive=False,
            store_state=settings.store_state,
            customer_state=canonical_state_name(customer_state),
            items=[
                LineTaxBreakdown(
                    line_id=line.key,
                    product_id=line.product_id,
                    gst_rate=ZERO,
                    taxable_amount=amount,
                    cgst=ZERO,
                    sgst=ZERO,
                    igst=ZERO,
                    total_tax=ZERO,
                )
                for line, amount in zip(items, line_amounts)
            ],
        )

    default_rate = Decimal(settings.default_gst_rate)
    rates = []
    raw_taxes = []

    for line in items:
        rate = effective_gst_rate(line, default_rate, category_rates, product_rates)
        _, tax = line_tax(line.line_total, rate, inclusive)
        rates.append(rate)
        raw_taxes.append(tax)

    raw_total = sum(raw_taxes, ZERO)
    line_amounts = allocate(subtotal, [line.line_total for line in items])

    # Rounded once for the cart, then spread over the lines so they add up
    if tax_type == TaxType.INTRA_STATE:
        cgst = sgst = money(raw_total / 2)
        igst = ZERO
        total_tax = cgst + sgst
        line_splits = [(half, half, ZERO) for half in allocate(cgst, [tax / 2 for tax in raw_taxes])]
    else:
        cgst = sgst = ZERO
        igst = total_tax = money(raw_total)
        line_splits = [(ZERO, ZERO, amount) for amount in allocate(igst, raw_taxes)]

    if inclusive:
        grand_total = money(subtotal)
        taxable_amount = grand_total - total_tax
    else:
        taxable_amount = money(subtotal)
        grand_total = taxable_amount + total_tax

    line_breakdowns = []
    for line, rate, amount, (line_cgst, line_sgst, line_igst) in zip(items, rates, line_amounts, line_splits):
        tax = line_cgst + line_sgst + line_igst
        line_breakdowns.append(
            LineTaxBreakdown(
                line_id=line.key,
                product_id=line.product_id,
                gst_rate=rate,
                taxable_amount=amount - tax if inclusive else amount,
                cgst=line_cgst,
                sgst=line_sgst,
                igst=line_igst,
                total_tax=tax,
            )
        )

    # Mixed carts report the default rate, per-line rates are in items
    distinct_rates = set(rates)
    summary_rate = distinct_rates.pop() if len(distinct_rates) == 1 else default_rate

    logger.debug(
        "GST %s for %d lines: taxable=%s tax=%s",
        tax_type.value, len(items), taxable_amount, total_tax,
    )

    return TaxBreakdown(
        tax_type=tax_type,
        subtotal=money(subtotal),
        taxable_amount=taxable_amount,
        cgst=cgst,
        sgst=sgst,
        igst=igst,
        total_tax=total_tax,
        grand_total=grand_total,
        gst_rate=summary_rate,
        is_tax_inclusive=inclusive,
        store_state=settings.store_state,
        customer_state=canonical_state_name(customer_state),
        items=line_breakdowns,
    )


def _format_rate(rate: Decimal) -> str:
    return format(rate.normalize(), "f")


def tax_display_lines(breakdown: TaxBreakdown) -> List[TaxDisplayLine]:
    """Checkout/invoice lines grouped by rate, zero lines omitted; amounts add up to the breakdown"""
    by_rate: "OrderedDict[Decimal, List[Decimal]]" = OrderedDict()
    for item in breakdown.items:
        amounts = by_rate.setdefault(item.gst_rate, [ZERO, ZERO, ZERO])
        amounts[0] += item.cgst
        amounts[1] += item.sgst
        amounts[2] += item.igst

    lines = []
    for rate, (cgst, sgst, igst) in by_rate.items():
        if breakdown.tax_type == TaxType.INTRA_STATE:
            half = rate / 2
            if cgst > 0:
                lines.append(TaxDisplayLine(label=f"CGST ({_format_rate(half)}%)", rate=half, amount=cgst))
            if sgst > 0:
                lines.append(TaxDisplayLine(label=f"SGST ({_format_rate(half)}%)", rate=half, amount=sgst))
        elif igst > 0:
            lines.append(TaxDisplayLine(label=f"IGST ({_format_rate(rate)}%)", rate=rate, amount=igst))

    return lines


def format_amount(amount: Decimal, symbol: Optional[str] = None) -> str:
    return f"{symbol or app_settings.CURRENCY_SYMBOL}{money(amount)}"


def is_valid_gstin(gstin: Optional[str]) -> bool:
    if not gstin:
        return False
    return bool(GSTIN_PATTERN.match(gstin.upper()))


def state_from_gstin(gstin: Optional[str]) -> Optional[str]:
    if not gstin or len(gstin) < 2:
        return None
    code = gstin[:2]
    for name, state_code in STATE_CODES.items():
        if state_code == code:
            return name
    return None


def gst_invoice_number(gstin: str, sequence: int, today: Optional[date] = None) -> str:
    """GSTIN/FY/NNNNNN; the Indian financial year starts in April"""
    today = today or date.today()
    fy_start = today.year if today.month >= 4 else today.year - 1
    fy = f"{fy_start}-{str(fy_start + 1)[-2:]}"
    return f"{gstin}/{fy}/{sequence:06d}"
