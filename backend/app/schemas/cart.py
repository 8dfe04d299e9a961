from pydantic import Field
from typing import Optional, List, Union
from decimal import Decimal
from app.core.errors import PricingValidationError
from app.schemas.common import CamelModel


class CartLine(CamelModel):
    """A cart line as sent by the storefront"""
    id: Optional[Union[int, str]] = None  # variant / cart item id
    product_id: int
    category_id: Optional[int] = None
    collection_ids: List[int] = []
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(ge=0, alias="price")

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def key(self) -> str:
        return str(self.id) if self.id is not None else str(self.product_id)


class CartSnapshot(CamelModel):
    items: List[CartLine] = []

    @property
    def subtotal(self) -> Decimal:
        return sum((line.line_total for line in self.items), Decimal("0"))

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.items)


class CartPricingRequest(CamelModel):
    """Body of the tax and campaign endpoints"""
    items: List[CartLine] = []
    customer_state: Optional[str] = None


def ensure_valid_lines(items: List[CartLine]) -> None:
    """Reject lines that bypassed schema validation (model_construct, mutation)"""
    for line in items:
        if line.quantity is None or line.quantity <= 0:
            raise PricingValidationError(f"Quantity must be positive for product {line.product_id}")
        if line.unit_price is None or line.unit_price < 0:
            raise PricingValidationError(f"Price must not be negative for product {line.product_id}")
