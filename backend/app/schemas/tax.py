from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from enum import Enum
from app.schemas.common import CamelModel


class TaxType(str, Enum):
    INTRA_STATE = "intra-state"
    INTER_STATE = "inter-state"


# === Admin ===

class TaxSettingsResponse(BaseModel):
    id: int
    tax_enabled: bool
    price_includes_tax: bool
    default_gst_rate: Decimal
    store_state: str
    gstin: Optional[str] = None
    updated_at: datetime

    class Config:
        from_attributes = True


class TaxSettingsUpdate(BaseModel):
    tax_enabled: Optional[bool] = None
    price_includes_tax: Optional[bool] = None
    default_gst_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    store_state: Optional[str] = Field(default=None, min_length=1)
    gstin: Optional[str] = None


class CategoryTaxRuleCreate(BaseModel):
    category_id: int
    gst_rate: Decimal = Field(ge=0, le=100)


class CategoryTaxRuleResponse(BaseModel):
    id: int
    category_id: int
    gst_rate: Decimal

    class Config:
        from_attributes = True


class ProductTaxRuleCreate(BaseModel):
    product_id: int
    gst_rate: Decimal = Field(ge=0, le=100)


class ProductTaxRuleResponse(BaseModel):
    id: int
    product_id: int
    gst_rate: Decimal

    class Config:
        from_attributes = True


# === Storefront ===

class LineTaxBreakdown(CamelModel):
    line_id: str
    product_id: int
    gst_rate: Decimal
    taxable_amount: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    total_tax: Decimal


class TaxBreakdown(CamelModel):
    tax_type: TaxType
    subtotal: Decimal
    taxable_amount: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    total_tax: Decimal
    grand_total: Decimal
    gst_rate: Decimal
    is_tax_inclusive: bool
    store_state: str
    customer_state: str
    items: List[LineTaxBreakdown] = []


class TaxDisplayLine(CamelModel):
    label: str
    rate: Decimal
    amount: Decimal


class TaxSettingsSummary(CamelModel):
    tax_enabled: bool
    price_includes_tax: bool
    default_gst_rate: Decimal
    store_state: str


class TaxQuoteResult(CamelModel):
    success: bool
    tax_breakdown: Optional[TaxBreakdown] = None
    tax_settings: Optional[TaxSettingsSummary] = None
    display_lines: List[TaxDisplayLine] = []
    error: Optional[str] = None
    error_type: Optional[str] = Field(default=None, exclude=True)
