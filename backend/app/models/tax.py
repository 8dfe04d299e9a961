from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal


class TaxSettings(SQLModel, table=True):
    """Single row: store GST registration and pricing mode"""
    __tablename__ = "tax_settings"
    
    id: Optional[int] = Field(default=None, primary_key=True)
    tax_enabled: bool = Field(default=True)
    price_includes_tax: bool = Field(default=True)
    default_gst_rate: Decimal = Field(default=Decimal("18"), max_digits=5, decimal_places=2)
    store_state: str = Field(default="Tamil Nadu")
    gstin: Optional[str] = None
    
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class CategoryTaxRule(SQLModel, table=True):
    __tablename__ = "category_tax_rules"
    
    id: Optional[int] = Field(default=None, primary_key=True)
    category_id: int = Field(foreign_key="categories.id", unique=True, index=True)
    gst_rate: Decimal = Field(max_digits=5, decimal_places=2)
    
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class ProductTaxRule(SQLModel, table=True):
    """Product override, wins over the category rule"""
    __tablename__ = "product_tax_rules"
    
    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key="products.id", unique=True, index=True)
    gst_rate: Decimal = Field(max_digits=5, decimal_places=2)
    
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
