from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, List, TYPE_CHECKING
from datetime import datetime
from decimal import Decimal
from .collection import ProductCollection

if TYPE_CHECKING:
    from .category import Category
    from .collection import Collection


class Product(SQLModel, table=True):
    __tablename__ = "products"
    
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    slug: str = Field(unique=True, index=True)
    
    price: Decimal = Field(max_digits=10, decimal_places=2)
    sku: Optional[str] = Field(default=None, unique=True)
    
    category_id: Optional[int] = Field(default=None, foreign_key="categories.id")
    is_active: bool = Field(default=True)
    
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    
    # Relationships
    category: Optional["Category"] = Relationship(back_populates="products")
    collections: List["Collection"] = Relationship(back_populates="products", link_model=ProductCollection)
