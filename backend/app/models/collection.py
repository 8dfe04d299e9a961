from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, List, TYPE_CHECKING
from datetime import datetime

if TYPE_CHECKING:
    from .product import Product


class ProductCollection(SQLModel, table=True):
    __tablename__ = "product_collections"
    
    product_id: int = Field(foreign_key="products.id", primary_key=True)
    collection_id: int = Field(foreign_key="collections.id", primary_key=True)


class Collection(SQLModel, table=True):
    __tablename__ = "collections"
    
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    slug: str = Field(unique=True, index=True)
    is_active: bool = Field(default=True)
    
    created_at: datetime = Field(default_factory=datetime.utcnow)
    
    # Relationships
    products: List["Product"] = Relationship(back_populates="collections", link_model=ProductCollection)
