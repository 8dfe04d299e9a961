from sqlmodel import SQLModel, Field, Relationship, Column, JSON
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from enum import Enum


class CampaignStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    INACTIVE = "inactive"


class EffectiveStatus(str, Enum):
    """Stored status combined with the time window"""
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    EXPIRED = "expired"
    INACTIVE = "inactive"


class ApplyType(str, Enum):
    AUTO = "auto"
    COUPON = "coupon"


class RuleOperator(str, Enum):
    GTE = ">="
    GT = ">"
    EQ = "="
    LT = "<"
    LTE = "<="


class DiscountType(str, Enum):
    FLAT = "flat"
    PERCENTAGE = "percentage"


class AppliesTo(str, Enum):
    CART = "cart"
    ITEMS = "items"


class Campaign(SQLModel, table=True):
    __tablename__ = "campaigns"
    
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: Optional[str] = None
    
    status: CampaignStatus = Field(default=CampaignStatus.DRAFT, index=True)
    priority: int = Field(default=0)  # higher wins
    
    start_at: datetime
    end_at: Optional[datetime] = None  # None = open ended
    
    apply_type: ApplyType = Field(default=ApplyType.AUTO)
    stackable: bool = Field(default=False)
    
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    
    # Relationships
    rules: List["CampaignRule"] = Relationship(
        back_populates="campaign",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )
    actions: List["CampaignAction"] = Relationship(
        back_populates="campaign",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


class CampaignRule(SQLModel, table=True):
    __tablename__ = "campaign_rules"
    
    id: Optional[int] = Field(default=None, primary_key=True)
    campaign_id: int = Field(foreign_key="campaigns.id", index=True)
    
    # Stored as free text: rows written by older tooling may hold unknown types
    rule_type: str
    operator: str = Field(default=RuleOperator.GTE.value)
    value: dict = Field(default_factory=dict, sa_column=Column(JSON))
    
    created_at: datetime = Field(default_factory=datetime.utcnow)
    
    # Relationships
    campaign: Optional[Campaign] = Relationship(back_populates="rules")


class CampaignAction(SQLModel, table=True):
    __tablename__ = "campaign_actions"
    
    id: Optional[int] = Field(default=None, primary_key=True)
    campaign_id: int = Field(foreign_key="campaigns.id", index=True)
    
    discount_type: DiscountType
    discount_value: Decimal = Field(max_digits=10, decimal_places=2)
    max_discount: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)
    applies_to: AppliesTo = Field(default=AppliesTo.CART)
    
    created_at: datetime = Field(default_factory=datetime.utcnow)
    
    # Relationships
    campaign: Optional[Campaign] = Relationship(back_populates="actions")
