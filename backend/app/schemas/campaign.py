from pydantic import BaseModel, Field, TypeAdapter, field_validator, model_validator
from typing import Optional, List, Dict, Union, Literal, Any, Annotated
from datetime import datetime
from decimal import Decimal
from app.models.campaign import (
    CampaignStatus, EffectiveStatus, ApplyType, RuleOperator, DiscountType, AppliesTo,
)
from app.schemas.common import CamelModel, as_naive_utc


# === Rule payloads, keyed by rule_type ===

class MinItemsValue(BaseModel):
    count: int = Field(ge=0)


class MinCartValueValue(BaseModel):
    amount: Decimal = Field(ge=0)


class CategoryValue(BaseModel):
    category_id: int


class CollectionValue(BaseModel):
    collection_id: int


class ProductValue(BaseModel):
    product_id: int


class MinItemsRule(BaseModel):
    rule_type: Literal["min_items"] = "min_items"
    operator: RuleOperator = RuleOperator.GTE
    value: MinItemsValue


class MinCartValueRule(BaseModel):
    rule_type: Literal["min_cart_value"] = "min_cart_value"
    operator: RuleOperator = RuleOperator.GTE
    value: MinCartValueValue


class CategoryRule(BaseModel):
    rule_type: Literal["category"] = "category"
    operator: RuleOperator = RuleOperator.EQ
    value: CategoryValue


class CollectionRule(BaseModel):
    rule_type: Literal["collection"] = "collection"
    operator: RuleOperator = RuleOperator.EQ
    value: CollectionValue


class ProductRule(BaseModel):
    rule_type: Literal["product"] = "product"
    operator: RuleOperator = RuleOperator.EQ
    value: ProductValue


CampaignRuleSpec = Annotated[
    Union[MinItemsRule, MinCartValueRule, CategoryRule, CollectionRule, ProductRule],
    Field(discriminator="rule_type"),
]

rule_adapter = TypeAdapter(CampaignRuleSpec)


class MalformedRule(BaseModel):
    """Stored rule that failed validation; never matches a cart"""
    rule_type: Optional[str] = None
    operator: Optional[str] = None
    value: Any = None
    reason: str


class CampaignActionSpec(BaseModel):
    discount_type: DiscountType
    discount_value: Decimal = Field(ge=0)
    max_discount: Optional[Decimal] = Field(default=None, ge=0)
    applies_to: AppliesTo = AppliesTo.CART

    class Config:
        from_attributes = True

    @model_validator(mode="after")
    def check_percentage(self):
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        return self


# === Admin CRUD ===

class CampaignRuleResponse(BaseModel):
    id: int
    rule_type: str
    operator: str
    value: Dict[str, Any]

    class Config:
        from_attributes = True


class CampaignActionResponse(BaseModel):
    id: int
    discount_type: DiscountType
    discount_value: Decimal
    max_discount: Optional[Decimal] = None
    applies_to: AppliesTo

    class Config:
        from_attributes = True


class CampaignResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    status: CampaignStatus
    effective_status: EffectiveStatus
    priority: int
    start_at: datetime
    end_at: Optional[datetime] = None
    apply_type: ApplyType
    stackable: bool
    created_at: datetime
    rules: List[CampaignRuleResponse] = []
    actions: List[CampaignActionResponse] = []


class CampaignCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    status: CampaignStatus = CampaignStatus.DRAFT
    priority: int = 0
    start_at: datetime
    end_at: Optional[datetime] = None
    apply_type: ApplyType = ApplyType.AUTO
    rules: List[CampaignRuleSpec] = []
    actions: List[CampaignActionSpec] = []

    @field_validator("start_at", "end_at")
    @classmethod
    def to_utc(cls, value):
        return as_naive_utc(value)

    @model_validator(mode="after")
    def check_window(self):
        if self.end_at is not None and self.end_at < self.start_at:
            raise ValueError("end_at must not be before start_at")
        return self


class CampaignUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    status: Optional[CampaignStatus] = None
    priority: Optional[int] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    apply_type: Optional[ApplyType] = None
    # None keeps the current rules/actions, a list replaces them
    rules: Optional[List[CampaignRuleSpec]] = None
    actions: Optional[List[CampaignActionSpec]] = None

    @field_validator("start_at", "end_at")
    @classmethod
    def to_utc(cls, value):
        return as_naive_utc(value)


# === Evaluation results ===

class AppliedCampaign(CamelModel):
    campaign_id: int
    name: str
    discount_type: DiscountType
    discount: Decimal
    applies_to: AppliesTo
    item_discounts: Optional[Dict[str, Decimal]] = None


class NearestCampaign(CamelModel):
    campaign_id: int
    name: str
    priority: int
    items_needed: Optional[int] = None
    amount_needed: Optional[Decimal] = None


class CampaignEvaluation(CamelModel):
    applied: Optional[AppliedCampaign] = None
    nearest: Optional[NearestCampaign] = None


class CampaignQuoteResult(CamelModel):
    success: bool
    applied_campaign: Optional[AppliedCampaign] = None
    nearest_campaign: Optional[NearestCampaign] = None
    error: Optional[str] = None
    error_type: Optional[str] = Field(default=None, exclude=True)
