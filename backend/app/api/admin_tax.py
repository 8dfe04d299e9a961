from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select
from typing import List
from datetime import datetime
from app.api.deps import get_db
from app.models.category import Category
from app.models.product import Product
from app.models.tax import CategoryTaxRule, ProductTaxRule
from app.schemas.tax import (
    TaxSettingsResponse,
    TaxSettingsUpdate,
    CategoryTaxRuleCreate,
    CategoryTaxRuleResponse,
    ProductTaxRuleCreate,
    ProductTaxRuleResponse,
)
from app.services import repository
from app.services.tax import canonical_state_name, is_valid_gstin

router = APIRouter(prefix="/api/admin/tax-settings", tags=["admin-tax"])


# === Store settings ===

@router.get("/", response_model=TaxSettingsResponse)
def get_tax_settings(db: Session = Depends(get_db)):
    """Current tax settings (created with defaults if missing)"""
    return repository.get_tax_settings(db)


@router.put("/", response_model=TaxSettingsResponse)
def update_tax_settings(data: TaxSettingsUpdate, db: Session = Depends(get_db)):
    tax_settings = repository.get_tax_settings(db)
    
    update_data = data.model_dump(exclude_unset=True)
    
    if "store_state" in update_data:
        update_data["store_state"] = canonical_state_name(update_data["store_state"])
    
    # Empty GSTIN = unregistered
    if update_data.get("gstin"):
        if not is_valid_gstin(update_data["gstin"]):
            raise HTTPException(status_code=400, detail="Invalid GSTIN format")
        update_data["gstin"] = update_data["gstin"].upper()
    elif "gstin" in update_data:
        update_data["gstin"] = None
    
    for key, value in update_data.items():
        setattr(tax_settings, key, value)
    tax_settings.updated_at = datetime.utcnow()
    
    db.add(tax_settings)
    db.commit()
    db.refresh(tax_settings)
    return tax_settings


# === Category overrides ===

@router.get("/categories", response_model=List[CategoryTaxRuleResponse])
def list_category_rules(db: Session = Depends(get_db)):
    return db.exec(select(CategoryTaxRule).order_by(CategoryTaxRule.category_id)).all()


@router.post("/categories", response_model=CategoryTaxRuleResponse, status_code=201)
def create_category_rule(data: CategoryTaxRuleCreate, db: Session = Depends(get_db)):
    if not db.get(Category, data.category_id):
        raise HTTPException(status_code=404, detail="Category not found")
    
    # One override per category
    existing = db.exec(
        select(CategoryTaxRule).where(CategoryTaxRule.category_id == data.category_id)
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail="Tax rule for this category already exists")
    
    rule = CategoryTaxRule(**data.model_dump())
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule


@router.delete("/categories/{rule_id}")
def delete_category_rule(rule_id: int, db: Session = Depends(get_db)):
    rule = db.get(CategoryTaxRule, rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="Tax rule not found")
    
    db.delete(rule)
    db.commit()
    return {"message": "Tax rule deleted"}


# === Product overrides ===

@router.get("/products", response_model=List[ProductTaxRuleResponse])
def list_product_rules(db: Session = Depends(get_db)):
    return db.exec(select(ProductTaxRule).order_by(ProductTaxRule.product_id)).all()


@router.post("/products", response_model=ProductTaxRuleResponse, status_code=201)
def create_product_rule(data: ProductTaxRuleCreate, db: Session = Depends(get_db)):
    if not db.get(Product, data.product_id):
        raise HTTPException(status_code=404, detail="Product not found")
    
    existing = db.exec(
        select(ProductTaxRule).where(ProductTaxRule.product_id == data.product_id)
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail="Tax rule for this product already exists")
    
    rule = ProductTaxRule(**data.model_dump())
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule


@router.delete("/products/{rule_id}")
def delete_product_rule(rule_id: int, db: Session = Depends(get_db)):
    rule = db.get(ProductTaxRule, rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="Tax rule not found")
    
    db.delete(rule)
    db.commit()
    return {"message": "Tax rule deleted"}
