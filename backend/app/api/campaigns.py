from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlmodel import Session, select
from typing import List
from datetime import datetime
from app.api.deps import get_db
from app.models.campaign import Campaign, CampaignStatus, ApplyType
from app.schemas.cart import CartPricingRequest
from app.schemas.campaign import CampaignQuoteResult, CampaignResponse
from app.services.campaign_admin import build_campaign_response
from app.services.checkout import evaluate_cart_campaigns, VALIDATION_ERROR

router = APIRouter(prefix="/api/campaigns", tags=["campaigns"])


@router.post("/evaluate", response_model=CampaignQuoteResult)
def evaluate_cart(data: CartPricingRequest, db: Session = Depends(get_db)):
    """Best campaign for the cart, or the nearest one to unlock"""
    result = evaluate_cart_campaigns(db, data)
    
    if not result.success:
        status_code = 422 if result.error_type == VALIDATION_ERROR else 503
        return JSONResponse(
            status_code=status_code,
            content=result.model_dump(mode="json", by_alias=True),
        )
    
    return result


@router.get("/active", response_model=List[CampaignResponse])
def list_active_campaigns(db: Session = Depends(get_db)):
    """Active campaigns (public)"""
    now = datetime.utcnow()
    
    stmt = select(Campaign).where(
        Campaign.status == CampaignStatus.ACTIVE,
        Campaign.apply_type == ApplyType.AUTO,
        Campaign.start_at <= now,
        (Campaign.end_at == None) | (Campaign.end_at >= now),
    ).order_by(Campaign.priority.desc(), Campaign.created_at)
    
    return [build_campaign_response(c, now) for c in db.exec(stmt).all()]
