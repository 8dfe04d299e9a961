from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session, select
from typing import List, Optional
from datetime import datetime
from app.api.deps import get_db
from app.models.campaign import Campaign, CampaignStatus
from app.schemas.campaign import CampaignResponse, CampaignCreate, CampaignUpdate
from app.services.campaign_admin import (
    build_campaign_response,
    rule_rows,
    action_rows,
    replace_rules,
    replace_actions,
)

router = APIRouter(prefix="/api/admin/campaigns", tags=["admin-campaigns"])


@router.get("/", response_model=List[CampaignResponse])
def list_campaigns(
    status: Optional[CampaignStatus] = Query(None),
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
):
    """All campaigns, newest first"""
    stmt = select(Campaign)
    
    if status:
        stmt = stmt.where(Campaign.status == status)
    
    stmt = stmt.order_by(Campaign.created_at.desc(), Campaign.id.desc()).offset(skip).limit(limit)
    
    now = datetime.utcnow()
    return [build_campaign_response(c, now) for c in db.exec(stmt).all()]


@router.get("/{campaign_id}", response_model=CampaignResponse)
def get_campaign(campaign_id: int, db: Session = Depends(get_db)):
    campaign = db.get(Campaign, campaign_id)
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")
    return build_campaign_response(campaign, datetime.utcnow())


@router.post("/", response_model=CampaignResponse, status_code=201)
def create_campaign(data: CampaignCreate, db: Session = Depends(get_db)):
    """Create a campaign with its rules and actions in one transaction"""
    campaign = Campaign(
        **data.model_dump(exclude={"rules", "actions"}),
        stackable=False,
    )
    campaign.rules = rule_rows(data.rules)
    campaign.actions = action_rows(data.actions)
    
    db.add(campaign)
    db.commit()
    db.refresh(campaign)
    return build_campaign_response(campaign, datetime.utcnow())


@router.patch("/{campaign_id}", response_model=CampaignResponse)
def update_campaign(
    campaign_id: int,
    data: CampaignUpdate,
    db: Session = Depends(get_db),
):
    campaign = db.get(Campaign, campaign_id)
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")
    
    update_data = data.model_dump(exclude_unset=True, exclude={"rules", "actions"})
    
    start_at = update_data.get("start_at", campaign.start_at)
    end_at = update_data.get("end_at", campaign.end_at)
    if end_at is not None and start_at is not None and end_at < start_at:
        raise HTTPException(status_code=400, detail="end_at must not be before start_at")
    
    for key, value in update_data.items():
        setattr(campaign, key, value)
    
    # None keeps the current set, a list replaces it
    if data.rules is not None:
        replace_rules(campaign, data.rules)
    if data.actions is not None:
        replace_actions(campaign, data.actions)
    
    campaign.updated_at = datetime.utcnow()
    
    db.add(campaign)
    db.commit()
    db.refresh(campaign)
    return build_campaign_response(campaign, datetime.utcnow())


@router.delete("/{campaign_id}")
def delete_campaign(campaign_id: int, db: Session = Depends(get_db)):
    """Delete a campaign together with its rules and actions"""
    campaign = db.get(Campaign, campaign_id)
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")
    
    db.delete(campaign)
    db.commit()
    return {"message": "Campaign deleted"}
