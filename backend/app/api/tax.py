from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlmodel import Session
from app.api.deps import get_db
from app.schemas.cart import CartPricingRequest
from app.schemas.tax import TaxQuoteResult
from app.services.checkout import price_cart_tax, VALIDATION_ERROR

router = APIRouter(prefix="/api/tax", tags=["tax"])


@router.post("/calculate", response_model=TaxQuoteResult)
def calculate_cart_tax(data: CartPricingRequest, db: Session = Depends(get_db)):
    """GST breakdown for the cart"""
    if not data.items:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Items array is required"},
        )
    
    result = price_cart_tax(db, data)
    
    if not result.success:
        status_code = 422 if result.error_type == VALIDATION_ERROR else 503
        return JSONResponse(
            status_code=status_code,
            content=result.model_dump(mode="json", by_alias=True),
        )
    
    return result
