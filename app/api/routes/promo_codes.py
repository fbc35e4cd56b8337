from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.dependencies.auth import get_current_user
from app.models.user import User
from app.schemas.promo import RedeemPromoRequest, RedeemPromoResponse
from app.services.promo_codes import PromoCodeError, redeem_promo_code, validate_promo_code

router = APIRouter()


@router.post("/redeem", response_model=RedeemPromoResponse)
def redeem(
    request: RedeemPromoRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Apply a promo code's discount to the signed-in user for 30 days."""
    try:
        usage = redeem_promo_code(db, user, request.code)
    except PromoCodeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {
        "code": request.code.strip().upper(),
        "discount_percentage": usage.applied_discount,
        "discount_expiry_date": user.discount_expiry_date,
        "target_tier": usage.target_tier,
        "message": f"Promo code applied: {usage.applied_discount}% off for the next 30 days",
    }


@router.get("/validate/{code}")
def validate(code: str, db: Session = Depends(get_db)):
    """Check a code without redeeming it. Invalid codes return valid=false, not an error."""
    try:
        promo = validate_promo_code(db, code)
    except PromoCodeError as e:
        return {"valid": False, "message": str(e)}

    return {
        "valid": True,
        "code": promo.code,
        "discount_percentage": promo.discount_percentage,
        "target_tier": promo.target_tier,
        "description": promo.description,
        "expiry_date": promo.expiry_date,
    }
