from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from app.db.session import get_db
from app.dependencies.auth import get_current_user
from app.models.analysis import Analysis
from app.models.promo_code import PromoCode
from app.models.promo_usage import PromoUsage
from app.models.user import User
from app.schemas.analysis import AnalysisRecord, UsageResponse
from app.schemas.promo import PromoUsageResponse
from app.services.usage_tracker import get_user_usage

router = APIRouter()


@router.get("/usage", response_model=UsageResponse)
def get_usage(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Analyses used this month and the monthly limit (null when unlimited)."""
    return get_user_usage(user, db)


@router.get("/analyses", response_model=List[AnalysisRecord])
def list_analyses(
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return db.query(Analysis).filter(
        Analysis.user_id == user.id
    ).order_by(Analysis.created_at.desc()).limit(limit).all()


@router.get("/promo-usage", response_model=List[PromoUsageResponse])
def list_promo_usage(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    rows = db.query(PromoUsage, PromoCode).join(
        PromoCode, PromoUsage.promo_code_id == PromoCode.id
    ).filter(PromoUsage.user_id == user.id).order_by(PromoUsage.used_at.desc()).all()

    return [
        {
            "id": usage.id,
            "code": promo.code,
            "applied_discount": usage.applied_discount,
            "target_tier": usage.target_tier,
            "used_at": usage.used_at,
        }
        for usage, promo in rows
    ]
