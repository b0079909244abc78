from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app import schemas
from app.db import get_db
from app.services.discounts import list_available_coupons, validate_coupon

router = APIRouter(prefix="/api/coupons", tags=["coupons"])


@router.post("/validate")
def validate_coupon_endpoint(payload: schemas.CouponValidateIn, db: Session = Depends(get_db)):
    return validate_coupon(db, payload.code, payload.customer_id, payload.order_total)


@router.get("/available")
def list_available_coupons_endpoint(
    customer_id: str = Query(min_length=1),
    db: Session = Depends(get_db),
):
    coupons = list_available_coupons(db, customer_id)
    return {
        "success": True,
        "coupons": [schemas.CouponOut.model_validate(c).model_dump(mode="json") for c in coupons],
    }
