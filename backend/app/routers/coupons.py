"""Coupon API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.auth import AuthenticatedUser, get_current_admin, get_current_user
from app.core.database import get_db
from app.models.coupon import Coupon
from app.schemas.coupon import (
    ApplyCouponRequest,
    ApplyCouponResponse,
    CouponAnalyticsData,
    CouponAnalyticsResponse,
    CouponCreate,
    CouponResponse,
    CouponSummary,
    CouponUpdate,
    DailyUsage,
    ValidateCouponRequest,
    ValidateCouponResponse,
)
from app.services.coupon_service import (
    CouponConflictError,
    CouponError,
    CouponNotFoundError,
    CouponService,
)

router = APIRouter()

ADMIN_TAG = "Coupon Admin"


def _status_for(error: CouponError) -> int:
    if isinstance(error, CouponNotFoundError):
        return 404
    if isinstance(error, CouponConflictError):
        return 409
    return 400


@router.get(
    "",
    response_model=list[CouponResponse],
    summary="List active coupons",
)
async def list_coupons(db: Session = Depends(get_db)) -> list[Coupon]:
    """List currently valid coupons, highest priority first."""
    return CouponService(db).list_active()


@router.post(
    "/validate",
    response_model=ValidateCouponResponse,
    summary="Validate coupon",
    responses={
        400: {"description": "Coupon cannot be applied to this order"},
        401: {"description": "Unauthorized"},
        404: {"description": "Invalid coupon code"},
    },
)
async def validate_coupon(
    data: ValidateCouponRequest,
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_current_user),
) -> ValidateCouponResponse | JSONResponse:
    """Preview the discount a coupon gives on an order without redeeming it."""
    try:
        result = CouponService(db).validate(
            data.code,
            data.order_value,
            user.id,
            payment_method=data.payment_method,
        )
    except CouponError as e:
        return JSONResponse(
            status_code=_status_for(e),
            content={"valid": False, "message": str(e)},
        )

    coupon = result.coupon
    return ValidateCouponResponse(
        coupon=CouponSummary(
            id=coupon.id,  # type: ignore[arg-type]
            code=coupon.code,  # type: ignore[arg-type]
            title=coupon.title,  # type: ignore[arg-type]
            discount_type=coupon.discount_type,  # type: ignore[arg-type]
            discount_value=coupon.discount_value,  # type: ignore[arg-type]
        ),
        discount_amount=result.discount_amount,
        final_amount=result.final_amount,
    )


@router.post(
    "/apply",
    response_model=ApplyCouponResponse,
    summary="Apply coupon",
    responses={
        400: {"description": "Coupon usage limit exceeded"},
        401: {"description": "Unauthorized"},
        404: {"description": "Coupon not found"},
    },
)
async def apply_coupon(
    data: ApplyCouponRequest,
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_current_user),
) -> ApplyCouponResponse:
    """Record a coupon redemption when an order is placed."""
    try:
        CouponService(db).apply(data.code, user.id, data.order_value, data.discount_applied)
    except CouponError as e:
        raise HTTPException(status_code=_status_for(e), detail=str(e)) from None
    return ApplyCouponResponse(message="Coupon applied successfully")


@router.get(
    "/user/available",
    response_model=list[CouponResponse],
    summary="List coupons available to the current user",
    responses={401: {"description": "Unauthorized"}},
)
async def list_available_coupons(
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_current_user),
) -> list[Coupon]:
    """List valid coupons the current user has not used up and is allowed to use."""
    return CouponService(db).list_available_for_user(user.id)


@router.post(
    "",
    response_model=CouponResponse,
    status_code=201,
    summary="Create coupon",
    tags=[ADMIN_TAG],
    dependencies=[Depends(get_current_admin)],
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Not an admin"},
        409: {"description": "Coupon with this code already exists"},
        422: {"description": "Validation error"},
    },
)
async def create_coupon(
    data: CouponCreate,
    db: Session = Depends(get_db),
) -> Coupon:
    """Create a new coupon."""
    try:
        return CouponService(db).create(data)
    except CouponError as e:
        raise HTTPException(status_code=_status_for(e), detail=str(e)) from None


@router.put(
    "/{coupon_id}",
    response_model=CouponResponse,
    summary="Update coupon",
    tags=[ADMIN_TAG],
    dependencies=[Depends(get_current_admin)],
    responses={
        400: {"description": "Invalid validity window"},
        401: {"description": "Unauthorized"},
        403: {"description": "Not an admin"},
        404: {"description": "Coupon not found"},
        409: {"description": "Coupon with this code already exists"},
        422: {"description": "Validation error"},
    },
)
async def update_coupon(
    coupon_id: UUID,
    data: CouponUpdate,
    db: Session = Depends(get_db),
) -> Coupon:
    """Update the given fields of a coupon."""
    try:
        return CouponService(db).update(coupon_id, data)
    except CouponError as e:
        raise HTTPException(status_code=_status_for(e), detail=str(e)) from None


@router.get(
    "/analytics/{coupon_id}",
    response_model=CouponAnalyticsResponse,
    summary="Get coupon analytics",
    tags=[ADMIN_TAG],
    dependencies=[Depends(get_current_admin)],
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Not an admin"},
        404: {"description": "Coupon not found"},
    },
)
async def get_coupon_analytics(
    coupon_id: UUID,
    db: Session = Depends(get_db),
) -> CouponAnalyticsResponse:
    """Get redemption analytics for a coupon."""
    try:
        coupon, analytics = CouponService(db).analytics(coupon_id)
    except CouponError as e:
        raise HTTPException(status_code=_status_for(e), detail=str(e)) from None

    return CouponAnalyticsResponse(
        coupon=CouponResponse.model_validate(coupon),
        analytics=CouponAnalyticsData(
            total_usage=analytics.total_usage,
            total_discount=analytics.total_discount,
            total_order_value=analytics.total_order_value,
            average_order_value=analytics.average_order_value,
            usage_by_day={
                day: DailyUsage(
                    count=stats.count,
                    discount=stats.discount,
                    order_value=stats.order_value,
                )
                for day, stats in analytics.usage_by_day.items()
            },
        ),
    )
