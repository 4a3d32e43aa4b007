from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from prizedesk.helpers import mask_phone
from prizedesk.webapp.deps import CallerContext, client_ip, get_db, get_notifier, require_admin
from prizedesk.webapp.schemas import (
    ApiResponse,
    CompleteRedemptionRequest,
    PageParams,
    PagedResponse,
    PrizeRedemptionRead,
    RedeemablePrize,
    RedemptionConfirmation,
    RedemptionFilter,
    RequestRedemptionRequest,
    RequestRedemptionResult,
    ResendOtpRequest,
)
from prizedesk.webapp.services import (
    available_prizes,
    complete_redemption,
    get_redemption,
    request_redemption,
    resend_redemption_otp,
    search_redemptions,
)

router = APIRouter(prefix="/redemptions", tags=["redemptions"])


# ---- public ----
@router.post("/request", response_model=ApiResponse[RequestRedemptionResult])
async def redemption_request(payload: RequestRedemptionRequest, db=Depends(get_db), notifier=Depends(get_notifier)):
    result = await request_redemption(db, payload.phone_number, prize_award_id=payload.prize_award_id, notifier=notifier)
    if not result.otp_sent:
        return ApiResponse.ok(result, message="No prizes available for redemption.")
    return ApiResponse.ok(result, message=f"Verification code sent to {mask_phone(result.phone_number)}")


@router.post("/complete", response_model=ApiResponse[RedemptionConfirmation])
async def redemption_complete(
        payload: CompleteRedemptionRequest,
        request: Request,
        db=Depends(get_db),
        notifier=Depends(get_notifier),
):
    confirmation = await complete_redemption(db, payload, ip_address=client_ip(request), notifier=notifier)
    return ApiResponse.ok(confirmation, message="Prize redeemed successfully!")


@router.post("/otp/resend", response_model=ApiResponse[RequestRedemptionResult])
async def redemption_otp_resend(payload: ResendOtpRequest, db=Depends(get_db), notifier=Depends(get_notifier)):
    result = await resend_redemption_otp(db, payload.phone_number, notifier=notifier)
    return ApiResponse.ok(result, message=f"Verification code sent to {mask_phone(result.phone_number)}")


@router.get("/available", response_model=ApiResponse[list[RedeemablePrize]])
async def redemption_available(phone: str = Query(..., min_length=1), db=Depends(get_db)):
    return ApiResponse.ok(await available_prizes(db, phone))


# ---- admin ----
@router.get("", response_model=ApiResponse[PagedResponse[PrizeRedemptionRead]])
async def list_prize_redemptions(
        competition_id: Optional[int] = Query(default=None),
        pool_id: Optional[int] = Query(default=None),
        phone: Optional[str] = Query(default=None),
        page: int = Query(default=1, ge=1),
        page_size: int = Query(default=25, ge=1, le=100),
        _: CallerContext = Depends(require_admin),
        db=Depends(get_db),
):
    paging = PageParams(page=page, page_size=page_size)
    items, total = await search_redemptions(
        db, RedemptionFilter(competition_id=competition_id, pool_id=pool_id, phone_number=phone), paging,
    )
    return ApiResponse.ok(PagedResponse[PrizeRedemptionRead](
        items=[PrizeRedemptionRead.model_validate(r) for r in items],
        total_count=total,
        page=paging.page,
        page_size=paging.page_size,
    ))


@router.get("/{award_id}", response_model=ApiResponse[PrizeRedemptionRead])
async def get_prize_redemption(award_id: int, _: CallerContext = Depends(require_admin), db=Depends(get_db)):
    return ApiResponse.ok(PrizeRedemptionRead.model_validate(await get_redemption(db, award_id)))
