from typing import Optional

from fastapi import APIRouter, Depends, Query

from prizedesk.webapp.deps import CallerContext, get_db, get_notifier, require_admin
from prizedesk.webapp.models import AwardStatus
from prizedesk.webapp.schemas import (
    ApiResponse,
    AwardFilter,
    AwardPrizeRequest,
    BulkAwardRequest,
    BulkAwardResult,
    CancelAwardRequest,
    PageParams,
    PagedResponse,
    PrizeAwardDetail,
    PrizeAwardRead,
)
from prizedesk.webapp.services import (
    awards_for_phone,
    bulk_issue_awards,
    cancel_award,
    expire_overdue_awards,
    get_award_detail,
    issue_award,
    resend_award_notification,
    search_awards,
)

router = APIRouter(prefix="/awards", tags=["awards"])


@router.post("", response_model=ApiResponse[PrizeAwardRead], status_code=201)
async def award_prize(
        payload: AwardPrizeRequest,
        caller: CallerContext = Depends(require_admin),
        db=Depends(get_db),
        notifier=Depends(get_notifier),
):
    award = await issue_award(
        db,
        payload.prize_id,
        payload.phone_number,
        competition_id=payload.competition_id,
        expiry_days=payload.expiry_days,
        awarded_by=caller.subject_id,
        external_reference=payload.external_reference,
        send_notification=payload.send_notification,
        notifier=notifier,
    )
    return ApiResponse.ok(PrizeAwardRead.model_validate(award), message="Prize awarded.")


@router.post("/bulk", response_model=ApiResponse[BulkAwardResult])
async def award_prizes_bulk(
        payload: BulkAwardRequest,
        caller: CallerContext = Depends(require_admin),
        db=Depends(get_db),
        notifier=Depends(get_notifier),
):
    result = await bulk_issue_awards(db, payload, awarded_by=caller.subject_id, notifier=notifier)
    return ApiResponse.ok(result, message=f"{result.successful} of {result.total_requested} prize(s) awarded.")


@router.post("/expire-overdue", response_model=ApiResponse[int])
async def expire_overdue(_: CallerContext = Depends(require_admin), db=Depends(get_db)):
    count = await expire_overdue_awards(db)
    return ApiResponse.ok(count, message=f"{count} award(s) expired.")


@router.get("", response_model=ApiResponse[PagedResponse[PrizeAwardRead]])
async def list_prize_awards(
        status: Optional[AwardStatus] = Query(default=None),
        prize_id: Optional[int] = Query(default=None),
        pool_id: Optional[int] = Query(default=None),
        competition_id: Optional[int] = Query(default=None),
        phone: Optional[str] = Query(default=None),
        page: int = Query(default=1, ge=1),
        page_size: int = Query(default=25, ge=1, le=100),
        _: CallerContext = Depends(require_admin),
        db=Depends(get_db),
):
    filters = AwardFilter(
        status=status, prize_id=prize_id, pool_id=pool_id, competition_id=competition_id, phone_number=phone,
    )
    paging = PageParams(page=page, page_size=page_size)
    items, total = await search_awards(db, filters, paging)
    return ApiResponse.ok(PagedResponse[PrizeAwardRead](
        items=[PrizeAwardRead.model_validate(a) for a in items],
        total_count=total,
        page=paging.page,
        page_size=paging.page_size,
    ))


@router.get("/by-phone/{phone}", response_model=ApiResponse[list[PrizeAwardRead]])
async def prize_awards_by_phone(phone: str, _: CallerContext = Depends(require_admin), db=Depends(get_db)):
    awards = await awards_for_phone(db, phone)
    return ApiResponse.ok([PrizeAwardRead.model_validate(a) for a in awards])


@router.get("/{award_id}", response_model=ApiResponse[PrizeAwardDetail])
async def get_prize_award(award_id: int, _: CallerContext = Depends(require_admin), db=Depends(get_db)):
    award = await get_award_detail(db, award_id)
    return ApiResponse.ok(PrizeAwardDetail.model_validate(award))


@router.post("/{award_id}/cancel", response_model=ApiResponse[PrizeAwardRead])
async def cancel_prize_award(
        award_id: int,
        payload: CancelAwardRequest,
        caller: CallerContext = Depends(require_admin),
        db=Depends(get_db),
):
    award = await cancel_award(db, award_id, payload.reason, subject_id=caller.subject_id)
    return ApiResponse.ok(PrizeAwardRead.model_validate(award), message="Prize award cancelled.")


@router.post("/{award_id}/resend-notification", response_model=ApiResponse[PrizeAwardRead])
async def resend_notification(
        award_id: int,
        _: CallerContext = Depends(require_admin),
        db=Depends(get_db),
        notifier=Depends(get_notifier),
):
    award = await resend_award_notification(db, award_id, notifier=notifier)
    return ApiResponse.ok(PrizeAwardRead.model_validate(award), message="Notification queued.")
