from typing import Optional

from fastapi import APIRouter, Depends, Query

from prizedesk.webapp.deps import CallerContext, get_db, require_admin
from prizedesk.webapp.schemas import (
    ApiResponse,
    CompetitionCreate,
    CompetitionRead,
    PrizeCreate,
    PrizePoolCreate,
    PrizePoolRead,
    PrizeRead,
    PrizeUpdate,
)
from prizedesk.webapp.services import (
    add_competition,
    add_pool,
    add_prize,
    list_competitions,
    list_pools,
    list_prizes,
    pool_detail,
    prize_detail,
    update_prize,
)

competitions_router = APIRouter(prefix="/competitions", tags=["competitions"])
prize_pools_router = APIRouter(prefix="/prize-pools", tags=["prize-pools"])
prizes_router = APIRouter(prefix="/prizes", tags=["prizes"])


@competitions_router.get("", response_model=ApiResponse[list[CompetitionRead]])
async def competitions_list(
        active_only: bool = Query(default=False),
        _: CallerContext = Depends(require_admin),
        db=Depends(get_db),
):
    items = await list_competitions(db, active_only=active_only)
    return ApiResponse.ok([CompetitionRead.model_validate(c) for c in items])


@competitions_router.post("", response_model=ApiResponse[CompetitionRead], status_code=201)
async def competitions_create(
        payload: CompetitionCreate,
        caller: CallerContext = Depends(require_admin),
        db=Depends(get_db),
):
    obj = await add_competition(db, payload, subject_id=caller.subject_id)
    return ApiResponse.ok(CompetitionRead.model_validate(obj), message="Competition created.")


@prize_pools_router.get("", response_model=ApiResponse[list[PrizePoolRead]])
async def prize_pools_list(
        competition_id: Optional[int] = Query(default=None),
        _: CallerContext = Depends(require_admin),
        db=Depends(get_db),
):
    items = await list_pools(db, competition_id=competition_id)
    return ApiResponse.ok([PrizePoolRead.model_validate(p) for p in items])


@prize_pools_router.post("", response_model=ApiResponse[PrizePoolRead], status_code=201)
async def prize_pools_create(
        payload: PrizePoolCreate,
        caller: CallerContext = Depends(require_admin),
        db=Depends(get_db),
):
    obj = await add_pool(db, payload, subject_id=caller.subject_id)
    return ApiResponse.ok(PrizePoolRead.model_validate(obj), message="Prize pool created.")


@prize_pools_router.get("/{pool_id}", response_model=ApiResponse[PrizePoolRead])
async def prize_pools_get(pool_id: int, _: CallerContext = Depends(require_admin), db=Depends(get_db)):
    return ApiResponse.ok(PrizePoolRead.model_validate(await pool_detail(db, pool_id)))


@prizes_router.get("", response_model=ApiResponse[list[PrizeRead]])
async def prizes_list(
        pool_id: Optional[int] = Query(default=None),
        active_only: bool = Query(default=False),
        _: CallerContext = Depends(require_admin),
        db=Depends(get_db),
):
    items = await list_prizes(db, pool_id=pool_id, active_only=active_only)
    return ApiResponse.ok([PrizeRead.model_validate(p) for p in items])


@prizes_router.post("", response_model=ApiResponse[PrizeRead], status_code=201)
async def prizes_create(
        payload: PrizeCreate,
        caller: CallerContext = Depends(require_admin),
        db=Depends(get_db),
):
    obj = await add_prize(db, payload, subject_id=caller.subject_id)
    return ApiResponse.ok(PrizeRead.model_validate(obj), message="Prize created.")


@prizes_router.get("/{prize_id}", response_model=ApiResponse[PrizeRead])
async def prizes_get(prize_id: int, _: CallerContext = Depends(require_admin), db=Depends(get_db)):
    return ApiResponse.ok(PrizeRead.model_validate(await prize_detail(db, prize_id)))


@prizes_router.patch("/{prize_id}", response_model=ApiResponse[PrizeRead])
async def prizes_update(
        prize_id: int,
        payload: PrizeUpdate,
        caller: CallerContext = Depends(require_admin),
        db=Depends(get_db),
):
    obj = await update_prize(db, prize_id, payload, subject_id=caller.subject_id)
    return ApiResponse.ok(PrizeRead.model_validate(obj), message="Prize updated.")
