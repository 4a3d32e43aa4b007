import json

from sqlalchemy import func, select

from prizedesk.webapp.crud import adjust_total, get_audit_trail, get_prize, take_one
from prizedesk.webapp.models import AwardStatus, PrizeAward
from prizedesk.webapp.schemas import PrizeUpdate
from prizedesk.webapp.services import cancel_award, issue_award, update_prize
from tests.conftest import OTHER_PHONE, PHONE


async def test_take_one_is_guarded_against_stale_reads(session_factory, make_prize):
    prize_id = await make_prize(total=1)

    async with session_factory() as first, session_factory() as second:
        # both requests saw one unit left
        assert (await get_prize(first, prize_id)).remaining_quantity == 1
        assert (await get_prize(second, prize_id)).remaining_quantity == 1

        assert await take_one(first, prize_id) is True
        await first.commit()

        assert await take_one(second, prize_id) is False
        await second.rollback()

    async with session_factory() as check:
        prize = await get_prize(check, prize_id)
        assert prize.remaining_quantity == 0
        assert prize.awarded_quantity == 1


async def test_take_one_refuses_inactive_prize(db, make_prize):
    prize_id = await make_prize(total=5, is_active=False)
    assert await take_one(db, prize_id) is False


async def test_ledger_matches_award_rows(db, make_prize):
    prize_id = await make_prize(total=4)

    first = await issue_award(db, prize_id, PHONE)
    await issue_award(db, prize_id, OTHER_PHONE)
    await issue_award(db, prize_id, PHONE)
    await cancel_award(db, first.id, "duplicate entry")

    prize = await get_prize(db, prize_id)
    assert prize.total_quantity == 4
    assert prize.remaining_quantity + prize.awarded_quantity == prize.total_quantity
    assert (
        prize.remaining_quantity
        + prize.outstanding_quantity
        + prize.redeemed_quantity
        + prize.cancelled_quantity
        + prize.expired_quantity
    ) == prize.total_quantity

    rows = dict((await db.execute(
        select(PrizeAward.status, func.count()).where(PrizeAward.prize_id == prize_id).group_by(PrizeAward.status)
    )).all())
    assert rows.get(AwardStatus.awarded, 0) == prize.outstanding_quantity == 2
    assert rows.get(AwardStatus.cancelled, 0) == prize.cancelled_quantity == 1
    # cancelling does not restock
    assert prize.remaining_quantity == 1


async def test_adjust_total_moves_remaining_with_it(db, make_prize):
    prize_id = await make_prize(total=3)
    await issue_award(db, prize_id, PHONE)

    assert await adjust_total(db, prize_id, 2) is True
    await db.commit()
    prize = await get_prize(db, prize_id)
    assert (prize.total_quantity, prize.remaining_quantity, prize.awarded_quantity) == (5, 4, 1)

    # cannot shrink below what is already awarded
    assert await adjust_total(db, prize_id, -5) is False
    await db.rollback()
    prize = await get_prize(db, prize_id)
    assert (prize.total_quantity, prize.remaining_quantity) == (5, 4)


async def test_prize_update_is_audited_with_before_and_after(db, make_prize):
    prize_id = await make_prize(total=2, name="Mug")

    prize = await update_prize(db, prize_id, PrizeUpdate(name="Travel mug", total_quantity=4), subject_id="admin-1")
    assert (prize.name, prize.total_quantity, prize.remaining_quantity) == ("Travel mug", 4, 4)

    snapshot = json.loads(prize.to_json())
    assert snapshot["name"] == "Travel mug"
    assert snapshot["remaining_quantity"] == 4

    (entry,) = await get_audit_trail(db, "Prize", prize_id)
    assert entry.subject_id == "admin-1"
    details = json.loads(entry.details)
    assert details["before"] == {"name": "Mug", "total_quantity": 2}
    assert details["after"] == {"name": "Travel mug", "total_quantity": 4}
