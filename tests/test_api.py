from prizedesk.webapp.models import AwardStatus
from tests.conftest import OTHER_PHONE, PHONE, PHONE_E164, make_token
from tests.test_otp import wrong_code

API = "/api/v1"


async def test_admin_routes_need_a_token(client, make_prize):
    prize_id = await make_prize(total=1)
    body = {"prize_id": prize_id, "phone_number": PHONE}

    resp = await client.post(f"{API}/awards", json=body)
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "UNAUTHORIZED"

    resp = await client.post(f"{API}/awards", json=body, headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401

    member = {"Authorization": f"Bearer {make_token(sub='user-9', roles=('member',))}"}
    resp = await client.post(f"{API}/awards", json=body, headers=member)
    assert resp.status_code == 403
    assert resp.json() == {
        "success": False,
        "data": None,
        "message": None,
        "error": {"message": "You are not allowed to perform this action.", "code": "FORBIDDEN", "errors": None},
    }


async def test_award_prize(client, admin_headers, make_prize, gateway, dispatcher):
    prize_id = await make_prize(total=1)

    resp = await client.post(
        f"{API}/awards",
        json={"prize_id": prize_id, "phone_number": PHONE, "expiry_days": 14},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    payload = resp.json()
    assert payload["success"] is True
    assert payload["message"] == "Prize awarded."
    award = payload["data"]
    assert award["phone_number"] == PHONE_E164
    assert award["status"] == AwardStatus.awarded.value
    assert award["is_redeemable"] is True
    assert award["awarded_by"] == "admin-1"
    assert award["prize"]["name"] == "Coffee voucher"
    assert award["notification_status"] == "Pending"

    await dispatcher.drain()
    assert [phone for phone, _ in gateway.sent] == [PHONE_E164]

    resp = await client.post(
        f"{API}/awards", json={"prize_id": prize_id, "phone_number": OTHER_PHONE}, headers=admin_headers,
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "OUT_OF_STOCK"

    resp = await client.get(f"{API}/prizes/{prize_id}", headers=admin_headers)
    prize = resp.json()["data"]
    assert (prize["remaining_quantity"], prize["awarded_quantity"], prize["outstanding_quantity"]) == (0, 1, 1)


async def test_award_prize_errors(client, admin_headers, make_prize):
    prize_id = await make_prize(total=1)

    resp = await client.post(f"{API}/awards", json={"prize_id": prize_id, "phone_number": "12"}, headers=admin_headers)
    assert resp.status_code == 422
    error = resp.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert "phone_number" in error["errors"]

    resp = await client.post(f"{API}/awards", json={"prize_id": 999, "phone_number": PHONE}, headers=admin_headers)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


async def test_cancel_and_list_awards(client, admin_headers, make_prize):
    prize_id = await make_prize(total=3)
    ids = []
    for phone in (PHONE, OTHER_PHONE, PHONE):
        resp = await client.post(
            f"{API}/awards",
            json={"prize_id": prize_id, "phone_number": phone, "send_notification": False},
            headers=admin_headers,
        )
        ids.append(resp.json()["data"]["id"])

    resp = await client.post(f"{API}/awards/{ids[0]}/cancel", json={"reason": "duplicate"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "Cancelled"

    resp = await client.post(f"{API}/awards/{ids[0]}/cancel", json={"reason": "again"}, headers=admin_headers)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "CANCELLED"

    resp = await client.get(f"{API}/awards", params={"phone": PHONE, "page_size": 1}, headers=admin_headers)
    page = resp.json()["data"]
    assert page["total_count"] == 2
    assert page["total_pages"] == 2
    assert page["has_next_page"] is True
    assert len(page["items"]) == 1

    resp = await client.get(f"{API}/awards", params={"status": "Awarded"}, headers=admin_headers)
    assert sorted(a["id"] for a in resp.json()["data"]["items"]) == ids[1:]

    resp = await client.get(f"{API}/awards/by-phone/{OTHER_PHONE}", headers=admin_headers)
    assert [a["id"] for a in resp.json()["data"]] == [ids[1]]


async def test_bulk_award(client, admin_headers, make_pool, make_prize):
    pool_id = await make_pool()
    await make_prize(total=1, pool_id=pool_id)

    resp = await client.post(
        f"{API}/awards/bulk",
        json={"pool_id": pool_id, "phone_numbers": [PHONE, "not a phone", OTHER_PHONE], "send_notification": False},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    result = resp.json()["data"]
    assert (result["total_requested"], result["successful"], result["failed"]) == (3, 1, 2)
    assert [r["error_code"] for r in result["results"]] == [None, "INVALID_PHONE", "OUT_OF_STOCK"]


async def test_public_redemption_flow(client, admin_headers, make_prize, dispatcher, gateway):
    prize_id = await make_prize(total=1)
    resp = await client.post(
        f"{API}/awards",
        json={"prize_id": prize_id, "phone_number": PHONE, "send_notification": False},
        headers=admin_headers,
    )
    award_id = resp.json()["data"]["id"]

    resp = await client.get(f"{API}/redemptions/available", params={"phone": PHONE})
    assert [p["prize_award_id"] for p in resp.json()["data"]] == [award_id]

    resp = await client.post(f"{API}/redemptions/request", json={"phone_number": PHONE})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["otp_sent"] is True
    assert data["phone_number"] == PHONE_E164
    assert resp.json()["message"] == "Verification code sent to 278***4567"

    await dispatcher.drain()
    code = gateway.last_code(PHONE_E164)

    complete = {"phone_number": PHONE, "prize_award_id": award_id, "otp_code": wrong_code(code)}
    resp = await client.post(f"{API}/redemptions/complete", json=complete)
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "OTP_INVALID"
    assert resp.json()["error"]["errors"] == {"remaining_attempts": 2}

    complete["otp_code"] = code
    resp = await client.post(f"{API}/redemptions/complete", json=complete, headers={"X-Forwarded-For": "203.0.113.9"})
    assert resp.status_code == 200
    confirmation = resp.json()["data"]
    assert confirmation["prize_award_id"] == award_id
    assert confirmation["prize_name"] == "Coffee voucher"

    resp = await client.get(f"{API}/redemptions/{award_id}", headers=admin_headers)
    assert resp.json()["data"]["redeemed_from_ip"] == "203.0.113.9"

    resp = await client.get(f"{API}/awards/{award_id}", headers=admin_headers)
    detail = resp.json()["data"]
    assert detail["status"] == "Redeemed"
    assert detail["redemption"]["reference"] == confirmation["reference"]

    resp = await client.get(f"{API}/redemptions", headers=admin_headers)
    assert resp.json()["data"]["total_count"] == 1


async def test_request_with_nothing_to_redeem(client):
    resp = await client.post(f"{API}/redemptions/request", json={"phone_number": PHONE})
    assert resp.status_code == 200
    assert resp.json()["data"]["otp_sent"] is False
    assert resp.json()["message"] == "No prizes available for redemption."

    resp = await client.post(f"{API}/redemptions/otp/resend", json={"phone_number": PHONE})
    assert resp.status_code == 404


async def test_otp_send_and_verify(client, dispatcher, gateway):
    resp = await client.post(f"{API}/otp/send", json={"phone_number": PHONE, "purpose": "Login"})
    assert resp.status_code == 200
    assert resp.json()["data"]["purpose"] == "Login"

    await dispatcher.drain()
    code = gateway.last_code(PHONE_E164)

    resp = await client.post(f"{API}/otp/verify", json={"phone_number": PHONE, "purpose": "Login", "code": code})
    assert resp.status_code == 200
    assert resp.json()["data"]["verified"] is True

    resp = await client.post(f"{API}/otp/verify", json={"phone_number": PHONE, "purpose": "Login", "code": code})
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "OTP_NOT_FOUND"


async def test_catalogue(client, admin_headers):
    resp = await client.post(f"{API}/competitions", json={"name": "Spring draw"}, headers=admin_headers)
    assert resp.status_code == 201
    competition_id = resp.json()["data"]["id"]

    resp = await client.post(
        f"{API}/prize-pools", json={"name": "Main pool", "competition_id": competition_id}, headers=admin_headers,
    )
    assert resp.status_code == 201
    pool_id = resp.json()["data"]["id"]

    resp = await client.post(
        f"{API}/prizes",
        json={"pool_id": pool_id, "name": "Headphones", "monetary_value": "799.00", "total_quantity": 2},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    prize = resp.json()["data"]
    assert (prize["total_quantity"], prize["remaining_quantity"]) == (2, 2)

    resp = await client.patch(f"{API}/prizes/{prize['id']}", json={"total_quantity": 5}, headers=admin_headers)
    assert resp.status_code == 200
    assert (resp.json()["data"]["total_quantity"], resp.json()["data"]["remaining_quantity"]) == (5, 5)

    resp = await client.get(f"{API}/prize-pools/{pool_id}", headers=admin_headers)
    assert [p["name"] for p in resp.json()["data"]["prizes"]] == ["Headphones"]

    resp = await client.get(f"{API}/competitions", headers=admin_headers)
    assert [c["name"] for c in resp.json()["data"]] == ["Spring draw"]

    resp = await client.post(f"{API}/prizes", json={"pool_id": pool_id, "name": "", "total_quantity": 1},
                             headers=admin_headers)
    assert resp.status_code == 422


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "ok"


async def test_short_international_numbers_survive_the_request_models(client, admin_headers, make_prize, dispatcher, gateway):
    prize_id = await make_prize(total=2)

    for raw, digits in (("+65 6123 4567", "6561234567"), ("+47 412 34 567", "4741234567")):
        resp = await client.post(
            f"{API}/awards",
            json={"prize_id": prize_id, "phone_number": raw, "send_notification": False},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["phone_number"] == digits

        resp = await client.post(f"{API}/redemptions/request", json={"phone_number": raw})
        assert resp.status_code == 200
        assert resp.json()["data"]["otp_sent"] is True
        assert resp.json()["data"]["phone_number"] == digits

    resp = await client.post(f"{API}/otp/send", json={"phone_number": "+65 6123 4567"})
    assert resp.json()["data"]["phone_number"] == "6561234567"
    await dispatcher.drain()
    code = gateway.last_code("6561234567")

    resp = await client.post(
        f"{API}/otp/verify", json={"phone_number": "+65 6123 4567", "purpose": "Verification", "code": code},
    )
    assert resp.status_code == 200
