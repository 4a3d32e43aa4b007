from fastapi import APIRouter, Depends

from prizedesk.helpers import mask_phone, normalize_phone
from prizedesk.webapp.deps import get_db, get_notifier
from prizedesk.webapp.schemas import ApiResponse, SendOtpRequest, SendOtpResult, VerifyOtpRequest, VerifyOtpResult
from prizedesk.webapp.services import issue_otp, validate_otp

router = APIRouter(prefix="/otp", tags=["otp"])


@router.post("/send", response_model=ApiResponse[SendOtpResult])
async def otp_send(payload: SendOtpRequest, db=Depends(get_db), notifier=Depends(get_notifier)):
    # codes are keyed by the stored form: bare E.164 digits
    phone = normalize_phone(payload.phone_number)
    otp = await issue_otp(db, phone, payload.purpose, notifier=notifier)
    return ApiResponse.ok(
        SendOtpResult(phone_number=phone, purpose=payload.purpose, expires_at=otp.expires_at),
        message=f"Verification code sent to {mask_phone(phone)}",
    )


@router.post("/verify", response_model=ApiResponse[VerifyOtpResult])
async def otp_verify(payload: VerifyOtpRequest, db=Depends(get_db)):
    otp = await validate_otp(db, normalize_phone(payload.phone_number), payload.purpose, payload.code)
    return ApiResponse.ok(
        VerifyOtpResult(verified=True, purpose=payload.purpose, related_entity_id=otp.related_entity_id),
        message="Verification successful.",
    )
