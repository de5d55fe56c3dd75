from fastapi import APIRouter, Depends, Response, status

from whatsapp_kit.config import settings
from whatsapp_kit.dependencies import get_otp_service
from whatsapp_kit.schemas.otp import OTPResponse, OTPSendRequest, OTPVerifyRequest
from whatsapp_kit.services.otp_service import OTPService, OTPStatus
from whatsapp_kit.services.result import Result

router = APIRouter(prefix="/otp", tags=["otp"])


def _to_response(result: Result[OTPStatus], response: Response) -> OTPResponse:
    body = OTPResponse(success=result.ok, error=result.error)
    if result.value is not None:
        body.session_id = result.value.session_id
        body.expires_at = result.value.expires_at
        body.attempts_remaining = result.value.attempts_remaining
    if not result.ok:
        # failed verify only exposes the remaining attempts
        body.session_id = None
        body.expires_at = None
        response.status_code = status.HTTP_400_BAD_REQUEST
    return body


@router.post("/send", response_model=OTPResponse)
async def send_otp(
    request: OTPSendRequest,
    response: Response,
    otp: OTPService = Depends(get_otp_service),
):
    result = await otp.send(
        request.to,
        brand=request.brand or settings.otp_brand,
        template=request.template,
        expires_in=request.expires_in,
    )
    return _to_response(result, response)


@router.post("/verify", response_model=OTPResponse)
def verify_otp(
    request: OTPVerifyRequest,
    response: Response,
    otp: OTPService = Depends(get_otp_service),
):
    return _to_response(otp.verify(request.to, request.code), response)
