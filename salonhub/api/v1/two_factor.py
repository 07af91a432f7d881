from fastapi import APIRouter, Depends, status

from salonhub.api.deps import get_current_user, get_two_factor_service
from salonhub.core.security import create_two_factor_marker, qr_png_base64_from_text
from salonhub.models.user import User
from salonhub.schemas.two_factor import (
    RecoveryCodesOut,
    TwoFADisableIn,
    TwoFADisableOut,
    TwoFAEnableOut,
    TwoFASetupOut,
    TwoFAStatusOut,
    TwoFATokenIn,
    TwoFAVerifyIn,
    TwoFAVerifyOut,
)
from salonhub.services.two_factor import TwoFactorService

router = APIRouter(prefix="/2fa", tags=["2fa"])

@router.post("/setup", response_model=TwoFASetupOut)
async def twofa_setup(
    current_user: User = Depends(get_current_user),
    service: TwoFactorService = Depends(get_two_factor_service),
):
    # a new secret replaces the old one and leaves 2FA disabled until /enable
    result = await service.setup(current_user.id, label=current_user.email)
    qr_b64 = qr_png_base64_from_text(result.provisioning_uri)
    return TwoFASetupOut(
        secret=result.secret,
        otpauth_url=result.provisioning_uri,
        qr_base64_png=qr_b64,
        message=(
            "Scan the QR code with your authenticator app"
            if qr_b64 else "Use the secret key to add the account to your authenticator app"
        ),
    )

@router.post("/enable", response_model=TwoFAEnableOut)
async def twofa_enable(
    body: TwoFATokenIn,
    current_user: User = Depends(get_current_user),
    service: TwoFactorService = Depends(get_two_factor_service),
):
    result = await service.enable(current_user.id, body.token)
    return TwoFAEnableOut(enabled=result.enabled, recovery_codes=result.recovery_codes)

@router.post("/disable", response_model=TwoFADisableOut)
async def twofa_disable(
    body: TwoFADisableIn,
    current_user: User = Depends(get_current_user),
    service: TwoFactorService = Depends(get_two_factor_service),
):
    await service.disable(current_user.id, body.password)
    return TwoFADisableOut()

@router.post("/verify", response_model=TwoFAVerifyOut, status_code=status.HTTP_200_OK)
async def twofa_verify(
    body: TwoFAVerifyIn,
    current_user: User = Depends(get_current_user),
    service: TwoFactorService = Depends(get_two_factor_service),
):
    if not await service.verify_2fa(current_user.id, body.code):
        return TwoFAVerifyOut(valid=False, message="Invalid code")
    return TwoFAVerifyOut(
        valid=True,
        verification_token=create_two_factor_marker(current_user.id),
        message="Code verified successfully",
    )

@router.get("/status", response_model=TwoFAStatusOut)
async def twofa_status(
    current_user: User = Depends(get_current_user),
    service: TwoFactorService = Depends(get_two_factor_service),
):
    st = await service.status(current_user.id)
    return TwoFAStatusOut(
        enabled=st.enabled,
        configured=st.configured,
        remaining_recovery_codes=st.remaining_recovery_codes,
    )

@router.post("/recovery-codes/regenerate", response_model=RecoveryCodesOut)
async def twofa_regenerate_recovery_codes(
    body: TwoFATokenIn,
    current_user: User = Depends(get_current_user),
    service: TwoFactorService = Depends(get_two_factor_service),
):
    codes = await service.regenerate_recovery_codes(current_user.id, body.token)
    return RecoveryCodesOut(recovery_codes=codes)
