from pydantic import BaseModel, Field

# --- requests ---
class TwoFATokenIn(BaseModel):
    token: str = Field(..., min_length=1, description="6-digit code from the authenticator app")

class TwoFAVerifyIn(BaseModel):
    code: str = Field(..., min_length=1, description="6-digit code or 8-character recovery code")

class TwoFADisableIn(BaseModel):
    password: str = Field(..., min_length=1)

# --- responses ---
class TwoFASetupOut(BaseModel):
    secret: str
    otpauth_url: str
    qr_base64_png: str | None = None
    message: str = "Scan the QR code with your authenticator app"

class TwoFAEnableOut(BaseModel):
    enabled: bool = True
    recovery_codes: list[str]
    message: str = "2FA enabled successfully. Save your recovery codes!"

class TwoFADisableOut(BaseModel):
    enabled: bool = False
    message: str = "2FA has been disabled"

class TwoFAVerifyOut(BaseModel):
    valid: bool
    verification_token: str | None = None
    message: str

class TwoFAStatusOut(BaseModel):
    enabled: bool
    configured: bool
    remaining_recovery_codes: int

class RecoveryCodesOut(BaseModel):
    recovery_codes: list[str]
    message: str = "Save these recovery codes in a safe place!"
