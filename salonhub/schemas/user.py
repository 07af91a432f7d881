from pydantic import BaseModel, EmailStr
from enum import Enum

class Role(str, Enum):
    customer = "customer"
    salon_owner = "salon_owner"
    admin = "admin"

class UserOut(BaseModel):
    id: str
    full_name: str
    email: EmailStr
    role: Role
    is_active: bool
    is_2fa_enabled: bool

    class Config:
        from_attributes = True
