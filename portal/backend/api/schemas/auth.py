# portal/backend/api/schemas/auth.py
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import List, Optional

from ...models.db_models import SchoolAccessMode
from portal.shared.roles import AccountKind, Role


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    school_code: Optional[str] = Field(None, description="Staff, öğrenci ve veli girişleri için zorunlu.")
    university_code: Optional[str] = Field(None, description="Okul kodu birden fazla üniversitede varsa gerekli.")


class UniversityRegistration(BaseModel):
    code: str = Field(..., pattern=r"^[A-Za-z0-9_]{2,20}$")
    name: str = Field(..., min_length=2)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    website: Optional[str] = None


class AdminRegistration(BaseModel):
    name: str = Field(..., min_length=2)
    email: EmailStr
    password: str = Field(..., min_length=8)
    phone: Optional[str] = None


class RegisterRequest(BaseModel):
    university: UniversityRegistration
    admin: AdminRegistration


class AccountResponse(BaseModel):
    id: str
    name: str
    email: str
    role: Role
    account_kind: AccountKind
    university_id: str
    school_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    account: AccountResponse

    model_config = ConfigDict(from_attributes=True)


class UniversityResponse(BaseModel):
    id: str
    code: str
    name: str
    city: Optional[str] = None
    website: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SchoolResponse(BaseModel):
    id: str
    university_id: str
    code: str
    name: str
    type: str
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class SuperAdminProfileResponse(BaseModel):
    admin: AccountResponse
    school_access_mode: SchoolAccessMode
    university: UniversityResponse
    schools: List[SchoolResponse]

    model_config = ConfigDict(from_attributes=True)
