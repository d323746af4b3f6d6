# portal/backend/api/schemas/super_admin.py
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from datetime import datetime
from typing import List, Optional

from ...models.db_models import SchoolAccessMode


class SchoolCreateRequest(BaseModel):
    code: str = Field(..., pattern=r"^[A-Za-z0-9_]{2,20}$")
    name: str = Field(..., min_length=2)
    type: str = Field("PRIMARY", description="PRIMARY, HIGH_SCHOOL, DEGREE...")


class SchoolAdminCreateRequest(BaseModel):
    school_id: str
    name: str = Field(..., min_length=2)
    email: EmailStr
    password: str = Field(..., min_length=8)


class SchoolAdminResponse(BaseModel):
    id: str
    name: str
    email: str
    school_id: Optional[str] = None
    is_active: bool
    last_login_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AccessGrantRequest(BaseModel):
    school_id: str
    super_admin_id: Optional[str] = Field(None, description="Boşsa isteği yapan super admin.")


class AccessGrantsResponse(BaseModel):
    super_admin_id: str
    mode: SchoolAccessMode
    school_ids: List[str]

    model_config = ConfigDict(from_attributes=True)
