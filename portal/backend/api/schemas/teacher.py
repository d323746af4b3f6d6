# portal/backend/api/schemas/teacher.py
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from datetime import date, datetime
from typing import List, Optional


class AssignmentRequest(BaseModel):
    grade: str
    class_name: str
    subject: str
    academic_year: str


class AssignmentResponse(AssignmentRequest):
    id: str
    teacher_id: str

    model_config = ConfigDict(from_attributes=True)


class TeacherCreateRequest(BaseModel):
    school_id: Optional[str] = Field(None, description="Okul admin'i için kendi okulu varsayılır.")
    email: EmailStr
    password: str = Field(..., min_length=8)
    employee_code: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    department: Optional[str] = None
    designation: Optional[str] = None
    employment_type: Optional[str] = None
    joining_date: Optional[date] = None
    phone: Optional[str] = None
    experience_years: Optional[int] = Field(None, ge=0)


class TeacherUpdateRequest(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = Field(None, min_length=1)
    department: Optional[str] = None
    designation: Optional[str] = None
    employment_type: Optional[str] = None
    status: Optional[str] = None
    joining_date: Optional[date] = None
    phone: Optional[str] = None
    experience_years: Optional[int] = Field(None, ge=0)


class TeacherResponse(BaseModel):
    id: str
    user_id: str
    school_id: str
    employee_code: str
    first_name: str
    last_name: str
    email: Optional[str] = None
    department: Optional[str] = None
    designation: Optional[str] = None
    employment_type: Optional[str] = None
    status: str
    joining_date: Optional[date] = None
    phone: Optional[str] = None
    experience_years: Optional[int] = None
    is_active: bool
    created_at: Optional[datetime] = None
    assignments: List[AssignmentResponse] = []

    model_config = ConfigDict(from_attributes=True)
