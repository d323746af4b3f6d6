# portal/backend/api/schemas/attendance.py
from pydantic import BaseModel, ConfigDict, Field
from datetime import date
from typing import List, Optional

from ...models.db_models import AttendanceStatus


class TeacherClassResponse(BaseModel):
    class_section_id: str
    academic_year_id: str
    school_id: str
    grade: str
    section: str
    academic_year_name: str

    model_config = ConfigDict(from_attributes=True)


class RosterEntryResponse(BaseModel):
    student_id: str
    roll_number: Optional[int] = None
    name: str
    status: Optional[AttendanceStatus] = Field(None, description="O gün için daha önce kaydedilmiş durum.")
    remarks: str = ""

    model_config = ConfigDict(from_attributes=True)


class MarkRecord(BaseModel):
    student_id: str
    status: AttendanceStatus
    remarks: Optional[str] = None


class MarkAttendanceRequest(BaseModel):
    class_section_id: str
    academic_year_id: str
    date: date
    records: List[MarkRecord]


class MarkSummaryResponse(BaseModel):
    date: date
    total: int
    present: int
    absent: int

    model_config = ConfigDict(from_attributes=True)
