# portal/backend/models/db_models.py

from pydantic import BaseModel, Field
from datetime import datetime, date
from enum import Enum
from typing import Optional, List

from portal.shared.roles import Role


class SchoolAccessMode(str, Enum):
    """
    Explicit breadth of a SuperAdmin's access. Zero grant rows only means
    "all schools" while the mode says so; SPECIFIC_SCHOOLS with no rows grants
    nothing.
    """
    ALL_SCHOOLS = "ALL_SCHOOLS"
    SPECIFIC_SCHOOLS = "SPECIFIC_SCHOOLS"


class AttendanceStatus(str, Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"


class University(BaseModel):
    """
    Represents a tenant, mapping to the 'universities' table.
    """
    id: str
    code: str = Field(..., description="Unique, upper-cased tenant code")
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None


class School(BaseModel):
    """
    Represents a school, mapping to the 'schools' table. Belongs to exactly one university.
    """
    id: str
    university_id: str
    code: str
    name: str
    type: str = Field("PRIMARY", description="PRIMARY, HIGH_SCHOOL, DEGREE...")
    is_active: bool = True


class Account(BaseModel):
    """
    Common account columns shared by super_admins, users (staff), students and parents.
    """
    id: str
    name: str
    email: str
    password_hash: Optional[str] = Field(None, description="werkzeug formatında tuzlu hash; API yanıtlarına asla girmez")
    role: Role
    university_id: str
    school_id: Optional[str] = None
    is_active: bool = True
    last_login_at: Optional[datetime] = None
    status: Optional[str] = Field(None, description="Öğrenci hesapları için ACTIVE/SUSPENDED")


class SuperAdmin(Account):
    role: Role = Role.SUPER_ADMIN
    school_access_mode: SchoolAccessMode = SchoolAccessMode.ALL_SCHOOLS


class SchoolAccessGrants(BaseModel):
    """Result of the single grant lookup the scope resolver performs."""
    super_admin_id: str
    mode: SchoolAccessMode
    school_ids: List[str] = []


class TeacherAssignment(BaseModel):
    id: str
    teacher_id: str
    grade: str
    class_name: str
    subject: str
    academic_year: str


class TeacherProfile(BaseModel):
    """
    Represents a teacher, mapping to the 'teacher_profiles' table. Owned by a staff user.
    """
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
    status: str = "ACTIVE"
    joining_date: Optional[date] = None
    phone: Optional[str] = None
    experience_years: Optional[int] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    assignments: List[TeacherAssignment] = []


class TeacherClass(BaseModel):
    """A class section the teacher is class teacher of, for one academic year."""
    class_section_id: str
    academic_year_id: str
    school_id: str
    grade: str
    section: str
    academic_year_name: str


class RosterEntry(BaseModel):
    student_id: str
    roll_number: Optional[int] = None
    name: str
    status: Optional[AttendanceStatus] = None
    remarks: str = ""


class AttendanceRecord(BaseModel):
    """
    Represents a single student's attendance for one day, mapping to the
    'attendance_records' table (unique per student/date/academic year).
    """
    student_id: str
    class_section_id: str
    academic_year_id: str
    date: date
    status: AttendanceStatus
    remarks: Optional[str] = None
    marked_by_id: str
