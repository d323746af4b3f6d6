import logging
from collections import Counter
from datetime import date
from typing import List, Optional

from pydantic import BaseModel

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import AttendanceRecord, AttendanceStatus, RosterEntry, TeacherClass, TeacherProfile
from ..tools.claims import Claim
from .errors import Forbidden, NotFound, ValidationFailed
from .scope_resolver import ScopeSet, ensure_in_scope

logger = logging.getLogger(__name__)


class MarkEntry(BaseModel):
    student_id: str
    status: AttendanceStatus
    remarks: Optional[str] = None


class MarkSummary(BaseModel):
    date: date
    total: int
    present: int
    absent: int


class AttendanceService:
    """
    Class-teacher attendance: listing the teacher's classes, loading a roster
    for a day and persisting a fully marked roster.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    async def _teacher_of(self, claim: Claim) -> TeacherProfile:
        teacher = await self.db_client.get_teacher_by_user(claim.account_id)
        if teacher is None:
            raise NotFound("Teacher profile not found.")
        return teacher

    async def _class_of(self, claim: Claim, scope: ScopeSet, class_section_id: str, academic_year_id: str) -> TeacherClass:
        teacher = await self._teacher_of(claim)
        teacher_class = await self.db_client.get_class_for_teacher(class_section_id, academic_year_id, teacher.id)
        if teacher_class is None:
            logger.warning(f"Teacher '{teacher.id}' is not the class teacher of section '{class_section_id}'.")
            raise Forbidden()
        ensure_in_scope(scope, claim.tenant_id, teacher_class.school_id)
        return teacher_class

    async def get_classes(self, claim: Claim, scope: ScopeSet) -> List[TeacherClass]:
        teacher = await self._teacher_of(claim)
        classes = await self.db_client.get_teacher_classes(teacher.id)
        return [c for c in classes if scope.permits(claim.tenant_id, c.school_id)]

    async def get_class_students(
        self, claim: Claim, scope: ScopeSet, class_section_id: str, academic_year_id: str, on_date: date
    ) -> List[RosterEntry]:
        await self._class_of(claim, scope, class_section_id, academic_year_id)
        return await self.db_client.get_roster(class_section_id, academic_year_id, on_date)

    async def mark_attendance(
        self,
        claim: Claim,
        scope: ScopeSet,
        class_section_id: str,
        academic_year_id: str,
        on_date: date,
        entries: List[MarkEntry],
    ) -> MarkSummary:
        if not entries:
            raise ValidationFailed("No attendance records given.", {"records": ["At least one record is required."]})
        duplicates = sorted(sid for sid, count in Counter(e.student_id for e in entries).items() if count > 1)
        if duplicates:
            raise ValidationFailed("Duplicate students in request.", {"records": [f"Duplicate student: {sid}" for sid in duplicates]})

        await self._class_of(claim, scope, class_section_id, academic_year_id)

        # Sadece şubeye aktif kayıtlı öğrenciler işaretlenebilir.
        roster = await self.db_client.get_roster(class_section_id, academic_year_id, on_date)
        enrolled = {entry.student_id for entry in roster}
        unknown = sorted(e.student_id for e in entries if e.student_id not in enrolled)
        if unknown:
            raise ValidationFailed(
                "Some students are not enrolled in this class.",
                {"records": [f"Student not enrolled: {sid}" for sid in unknown]},
            )

        records = [
            AttendanceRecord(
                student_id=entry.student_id,
                class_section_id=class_section_id,
                academic_year_id=academic_year_id,
                date=on_date,
                status=entry.status,
                remarks=entry.remarks,
                marked_by_id=claim.account_id,
            )
            for entry in entries
        ]
        await self.db_client.upsert_attendance_records(records)

        present = sum(1 for r in records if r.status == AttendanceStatus.PRESENT)
        summary = MarkSummary(date=on_date, total=len(records), present=present, absent=len(records) - present)
        logger.info(
            f"Attendance for section '{class_section_id}' on {on_date} saved: "
            f"{summary.present} present, {summary.absent} absent."
        )
        return summary
