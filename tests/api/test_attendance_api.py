from datetime import date
from unittest.mock import AsyncMock

import pytest

from portal.backend.api.dependencies import get_attendance_service, get_scope
from portal.backend.main import app
from portal.backend.models.db_models import RosterEntry, TeacherClass
from portal.backend.services.attendance_service import MarkSummary
from portal.backend.services.errors import ValidationFailed
from portal.backend.services.scope_resolver import SingleSchool
from portal.shared.roles import Role


@pytest.fixture
def attendance_service():
    service = AsyncMock()
    app.dependency_overrides[get_attendance_service] = lambda: service
    app.dependency_overrides[get_scope] = lambda: SingleSchool(tenant_id="uni-1", school_id="s-a")
    return service


class TestAttendanceApi:

    def test_classes_for_teacher(self, client, attendance_service, auth_header):
        attendance_service.get_classes.return_value = [
            TeacherClass(class_section_id="cs-1", academic_year_id="ay-1", school_id="s-a", grade="7", section="A", academic_year_name="2025-2026")
        ]
        response = client.get("/api/v1/attendance/teacher/classes", headers=auth_header(Role.TEACHER))

        assert response.status_code == 200
        assert response.json()["data"][0]["section"] == "A"

    def test_admin_cannot_mark(self, client, attendance_service, auth_header):
        response = client.get("/api/v1/attendance/teacher/classes", headers=auth_header(Role.ADMIN))
        assert response.status_code == 403

    def test_roster_takes_date_query(self, client, attendance_service, auth_header):
        attendance_service.get_class_students.return_value = [RosterEntry(student_id="st-1", roll_number=1, name="One")]

        response = client.get(
            "/api/v1/attendance/teacher/class-students",
            params={"class_section_id": "cs-1", "academic_year_id": "ay-1", "date": "2026-03-02"},
            headers=auth_header(Role.TEACHER),
        )

        assert response.status_code == 200
        assert response.json()["meta"] == {"total": 1}
        args = attendance_service.get_class_students.call_args[0]
        assert args[2:] == ("cs-1", "ay-1", date(2026, 3, 2))

    def test_roster_requires_date(self, client, attendance_service, auth_header):
        response = client.get(
            "/api/v1/attendance/teacher/class-students",
            params={"class_section_id": "cs-1", "academic_year_id": "ay-1"},
            headers=auth_header(Role.TEACHER),
        )
        assert response.status_code == 422
        assert "date" in response.json()["errors"]

    def test_mark_returns_summary(self, client, attendance_service, auth_header):
        attendance_service.mark_attendance.return_value = MarkSummary(date=date(2026, 3, 2), total=2, present=1, absent=1)
        payload = {
            "class_section_id": "cs-1", "academic_year_id": "ay-1", "date": "2026-03-02",
            "records": [
                {"student_id": "st-1", "status": "PRESENT"},
                {"student_id": "st-2", "status": "ABSENT", "remarks": "sick"},
            ],
        }

        response = client.post("/api/v1/attendance/teacher/mark", json=payload, headers=auth_header(Role.TEACHER))

        assert response.status_code == 200
        assert response.json()["message"] == "Attendance saved: 1 present, 1 absent."
        entries = attendance_service.mark_attendance.call_args.kwargs["entries"]
        assert [e.student_id for e in entries] == ["st-1", "st-2"]

    def test_unset_status_is_rejected(self, client, attendance_service, auth_header):
        payload = {
            "class_section_id": "cs-1", "academic_year_id": "ay-1", "date": "2026-03-02",
            "records": [{"student_id": "st-1", "status": "UNSET"}],
        }
        response = client.post("/api/v1/attendance/teacher/mark", json=payload, headers=auth_header(Role.TEACHER))

        assert response.status_code == 422
        assert "records.0.status" in response.json()["errors"]
        attendance_service.mark_attendance.assert_not_called()

    def test_service_validation_errors_keep_field_map(self, client, attendance_service, auth_header):
        attendance_service.mark_attendance.side_effect = ValidationFailed(
            "Invalid attendance records.", errors={"records": ["Student not enrolled: st-9"]}
        )
        payload = {
            "class_section_id": "cs-1", "academic_year_id": "ay-1", "date": "2026-03-02",
            "records": [{"student_id": "st-9", "status": "PRESENT"}],
        }
        response = client.post("/api/v1/attendance/teacher/mark", json=payload, headers=auth_header(Role.TEACHER))

        assert response.status_code == 422
        assert response.json()["errors"] == {"records": ["Student not enrolled: st-9"]}
