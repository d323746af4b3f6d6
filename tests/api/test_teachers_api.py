from unittest.mock import AsyncMock

import pytest

from portal.backend.api.dependencies import get_scope, get_teacher_service
from portal.backend.main import app
from portal.backend.models.db_models import TeacherProfile
from portal.backend.services.errors import Conflict, Forbidden
from portal.backend.services.scope_resolver import SingleSchool
from portal.backend.services.teacher_service import PageMeta
from portal.shared.roles import Role

SCOPE = SingleSchool(tenant_id="uni-1", school_id="s-a")


@pytest.fixture
def teacher_service():
    service = AsyncMock()
    app.dependency_overrides[get_teacher_service] = lambda: service
    app.dependency_overrides[get_scope] = lambda: SCOPE
    return service


@pytest.fixture
def profile() -> TeacherProfile:
    return TeacherProfile(
        id="t-1", user_id="u-9", school_id="s-a", employee_code="E1",
        first_name="Ada", last_name="Lovelace", email="ada@example.com",
    )


class TestTeachersApi:

    def test_list_carries_pagination_meta(self, client, teacher_service, auth_header, profile):
        teacher_service.list_teachers.return_value = ([profile], PageMeta(page=2, limit=1, total=3, total_pages=3))

        response = client.get("/api/v1/teachers?page=2&limit=1&search=ada", headers=auth_header(Role.ADMIN))

        assert response.status_code == 200
        body = response.json()
        assert body["data"][0]["id"] == "t-1"
        assert body["meta"] == {"page": 2, "limit": 1, "total": 3, "total_pages": 3}
        scope, filters = teacher_service.list_teachers.call_args[0]
        assert scope == SCOPE
        assert (filters.page, filters.limit, filters.search) == (2, 1, "ada")

    def test_list_rejects_bad_paging(self, client, teacher_service, auth_header):
        response = client.get("/api/v1/teachers?page=0", headers=auth_header(Role.ADMIN))
        assert response.status_code == 422
        assert "page" in response.json()["errors"]

    @pytest.mark.parametrize("role", [Role.TEACHER, Role.STUDENT, Role.PARENT])
    def test_non_managers_are_forbidden(self, client, teacher_service, auth_header, role):
        response = client.get("/api/v1/teachers", headers=auth_header(role))
        assert response.status_code == 403
        teacher_service.list_teachers.assert_not_called()

    def test_out_of_scope_teacher_is_forbidden(self, client, teacher_service, auth_header):
        teacher_service.get_teacher.side_effect = Forbidden()
        response = client.get("/api/v1/teachers/t-elsewhere", headers=auth_header(Role.ADMIN))
        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    def test_create_teacher(self, client, teacher_service, auth_header, profile):
        teacher_service.create_teacher.return_value = profile
        payload = {
            "email": "ada@example.com", "password": "long-password", "employee_code": "E1",
            "first_name": "Ada", "last_name": "Lovelace",
        }

        response = client.post("/api/v1/teachers", json=payload, headers=auth_header(Role.SUPER_ADMIN))

        assert response.status_code == 201
        assert response.json()["message"] == "Teacher created successfully."
        sent = teacher_service.create_teacher.call_args[0][1]
        assert sent["employee_code"] == "E1"

    def test_duplicate_teacher_is_conflict(self, client, teacher_service, auth_header):
        teacher_service.create_teacher.side_effect = Conflict("A teacher with this employee code already exists.")
        payload = {
            "email": "ada@example.com", "password": "long-password", "employee_code": "E1",
            "first_name": "Ada", "last_name": "Lovelace",
        }
        response = client.post("/api/v1/teachers", json=payload, headers=auth_header(Role.ADMIN))
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    def test_update_sends_only_given_fields(self, client, teacher_service, auth_header, profile):
        teacher_service.update_teacher.return_value = profile
        response = client.patch("/api/v1/teachers/t-1", json={"department": "Math"}, headers=auth_header(Role.ADMIN))

        assert response.status_code == 200
        assert teacher_service.update_teacher.call_args[0][2] == {"department": "Math"}

    def test_delete_marks_resigned(self, client, teacher_service, auth_header, profile):
        teacher_service.deactivate_teacher.return_value = profile.model_copy(update={"status": "RESIGNED", "is_active": False})
        response = client.delete("/api/v1/teachers/t-1", headers=auth_header(Role.ADMIN))

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "RESIGNED"

    def test_remove_assignment_has_no_data(self, client, teacher_service, auth_header):
        teacher_service.remove_assignment.return_value = None
        response = client.delete("/api/v1/teachers/t-1/assignments/a-1", headers=auth_header(Role.ADMIN))

        assert response.status_code == 200
        assert response.json()["data"] is None
        teacher_service.remove_assignment.assert_awaited_once_with(SCOPE, "t-1", "a-1")
