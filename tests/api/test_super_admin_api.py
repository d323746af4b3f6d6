from unittest.mock import AsyncMock

import pytest

from portal.backend.api.dependencies import get_scope, get_super_admin_service
from portal.backend.main import app
from portal.backend.models.db_models import Account, School, SchoolAccessGrants, SchoolAccessMode
from portal.backend.services.errors import Forbidden, NotFound
from portal.backend.services.scope_resolver import AllSchoolsInTenant
from portal.shared.roles import Role

SCOPE = AllSchoolsInTenant(tenant_id="uni-1")


@pytest.fixture
def super_admin_service():
    service = AsyncMock()
    app.dependency_overrides[get_super_admin_service] = lambda: service
    app.dependency_overrides[get_scope] = lambda: SCOPE
    return service


class TestSuperAdminApi:

    def test_list_schools(self, client, super_admin_service, auth_header):
        super_admin_service.list_schools.return_value = [School(id="s-a", university_id="uni-1", code="A", name="School A")]

        response = client.get("/api/v1/super-admin/schools", headers=auth_header(Role.SUPER_ADMIN))

        assert response.status_code == 200
        assert response.json()["data"][0]["code"] == "A"

    def test_school_admin_cannot_reach_super_admin_routes(self, client, super_admin_service, auth_header):
        response = client.get("/api/v1/super-admin/schools", headers=auth_header(Role.ADMIN))
        assert response.status_code == 403
        super_admin_service.list_schools.assert_not_called()

    def test_create_school_validates_code(self, client, super_admin_service, auth_header):
        response = client.post(
            "/api/v1/super-admin/schools", json={"code": "no spaces", "name": "School"},
            headers=auth_header(Role.SUPER_ADMIN),
        )
        assert response.status_code == 422
        assert "code" in response.json()["errors"]

    def test_create_school_admin_hides_password_hash(self, client, super_admin_service, auth_header):
        super_admin_service.create_school_admin.return_value = Account(
            id="adm-1", name="Admin", email="adm@example.com", password_hash="scrypt:secret",
            role=Role.ADMIN, university_id="uni-1", school_id="s-a",
        )

        response = client.post(
            "/api/v1/super-admin/school-admins",
            json={"school_id": "s-a", "name": "Admin", "email": "adm@example.com", "password": "long-password"},
            headers=auth_header(Role.SUPER_ADMIN),
        )

        assert response.status_code == 201
        assert "password_hash" not in response.json()["data"]

    def test_grant_and_revoke(self, client, super_admin_service, auth_header):
        super_admin_service.grant_school.return_value = SchoolAccessGrants(
            super_admin_id="sa-2", mode=SchoolAccessMode.SPECIFIC_SCHOOLS, school_ids=["s-a"]
        )
        super_admin_service.revoke_school.return_value = SchoolAccessGrants(
            super_admin_id="sa-2", mode=SchoolAccessMode.ALL_SCHOOLS, school_ids=[]
        )
        headers = auth_header(Role.SUPER_ADMIN)

        granted = client.post("/api/v1/super-admin/access-grants", json={"school_id": "s-a", "super_admin_id": "sa-2"}, headers=headers)
        revoked = client.delete("/api/v1/super-admin/access-grants/s-a?super_admin_id=sa-2", headers=headers)

        assert granted.status_code == 201
        assert granted.json()["data"]["mode"] == "SPECIFIC_SCHOOLS"
        assert revoked.json()["data"]["mode"] == "ALL_SCHOOLS"
        assert super_admin_service.revoke_school.call_args[0][2:] == ("s-a", "sa-2")

    def test_restricted_grant_change_is_forbidden(self, client, super_admin_service, auth_header):
        super_admin_service.revoke_school.side_effect = Forbidden()
        response = client.delete("/api/v1/super-admin/access-grants/s-a", headers=auth_header(Role.SUPER_ADMIN))
        assert response.status_code == 403

    def test_missing_grant_is_not_found(self, client, super_admin_service, auth_header):
        super_admin_service.revoke_school.side_effect = NotFound("No such grant.")
        response = client.delete("/api/v1/super-admin/access-grants/s-z", headers=auth_header(Role.SUPER_ADMIN))

        assert response.status_code == 404
        assert response.json() == {"success": False, "code": "NOT_FOUND", "message": "No such grant."}

    def test_unknown_route_uses_error_envelope(self, client):
        response = client.get("/api/v1/nothing-here")
        assert response.status_code == 404
        assert response.json()["success"] is False
        assert response.json()["code"] == "NOT_FOUND"
