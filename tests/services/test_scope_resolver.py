import pytest
import pytest_asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from portal.backend.models.db_models import School, SchoolAccessGrants, SchoolAccessMode
from portal.backend.services.errors import Forbidden
from portal.backend.services.scope_resolver import (
    AllSchoolsInTenant, ScopeResolver, SingleSchool, SpecificSchools, _Scope,
    authorize_school, ensure_in_scope, narrow_school_filter,
)
from portal.backend.tools.claims import Claim
from portal.shared.roles import AccountKind, Role

# --- Test Fixtures ---

def make_claim(role: Role, kind: AccountKind, school_id=None, tenant_id="uni-demo", account_id="acc-1") -> Claim:
    now = datetime.now(timezone.utc)
    return Claim(
        account_id=account_id, role=role, account_kind=kind, tenant_id=tenant_id,
        school_id=school_id, issued_at=now, expires_at=now + timedelta(hours=1),
    )


@pytest.fixture
def super_admin_claim() -> Claim:
    return make_claim(Role.SUPER_ADMIN, AccountKind.SUPER_ADMIN, account_id="sa-1")


@pytest_asyncio.fixture
async def resolver_instance():
    mock_db_client = AsyncMock()
    return ScopeResolver(db_client=mock_db_client), mock_db_client

# --- Test Scenarios ---

@pytest.mark.asyncio
class TestScopeResolver:

    async def test_super_admin_without_grants_gets_all_schools(self, resolver_instance, super_admin_claim):
        """Scenario: DEMO tenant registered, no grants created -> all schools of DEMO."""
        resolver, mock_db_client = resolver_instance
        mock_db_client.get_school_access_grants.return_value = SchoolAccessGrants(
            super_admin_id="sa-1", mode=SchoolAccessMode.ALL_SCHOOLS, school_ids=[]
        )

        scope = await resolver.resolve(super_admin_claim)

        assert scope == AllSchoolsInTenant(tenant_id="uni-demo")
        assert scope.school_ids() is None
        mock_db_client.get_school_access_grants.assert_awaited_once_with("sa-1", "uni-demo")

    async def test_super_admin_with_grants_gets_exactly_granted_schools(self, resolver_instance, super_admin_claim):
        resolver, mock_db_client = resolver_instance
        mock_db_client.get_school_access_grants.return_value = SchoolAccessGrants(
            super_admin_id="sa-1", mode=SchoolAccessMode.SPECIFIC_SCHOOLS, school_ids=["s-a", "s-b"]
        )

        scope = await resolver.resolve(super_admin_claim)

        assert isinstance(scope, SpecificSchools)
        assert scope.schools == frozenset({"s-a", "s-b"})

    async def test_adding_and_removing_grants_changes_resolution(self, resolver_instance, super_admin_claim):
        resolver, mock_db_client = resolver_instance
        mock_db_client.get_school_access_grants.side_effect = [
            SchoolAccessGrants(super_admin_id="sa-1", mode=SchoolAccessMode.ALL_SCHOOLS),
            SchoolAccessGrants(super_admin_id="sa-1", mode=SchoolAccessMode.SPECIFIC_SCHOOLS, school_ids=["s-a"]),
            SchoolAccessGrants(super_admin_id="sa-1", mode=SchoolAccessMode.SPECIFIC_SCHOOLS, school_ids=["s-a"]),
            SchoolAccessGrants(super_admin_id="sa-1", mode=SchoolAccessMode.ALL_SCHOOLS),
        ]

        first = await resolver.resolve(super_admin_claim)
        granted = await resolver.resolve(super_admin_claim)
        granted_again = await resolver.resolve(super_admin_claim)
        revoked = await resolver.resolve(super_admin_claim)

        assert isinstance(first, AllSchoolsInTenant)
        assert granted == granted_again == SpecificSchools(tenant_id="uni-demo", schools=frozenset({"s-a"}))
        assert isinstance(revoked, AllSchoolsInTenant)

    async def test_specific_mode_with_no_rows_fails_closed(self, resolver_instance, super_admin_claim):
        """Scenario: Grant rows vanished without the mode being reset -> nothing is accessible."""
        resolver, mock_db_client = resolver_instance
        mock_db_client.get_school_access_grants.return_value = SchoolAccessGrants(
            super_admin_id="sa-1", mode=SchoolAccessMode.SPECIFIC_SCHOOLS, school_ids=[]
        )

        scope = await resolver.resolve(super_admin_claim)

        assert scope.school_ids() == frozenset()
        assert not scope.permits("uni-demo", "s-a")

    async def test_unknown_super_admin_is_forbidden(self, resolver_instance, super_admin_claim):
        resolver, mock_db_client = resolver_instance
        mock_db_client.get_school_access_grants.return_value = None

        with pytest.raises(Forbidden):
            await resolver.resolve(super_admin_claim)

    @pytest.mark.parametrize("role,kind", [
        (Role.ADMIN, AccountKind.STAFF),
        (Role.TEACHER, AccountKind.STAFF),
        (Role.STUDENT, AccountKind.STUDENT),
        (Role.PARENT, AccountKind.PARENT),
    ])
    async def test_school_roles_get_single_school_without_lookup(self, resolver_instance, role, kind):
        resolver, mock_db_client = resolver_instance

        scope = await resolver.resolve(make_claim(role, kind, school_id="s-a"))

        assert scope == SingleSchool(tenant_id="uni-demo", school_id="s-a")
        mock_db_client.get_school_access_grants.assert_not_called()

    async def test_school_role_without_school_is_forbidden(self, resolver_instance):
        resolver, _ = resolver_instance
        with pytest.raises(Forbidden):
            await resolver.resolve(make_claim(Role.TEACHER, AccountKind.STAFF, school_id=None))

    async def test_authorize_school_hides_existence(self):
        """Scenario: Missing school and other-tenant school give the same Forbidden."""
        mock_db_client = AsyncMock()
        scope = AllSchoolsInTenant(tenant_id="uni-demo")

        mock_db_client.get_school.return_value = None
        with pytest.raises(Forbidden) as missing:
            await authorize_school(mock_db_client, scope, "s-x")

        mock_db_client.get_school.return_value = School(id="s-x", university_id="uni-other", code="X", name="Other")
        with pytest.raises(Forbidden) as foreign:
            await authorize_school(mock_db_client, scope, "s-x")

        assert missing.value.message == foreign.value.message

    async def test_authorize_school_returns_school_in_scope(self):
        mock_db_client = AsyncMock()
        school = School(id="s-a", university_id="uni-demo", code="A", name="School A")
        mock_db_client.get_school.return_value = school

        assert await authorize_school(mock_db_client, AllSchoolsInTenant(tenant_id="uni-demo"), "s-a") == school


class TestScopeChecks:

    def test_all_schools_permits_any_school_of_tenant_only(self):
        scope = AllSchoolsInTenant(tenant_id="uni-demo")
        assert scope.permits("uni-demo", "anything")
        assert scope.permits("uni-demo")
        assert not scope.permits("uni-other", "anything")

    def test_specific_schools_requires_named_school(self):
        scope = SpecificSchools(tenant_id="uni-demo", schools=frozenset({"s-a"}))
        assert scope.permits("uni-demo", "s-a")
        assert not scope.permits("uni-demo", "s-b")
        assert not scope.permits("uni-demo")
        assert not scope.permits("uni-other", "s-a")

    def test_ensure_in_scope_raises_forbidden(self):
        with pytest.raises(Forbidden):
            ensure_in_scope(SingleSchool(tenant_id="uni-demo", school_id="s-a"), "uni-demo", "s-b")

    def test_narrow_school_filter(self):
        all_scope = AllSchoolsInTenant(tenant_id="uni-demo")
        specific = SpecificSchools(tenant_id="uni-demo", schools=frozenset({"s-b", "s-a"}))

        assert narrow_school_filter(all_scope, None) is None
        assert narrow_school_filter(all_scope, "s-z") == ["s-z"]
        assert narrow_school_filter(specific, None) == ["s-a", "s-b"]
        assert narrow_school_filter(specific, "s-a") == ["s-a"]
        with pytest.raises(Forbidden):
            narrow_school_filter(specific, "s-z")

    def test_scope_base_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            _Scope(tenant_id="uni-demo")
