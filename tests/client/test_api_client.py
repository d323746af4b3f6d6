import httpx
import pytest
import pytest_asyncio

from portal.client.api_client import PortalApiClient
from portal.client.errors import Forbidden, ServerError, TransportFailure, Unauthenticated, ValidationFailed
from portal.client.session_store import MemorySessionStore
from portal.shared.roles import AccountKind, Role

BASE_URL = "http://portal.test/api/v1"


@pytest.fixture
def store() -> MemorySessionStore:
    return MemorySessionStore()


@pytest_asyncio.fixture
async def api(store):
    async with httpx.AsyncClient(base_url=BASE_URL) as http_client:
        yield PortalApiClient(store, http_client=http_client)


@pytest.mark.asyncio
class TestPortalApiClient:

    async def test_login_fills_the_session_slot(self, api, store, httpx_mock, make_token):
        token = make_token(Role.TEACHER, account_id="u-7")
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE_URL}/auth/staff/login",
            json={"success": True, "data": {"token": token, "token_type": "bearer", "account": {"id": "u-7"}}},
        )

        session = await api.login(AccountKind.STAFF, "t@example.com", "secret", school_code="A")

        assert session.role == Role.TEACHER
        assert store.load().token == token
        sent = httpx_mock.get_request()
        assert "Authorization" not in sent.headers

    async def test_bearer_token_is_sent(self, api, store, httpx_mock, make_token):
        token = make_token(Role.ADMIN)
        store.save_token(token)
        httpx_mock.add_response(
            url=f"{BASE_URL}/teachers?page=2&search=ada",
            json={"success": True, "data": [{"id": "t-1"}], "meta": {"page": 2, "total": 11}},
        )

        response = await api.list_teachers({"search": "ada", "page": 2, "status": None})

        assert response.data == [{"id": "t-1"}]
        assert response.meta["total"] == 11
        assert httpx_mock.get_request().headers["Authorization"] == f"Bearer {token}"

    async def test_missing_session_fails_without_network(self, api, httpx_mock):
        with pytest.raises(Unauthenticated):
            await api.get_teacher("t-1")
        assert httpx_mock.get_requests() == []

    async def test_401_clears_the_session(self, api, store, httpx_mock, make_token):
        store.save_token(make_token())
        httpx_mock.add_response(
            status_code=401,
            json={"success": False, "code": "TOKEN_EXPIRED", "message": "Session expired. Please log in again."},
        )

        with pytest.raises(Unauthenticated) as exc_info:
            await api.teacher_classes()

        assert exc_info.value.expired
        assert store.load() is None

    async def test_403_keeps_the_session(self, api, store, httpx_mock, make_token):
        store.save_token(make_token())
        httpx_mock.add_response(status_code=403, json={"success": False, "code": "FORBIDDEN", "message": "nope"})

        with pytest.raises(Forbidden):
            await api.get_teacher("t-9")
        assert store.load() is not None

    async def test_validation_errors_are_mapped(self, api, store, httpx_mock, make_token):
        store.save_token(make_token(Role.ADMIN))
        httpx_mock.add_response(
            status_code=422,
            json={"success": False, "code": "VALIDATION_FAILED", "message": "Invalid input.", "errors": {"email": ["bad"]}},
        )

        with pytest.raises(ValidationFailed) as exc_info:
            await api.create_teacher({"email": "x"})
        assert exc_info.value.errors == {"email": ["bad"]}

    async def test_server_error(self, api, store, httpx_mock, make_token):
        store.save_token(make_token())
        httpx_mock.add_response(status_code=503, text="unavailable")
        with pytest.raises(ServerError):
            await api.teacher_classes()

    async def test_transport_error_keeps_the_session(self, api, store, httpx_mock, make_token):
        store.save_token(make_token())
        httpx_mock.add_exception(httpx.ConnectError("connection refused"))

        with pytest.raises(TransportFailure):
            await api.teacher_classes()
        assert store.load() is not None

    async def test_failed_login_does_not_touch_the_slot(self, api, store, httpx_mock, make_token):
        store.save_token(make_token(Role.ADMIN))
        httpx_mock.add_response(
            status_code=401, json={"success": False, "code": "INVALID_LOGIN", "message": "Invalid email or password."}
        )

        with pytest.raises(Unauthenticated):
            await api.login(AccountKind.STAFF, "t@example.com", "wrong", school_code="A")
        assert store.load() is not None

    async def test_logout_clears_the_slot(self, api, store, make_token):
        store.save_token(make_token())
        api.logout()
        assert store.load() is None
