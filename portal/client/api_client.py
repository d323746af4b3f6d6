import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from .config import client_settings
from .errors import (
    ClientError, Conflict, Forbidden, NotFound, ServerError, TransportFailure, Unauthenticated, ValidationFailed,
)
from .session_store import SessionStore, StoredSession
from portal.shared.filters import clean_filters
from portal.shared.roles import AccountKind

logger = logging.getLogger(__name__)

_ERRORS_BY_STATUS = {
    401: Unauthenticated,
    403: Forbidden,
    404: NotFound,
    409: Conflict,
}


class ApiResponse:
    """Success envelope: data plus optional message and page meta."""

    def __init__(self, data: Any = None, message: Optional[str] = None, meta: Optional[Dict[str, Any]] = None):
        self.data = data
        self.message = message
        self.meta = meta


class PortalApiClient:
    """
    Thin async transport over the REST surface.

    The bearer token is read from the injected SessionStore on every call, so
    a session cleared elsewhere makes the next call fail closed without a
    network round-trip. A 401 clears the store; a 403 does not.
    """

    def __init__(self, session_store: SessionStore, http_client: Optional[httpx.AsyncClient] = None, base_url: Optional[str] = None):
        self.session_store = session_store
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=base_url or client_settings.PORTAL_API_URL,
            timeout=client_settings.CLIENT_REQUEST_TIMEOUT_SECONDS,
        )

    async def aclose(self):
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    # --- Core request ---

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        authorized: bool = True,
    ) -> ApiResponse:
        headers = {}
        if authorized:
            session = self.session_store.load()
            if session is None:
                raise Unauthenticated("You are not logged in.")
            headers["Authorization"] = f"Bearer {session.token}"

        try:
            response = await self._http.request(
                method, path, params=clean_filters(params) or None, json=json, headers=headers
            )
        except httpx.TransportError as e:
            logger.warning(f"{method} {path} failed: {type(e).__name__}")
            raise TransportFailure("Could not reach the server. Please try again.") from e

        return self._unwrap(response, authorized)

    def _unwrap(self, response: httpx.Response, authorized: bool) -> ApiResponse:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.is_success and body.get("success", True):
            return ApiResponse(body.get("data"), body.get("message"), body.get("meta"))

        message = body.get("message") or response.reason_phrase
        code = body.get("code")
        status = response.status_code

        if status == 401:
            if authorized:
                # Oturum geçersiz: tek slot temizlenir, kullanıcı login'e döner.
                self.session_store.clear()
            raise Unauthenticated(message, code=code)
        if status == 422 or code == "VALIDATION_FAILED":
            raise ValidationFailed(message, errors=body.get("errors"), code=code)
        error_class = _ERRORS_BY_STATUS.get(status)
        if error_class is not None:
            raise error_class(message, code=code)
        if status >= 500:
            raise ServerError(message, code=code)
        raise ClientError(message, code=code)

    # --- Auth ---

    async def login(
        self,
        account_kind: AccountKind,
        email: str,
        password: str,
        school_code: Optional[str] = None,
        university_code: Optional[str] = None,
    ) -> StoredSession:
        body = {"email": email, "password": password}
        if school_code:
            body["school_code"] = school_code
        if university_code:
            body["university_code"] = university_code
        result = await self.request("POST", f"/auth/{AccountKind(account_kind).value}/login", json=body, authorized=False)
        return self.session_store.save_token(result.data["token"], user=result.data.get("account"))

    async def register_super_admin(self, university: Dict[str, Any], admin: Dict[str, Any]) -> StoredSession:
        result = await self.request(
            "POST", "/auth/super-admin/register", json={"university": university, "admin": admin}, authorized=False
        )
        return self.session_store.save_token(result.data["token"], user=result.data.get("account"))

    def logout(self):
        self.session_store.clear()

    async def super_admin_me(self) -> Dict[str, Any]:
        return (await self.request("GET", "/auth/super-admin/me")).data

    # --- Teachers ---

    async def list_teachers(self, filters: Optional[Mapping[str, Any]] = None) -> ApiResponse:
        return await self.request("GET", "/teachers", params=filters)

    async def get_teacher(self, teacher_id: str) -> Dict[str, Any]:
        return (await self.request("GET", f"/teachers/{teacher_id}")).data

    async def create_teacher(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return (await self.request("POST", "/teachers", json=payload)).data

    async def update_teacher(self, teacher_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return (await self.request("PATCH", f"/teachers/{teacher_id}", json=fields)).data

    async def delete_teacher(self, teacher_id: str) -> Dict[str, Any]:
        return (await self.request("DELETE", f"/teachers/{teacher_id}")).data

    async def add_assignment(self, teacher_id: str, assignment: Dict[str, Any]) -> Dict[str, Any]:
        return (await self.request("POST", f"/teachers/{teacher_id}/assignments", json=assignment)).data

    async def remove_assignment(self, teacher_id: str, assignment_id: str):
        await self.request("DELETE", f"/teachers/{teacher_id}/assignments/{assignment_id}")

    # --- Attendance ---

    async def teacher_classes(self) -> list:
        return (await self.request("GET", "/attendance/teacher/classes")).data

    async def class_students(self, class_section_id: str, academic_year_id: str, on_date: str) -> list:
        params = {"class_section_id": class_section_id, "academic_year_id": academic_year_id, "date": on_date}
        return (await self.request("GET", "/attendance/teacher/class-students", params=params)).data

    async def mark_attendance(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return (await self.request("POST", "/attendance/teacher/mark", json=payload)).data
