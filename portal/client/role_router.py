import logging
from typing import Dict, NamedTuple, Optional

from .errors import Forbidden, Unauthenticated
from .session_store import SessionClaim, SessionStore
from portal.shared.roles import Role

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"
PUBLIC_PATHS = (LOGIN_PATH, "/register")

# Her rolün tek ve diğerleriyle kesişmeyen bir alt ağacı vardır.
ROLE_SUBTREES: Dict[Role, str] = {
    Role.SUPER_ADMIN: "/super-admin",
    Role.ADMIN: "/admin",
    Role.TEACHER: "/teacher",
    Role.STUDENT: "/student",
    Role.PARENT: "/parent",
}

_missing = set(Role) - set(ROLE_SUBTREES)
if _missing:
    raise RuntimeError(f"Roles without a navigation subtree: {sorted(r.value for r in _missing)}")
if len(set(ROLE_SUBTREES.values())) != len(ROLE_SUBTREES):
    raise RuntimeError("Navigation subtrees must be distinct per role.")


class RouteDecision(NamedTuple):
    subtree: str
    redirect: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.redirect is None


def home_path(role: Role) -> str:
    return f"{ROLE_SUBTREES[role]}/dashboard"


def _normalize(path: str) -> str:
    path = (path or "/").split("?", 1)[0].split("#", 1)[0]
    if not path.startswith("/"):
        path = "/" + path
    return path.rstrip("/") or "/"


def path_in_subtree(path: str, subtree: str) -> bool:
    """Segment-aware: '/teachers' is not inside '/teacher'."""
    path = _normalize(path)
    return path == subtree or path.startswith(subtree + "/")


def route(claim: Optional[SessionClaim], requested_path: str) -> RouteDecision:
    """
    Pure mapping from (claim, path) to the subtree the caller may see and the
    redirect to apply when the path is outside it.
    """
    if claim is None:
        if any(path_in_subtree(requested_path, public) for public in PUBLIC_PATHS):
            return RouteDecision(subtree=LOGIN_PATH)
        return RouteDecision(subtree=LOGIN_PATH, redirect=LOGIN_PATH)

    subtree = ROLE_SUBTREES[claim.role]
    if path_in_subtree(requested_path, subtree):
        return RouteDecision(subtree=subtree)
    return RouteDecision(subtree=subtree, redirect=home_path(claim.role))


def route_session(store: SessionStore, requested_path: str) -> RouteDecision:
    return route(store.current_claim(), requested_path)


def redirect_for_error(claim: Optional[SessionClaim], error: Exception) -> Optional[str]:
    """Authentication failures go to login; authorization failures go to the caller's own home."""
    if isinstance(error, Unauthenticated):
        return LOGIN_PATH
    if isinstance(error, Forbidden):
        return home_path(claim.role) if claim else LOGIN_PATH
    return None
