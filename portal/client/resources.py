import logging
from datetime import date
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Union

from .api_client import PortalApiClient
from .sync_cache import CacheEntry, CancelToken, FetchResult, SyncCache

logger = logging.getLogger(__name__)

TEACHER_DIRECTORY = "teacher-directory"
TEACHER_DETAIL = "teacher-detail"
TEACHER_CLASSES = "teacher-classes"
ATTENDANCE_ROSTER = "attendance-roster"


class RosterKey(NamedTuple):
    class_section_id: str
    academic_year_id: str
    date: Union[str, date]

    def as_filters(self) -> Dict[str, str]:
        day = self.date.isoformat() if isinstance(self.date, date) else self.date
        return {"class_section_id": self.class_section_id, "academic_year_id": self.academic_year_id, "date": day}


class PortalResources:
    """
    Registers the portal's resource kinds on a SyncCache and pairs every
    mutation with the invalidations it requires.
    """

    def __init__(self, api: PortalApiClient, cache: Optional[SyncCache] = None):
        self.api = api
        self.cache = cache or SyncCache()
        self.cache.register(TEACHER_DIRECTORY, self._fetch_directory, id_extractor=lambda rows: [row["id"] for row in rows])
        self.cache.register(TEACHER_DETAIL, self._fetch_detail, id_extractor=lambda teacher: [teacher["id"]])
        self.cache.register(TEACHER_CLASSES, self._fetch_classes)
        self.cache.register(ATTENDANCE_ROSTER, self._fetch_roster)

    # --- Fetchers ---

    async def _fetch_directory(self, filters: Dict[str, str], token: CancelToken) -> FetchResult:
        response = await self.api.list_teachers(filters)
        return FetchResult(payload=response.data, page_meta=response.meta)

    async def _fetch_detail(self, filters: Dict[str, str], token: CancelToken) -> Any:
        return await self.api.get_teacher(filters["id"])

    async def _fetch_classes(self, filters: Dict[str, str], token: CancelToken) -> Any:
        return await self.api.teacher_classes()

    async def _fetch_roster(self, filters: Dict[str, str], token: CancelToken) -> Any:
        return await self.api.class_students(filters["class_section_id"], filters["academic_year_id"], filters["date"])

    # --- Reads ---

    async def teachers(self, filters: Optional[Mapping[str, Any]] = None) -> CacheEntry:
        """Payload is the page of teachers, page_meta the pagination block."""
        return await self.cache.get_entry(TEACHER_DIRECTORY, filters)

    async def teacher(self, teacher_id: str) -> Dict[str, Any]:
        return await self.cache.get(TEACHER_DETAIL, {"id": teacher_id})

    async def teacher_classes(self) -> List[Dict[str, Any]]:
        return await self.cache.get(TEACHER_CLASSES)

    async def roster(self, key: RosterKey, force: bool = False) -> List[Dict[str, Any]]:
        return await self.cache.get(ATTENDANCE_ROSTER, key.as_filters(), force=force)

    # --- Mutations (mutate, then invalidate) ---

    def _forget_teacher(self, teacher_id: str):
        self.cache.invalidate(TEACHER_DETAIL, {"id": teacher_id})
        # Sayfalama ve sıralama değişebileceği için tüm liste sayfaları düşer.
        self.cache.invalidate_kind(TEACHER_DIRECTORY)

    async def create_teacher(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        created = await self.api.create_teacher(payload)
        self.cache.invalidate_kind(TEACHER_DIRECTORY)
        return created

    async def update_teacher(self, teacher_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        updated = await self.api.update_teacher(teacher_id, fields)
        self._forget_teacher(teacher_id)
        return updated

    async def deactivate_teacher(self, teacher_id: str) -> Dict[str, Any]:
        result = await self.api.delete_teacher(teacher_id)
        self._forget_teacher(teacher_id)
        return result

    async def add_assignment(self, teacher_id: str, assignment: Dict[str, Any]) -> Dict[str, Any]:
        created = await self.api.add_assignment(teacher_id, assignment)
        self._forget_teacher(teacher_id)
        return created

    async def remove_assignment(self, teacher_id: str, assignment_id: str):
        await self.api.remove_assignment(teacher_id, assignment_id)
        self._forget_teacher(teacher_id)

    async def submit_attendance(self, key: RosterKey, records: List[Dict[str, Any]]) -> Dict[str, Any]:
        filters = key.as_filters()
        summary = await self.api.mark_attendance({**filters, "records": records})
        self.cache.invalidate(ATTENDANCE_ROSTER, filters)
        logger.info(f"Attendance submitted for {filters['class_section_id']} on {filters['date']}.")
        return summary

    def reset(self):
        """On logout nothing cached for the previous account may survive."""
        self.cache.clear()
