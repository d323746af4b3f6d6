import logging
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Union

from pydantic import BaseModel

from .errors import Aborted, ClientError, IncompleteRoster, InvalidTransition, SubmissionInProgress
from .resources import PortalResources, RosterKey

logger = logging.getLogger(__name__)


class MarkingState(str, Enum):
    IDLE = "IDLE"
    LOADING = "LOADING"
    READY = "READY"
    EDITING = "EDITING"
    SUBMITTING = "SUBMITTING"
    SUBMITTED = "SUBMITTED"
    SAVE_FAILED = "SAVE_FAILED"


class MarkStatus(str, Enum):
    UNSET = "UNSET"
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"


class DraftEntry(BaseModel):
    student_id: str
    name: str
    roll_number: Optional[int] = None
    status: MarkStatus = MarkStatus.UNSET
    remark: str = ""
    # Sunucuda o gün için zaten kayıtlı olan durum; sadece gösterim için.
    recorded_status: Optional[str] = None


class SubmitResult(NamedTuple):
    total: int
    present: int
    absent: int


# Taslak üzerinde değişiklik yapılabilen durumlar
_EDITABLE = (MarkingState.READY, MarkingState.EDITING, MarkingState.SAVE_FAILED)


class AttendanceMarking:
    """
    Draft attendance for one (class section, academic year, date) key.

    LOADING -> READY -> EDITING/SUBMITTING -> SUBMITTED or SAVE_FAILED.
    Every student starts UNSET; submit is refused until none are left, and a
    failed save can be retried as is. Loading a different key throws the
    draft away.
    """

    def __init__(self, resources: PortalResources):
        self.resources = resources
        self.state = MarkingState.IDLE
        self.key: Optional[RosterKey] = None
        self.entries: Dict[str, DraftEntry] = {}
        self.result: Optional[SubmitResult] = None
        self.last_error: Optional[ClientError] = None
        self._load_seq = 0

    # --- Loading ---

    async def load(self, key: RosterKey, force: bool = False) -> bool:
        """
        Loads the roster for key into a fresh draft. Returns False when this
        load was superseded by a newer one.
        """
        if self.state == MarkingState.SUBMITTING:
            raise SubmissionInProgress()

        if self.entries and key != self.key:
            logger.info(f"Discarding unsaved attendance draft for {self.key}.")
        self._load_seq += 1
        seq = self._load_seq
        self.key = key
        self.entries = {}
        self.result = None
        self.last_error = None
        self.state = MarkingState.LOADING

        try:
            roster = await self.resources.roster(key, force=force)
        except Aborted:
            if seq == self._load_seq:
                # Dışarıdan iptal (logout, reset): LOADING'de takılı kalınmaz.
                self.state = MarkingState.IDLE
                self.key = None
            return False
        except ClientError as e:
            if seq == self._load_seq:
                self.state = MarkingState.IDLE
                self.last_error = e
            raise

        if seq != self._load_seq:
            return False

        self.entries = {
            row["student_id"]: DraftEntry(
                student_id=row["student_id"],
                name=row["name"],
                roll_number=row.get("roll_number"),
                recorded_status=row.get("status"),
            )
            for row in roster
        }
        self.state = MarkingState.READY
        return True

    # --- Editing ---

    def _require_editable(self):
        if self.state == MarkingState.SUBMITTING:
            raise SubmissionInProgress()
        if self.state not in _EDITABLE:
            raise InvalidTransition(f"Attendance cannot be edited in state {self.state.value}.")

    def _entry(self, student_id: str) -> DraftEntry:
        try:
            return self.entries[student_id]
        except KeyError:
            raise KeyError(f"Student '{student_id}' is not on this roster.") from None

    def mark(self, student_id: str, status: Union[MarkStatus, str]):
        self._require_editable()
        status = MarkStatus(status)
        if status == MarkStatus.UNSET:
            raise ValueError("A student can only be marked PRESENT or ABSENT.")
        self._entry(student_id).status = status
        self.state = MarkingState.EDITING

    def mark_all_present(self):
        self._require_editable()
        for entry in self.entries.values():
            entry.status = MarkStatus.PRESENT
        self.state = MarkingState.EDITING

    def set_remark(self, student_id: str, remark: str):
        self._require_editable()
        self._entry(student_id).remark = remark
        self.state = MarkingState.EDITING

    @property
    def remaining(self) -> int:
        return sum(1 for e in self.entries.values() if e.status == MarkStatus.UNSET)

    def counts(self) -> Dict[MarkStatus, int]:
        counts = {status: 0 for status in MarkStatus}
        for entry in self.entries.values():
            counts[entry.status] += 1
        return counts

    # --- Submitting ---

    def _records(self) -> List[dict]:
        return [
            {"student_id": e.student_id, "status": e.status.value, "remarks": e.remark or None}
            for e in self.entries.values()
        ]

    async def submit(self) -> SubmitResult:
        if self.state == MarkingState.SUBMITTING:
            # Gönderim iptal edilemez; ikinci deneme kuyruğa alınmaz, reddedilir.
            raise SubmissionInProgress()
        if self.state not in _EDITABLE:
            raise InvalidTransition(f"Attendance cannot be submitted in state {self.state.value}.")
        if not self.entries:
            raise InvalidTransition("There are no students to submit.")

        remaining = self.remaining
        if remaining:
            self.state = MarkingState.EDITING
            raise IncompleteRoster(remaining)

        counts = self.counts()
        self.state = MarkingState.SUBMITTING
        try:
            await self.resources.submit_attendance(self.key, self._records())
        except ClientError as e:
            self.state = MarkingState.SAVE_FAILED
            self.last_error = e
            logger.warning(f"Attendance submit for {self.key} failed: {e.code}")
            raise

        self.result = SubmitResult(
            total=len(self.entries),
            present=counts[MarkStatus.PRESENT],
            absent=counts[MarkStatus.ABSENT],
        )
        self.entries = {}
        self.last_error = None
        self.state = MarkingState.SUBMITTED
        return self.result
