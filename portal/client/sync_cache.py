import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, NamedTuple, Optional, Tuple, Union

from .config import client_settings
from .errors import Aborted
from portal.shared.filters import filter_signature, parse_signature

logger = logging.getLogger(__name__)


class CancelToken:
    """Handed to every fetcher; set when the fetch has been superseded."""

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self):
        self._cancelled = True

    def raise_if_cancelled(self):
        if self._cancelled:
            raise Aborted("Request was superseded.")


class FetchResult(NamedTuple):
    payload: Any
    page_meta: Optional[Dict[str, Any]] = None


Fetcher = Callable[[Dict[str, str], CancelToken], Awaitable[Union[FetchResult, Any]]]
IdExtractor = Callable[[Any], Iterable[str]]
FilterArg = Union[None, str, Mapping[str, Any]]


@dataclass(frozen=True)
class CacheEntry:
    payload: Any
    fetched_at: float
    page_meta: Optional[Dict[str, Any]] = None

    def is_fresh(self, now: float, ttl: float) -> bool:
        return now - self.fetched_at < ttl


@dataclass
class _InFlight:
    token: CancelToken
    task: Optional[asyncio.Task] = None
    # Uçuştayken invalidate edildi; sonuç çağırana döner ama saklanmaz.
    stale: bool = False


@dataclass
class _Kind:
    name: str
    fetcher: Fetcher
    ttl: float
    id_extractor: Optional[IdExtractor] = None
    latest_signature: Optional[str] = None
    inflight: Dict[str, _InFlight] = field(default_factory=dict)


def _signature(filters: FilterArg) -> str:
    if isinstance(filters, str):
        return filters
    return filter_signature(filters)


class SyncCache:
    """
    One cache for every resource kind, keyed by (kind, filter signature).

    * a fresh entry is served without touching the network;
    * concurrent gets of one signature share a single fetch;
    * a get for a new signature cancels the kind's other in-flight fetches,
      and a result is stored only while its signature is still the latest
      one requested for the kind;
    * failures leave the cache as it was, so peek() can still serve a stale
      entry.
    """

    def __init__(self, default_ttl: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = client_settings.CLIENT_CACHE_TTL_SECONDS if default_ttl is None else default_ttl
        self._clock = clock
        self._kinds: Dict[str, _Kind] = {}
        self._entries: Dict[Tuple[str, str], CacheEntry] = {}

    def register(self, kind: str, fetcher: Fetcher, ttl: Optional[float] = None, id_extractor: Optional[IdExtractor] = None):
        if kind in self._kinds:
            raise ValueError(f"Resource kind '{kind}' is already registered.")
        self._kinds[kind] = _Kind(
            name=kind,
            fetcher=fetcher,
            ttl=self.default_ttl if ttl is None else ttl,
            id_extractor=id_extractor,
        )

    def _kind(self, kind: str) -> _Kind:
        try:
            return self._kinds[kind]
        except KeyError:
            raise KeyError(f"Unknown resource kind '{kind}'.") from None

    # --- Reads ---

    def peek(self, kind: str, filters: FilterArg = None) -> Optional[CacheEntry]:
        """Returns the stored entry, fresh or not, without fetching."""
        return self._entries.get((kind, _signature(filters)))

    async def get(self, kind: str, filters: FilterArg = None, force: bool = False) -> Any:
        entry = await self.get_entry(kind, filters, force=force)
        return entry.payload

    async def get_entry(self, kind: str, filters: FilterArg = None, force: bool = False) -> CacheEntry:
        resource = self._kind(kind)
        signature = _signature(filters)
        resource.latest_signature = signature

        for other in [s for s in resource.inflight if s != signature]:
            self._abort(resource, other)

        entry = self._entries.get((kind, signature))
        if entry is not None and not force and entry.is_fresh(self._clock(), resource.ttl):
            return entry

        flight = resource.inflight.get(signature)
        # Invalidate edilmiş bir uçuş mutasyondan önceki veriyi getirir; yeni istek başlatılır.
        if flight is None or flight.stale:
            flight = _InFlight(token=CancelToken())
            resource.inflight[signature] = flight
            flight.task = asyncio.create_task(self._run(resource, signature, flight))

        try:
            # shield: bir çağıranın iptali paylaşılan isteği iptal etmez
            return await asyncio.shield(flight.task)
        except asyncio.CancelledError:
            if flight.token.cancelled:
                raise Aborted(f"Request for '{kind}' was superseded.") from None
            raise

    async def _run(self, resource: _Kind, signature: str, flight: _InFlight) -> CacheEntry:
        try:
            result = await resource.fetcher(parse_signature(signature), flight.token)
        finally:
            if resource.inflight.get(signature) is flight:
                del resource.inflight[signature]

        if flight.token.cancelled or resource.latest_signature != signature:
            logger.debug(f"Discarding superseded result for {resource.name}?{signature}")
            raise Aborted(f"Request for '{resource.name}' was superseded.")

        if not isinstance(result, FetchResult):
            result = FetchResult(payload=result)
        entry = CacheEntry(payload=result.payload, fetched_at=self._clock(), page_meta=result.page_meta)
        if not flight.stale:
            self._entries[(resource.name, signature)] = entry
        return entry

    def _abort(self, resource: _Kind, signature: str):
        flight = resource.inflight.pop(signature, None)
        if flight is None:
            return
        flight.token.cancel()
        if flight.task is not None and not flight.task.done():
            flight.task.cancel()

    # --- Invalidation ---

    def invalidate(self, kind: str, signature: FilterArg = None, resource_id: Optional[str] = None) -> int:
        """
        Evicts one signature, or every entry whose payload contains
        resource_id, or (with neither) the whole kind. Returns the number of
        evicted entries.
        """
        resource = self._kind(kind)
        if signature is None and resource_id is None:
            return self.invalidate_kind(kind)

        evicted = 0
        if signature is not None:
            sig = _signature(signature)
            if self._entries.pop((kind, sig), None) is not None:
                evicted += 1
            if sig in resource.inflight:
                resource.inflight[sig].stale = True

        if resource_id is not None:
            if resource.id_extractor is None:
                raise ValueError(f"Resource kind '{kind}' has no id extractor.")
            for key in [k for k in self._entries if k[0] == kind]:
                if resource_id in set(resource.id_extractor(self._entries[key].payload)):
                    del self._entries[key]
                    evicted += 1
            # Hangi uçuştaki isteğin bu kaydı getireceği bilinemez.
            for flight in resource.inflight.values():
                flight.stale = True
        return evicted

    def invalidate_kind(self, kind: str) -> int:
        resource = self._kind(kind)
        keys = [k for k in self._entries if k[0] == kind]
        for key in keys:
            del self._entries[key]
        for flight in resource.inflight.values():
            flight.stale = True
        return len(keys)

    def clear(self):
        """Drops every entry and aborts every in-flight fetch (used on logout)."""
        for resource in self._kinds.values():
            for signature in list(resource.inflight):
                self._abort(resource, signature)
            resource.latest_signature = None
        self._entries.clear()

    def inflight_count(self, kind: str) -> int:
        return len(self._kind(kind).inflight)
