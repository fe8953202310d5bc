"""
Adherence engine.

The module-level functions are pure: they take a medicine collection and
return a new one without touching storage. AdherenceService wires them to the
repositories, applies the daily rollover before every read and serializes
read-modify-write sequences.
"""
import asyncio
import logging
from datetime import date
from typing import Callable, List, Optional, Tuple

from database import KeyValueStore
from repository import MedicineRepository, ProfileStore, RolloverMarkerStore
from schemas import Medicine, MedicineCreate, Partition, Profile, Progress, TodayPlan

logger = logging.getLogger(__name__)

Listener = Callable[[List[Medicine]], None]


def local_today() -> str:
    return date.today().isoformat()


# ---------------- Pure rules ----------------
def check_and_apply_rollover(
    collection: List[Medicine], last_reset_date: Optional[str], today: str
) -> Tuple[List[Medicine], str]:
    if last_reset_date == today:
        return collection, last_reset_date
    reset = [m.model_copy(update={"completed": 0}) for m in collection]
    return reset, today


def mark_dose_taken(collection: List[Medicine], name: str) -> List[Medicine]:
    updated = []
    for m in collection:
        if m.name == name:
            m = m.model_copy(update={"completed": min(m.completed + 1, len(m.times))})
        updated.append(m)
    return updated


def compute_progress(collection: List[Medicine]) -> Progress:
    total = sum(len(m.times) for m in collection)
    done = sum(max(0, min(m.completed, len(m.times))) for m in collection)
    percent = (done / total) * 100 if total > 0 else 0.0
    return Progress(total_doses=total, completed_doses=done, percent=percent)


def partition(collection: List[Medicine]) -> Partition:
    pending, complete = [], []
    for m in collection:
        (complete if m.is_complete else pending).append(m)
    return Partition(pending=pending, complete=complete)


def filter_by_name_substring(collection: List[Medicine], query: Optional[str]) -> List[Medicine]:
    if not query:
        return collection
    needle = query.lower()
    return [m for m in collection if needle in m.name.lower()]


# ---------------- Orchestration ----------------
class AdherenceService:
    """Entry point used by the presentation layer.

    Holds the last-known-good collection. The cache is replaced only after a
    store write succeeds, so a StorageError leaves it as it was.
    """

    def __init__(self, store: KeyValueStore, today: Callable[[], str] = local_today):
        self.medicines = MedicineRepository(store)
        self.profiles = ProfileStore(store)
        self.marker = RolloverMarkerStore(store)
        self._today = today
        self._lock = asyncio.Lock()
        self._listeners: List[Listener] = []
        self.collection: List[Medicine] = []
        self.last_reset_date: Optional[str] = None

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _commit(self, collection: List[Medicine]) -> None:
        self.collection = collection
        for listener in list(self._listeners):
            listener(collection)

    async def _refresh(self) -> List[Medicine]:
        loaded = await self.medicines.load()
        stored_marker = await self.marker.load()
        today = self._today()
        collection, marker = check_and_apply_rollover(loaded, stored_marker, today)
        if marker == stored_marker:
            self.collection = collection
        else:
            logger.info("Daily rollover: %s -> %s, reset %d medicine(s)", stored_marker, marker, len(collection))
            await self.medicines.save(collection)
            await self.marker.save(marker)
            self._commit(collection)
        self.last_reset_date = marker
        return collection

    async def refresh(self) -> List[Medicine]:
        async with self._lock:
            return await self._refresh()

    async def list_medicines(self) -> List[Medicine]:
        return await self.refresh()

    async def search(self, query: Optional[str]) -> List[Medicine]:
        return filter_by_name_substring(await self.refresh(), query)

    async def add_medicine(self, payload: MedicineCreate) -> Medicine:
        async with self._lock:
            collection = await self._refresh()
            updated = await self.medicines.add(collection, payload)
            self._commit(updated)
            return updated[-1]

    async def remove_medicine(self, name: str) -> int:
        async with self._lock:
            collection = await self._refresh()
            updated = await self.medicines.remove(collection, name)
            self._commit(updated)
            return len(collection) - len(updated)

    async def mark_taken(self, name: str) -> List[Medicine]:
        """Mark one dose of every medicine called ``name``; returns the matches."""
        async with self._lock:
            collection = await self._refresh()
            if not any(m.name == name for m in collection):
                return []
            updated = mark_dose_taken(collection, name)
            await self.medicines.save(updated)
            self._commit(updated)
            return [m for m in updated if m.name == name]

    async def get_progress(self) -> Progress:
        return compute_progress(await self.refresh())

    async def get_profile(self) -> Profile:
        return await self.profiles.load()

    async def save_profile(self, profile: Profile) -> Profile:
        await self.profiles.save(profile)
        logger.info("Profile saved")
        return profile

    async def today_plan(self, query: Optional[str] = None) -> TodayPlan:
        collection = await self.refresh()
        profile = await self.profiles.load()
        split = partition(filter_by_name_substring(collection, query))
        return TodayPlan(
            date=self.last_reset_date or self._today(),
            greeting_name=profile.name or "User",
            progress=compute_progress(collection),
            pending=split.pending,
            complete=split.complete,
        )
