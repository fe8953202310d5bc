"""
Persistence of medicines, the profile and the rollover marker.

All decoding of stored JSON happens here in one normalization pass, so the
engine only ever sees well-formed Medicine records.
"""
import json
import logging
import math
from typing import Any, List, Optional

from database import KeyValueStore
from errors import MalformedDataError, ValidationError
from schemas import DEFAULT_DURATION_DAYS, Medicine, MedicineCreate, Profile, new_medicine_id

logger = logging.getLogger(__name__)

MEDICINES_KEY = "medicines"
PROFILE_KEY = "profile"
LAST_RESET_KEY = "lastResetDate"


# ---------------- Normalization ----------------
def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def normalize_medicine(raw: Any) -> Medicine:
    """Coerce one stored record into a Medicine.

    Missing or mistyped fields fall back to safe defaults. Raises
    MalformedDataError only when the record is not an object at all.
    """
    if not isinstance(raw, dict):
        raise MalformedDataError(f"medicine record is {type(raw).__name__}, not an object")

    coerced = []
    times = raw.get("times")
    if isinstance(times, list):
        times = [_as_text(t) for t in times]
    else:
        coerced.append("times")
        times = []

    completed = raw.get("completed")
    if isinstance(completed, float) and math.isfinite(completed) and completed.is_integer():
        completed = int(completed)
    if isinstance(completed, bool) or not isinstance(completed, int):
        if completed is not None:
            coerced.append("completed")
        completed = 0
    if completed < 0 or completed > len(times):
        coerced.append("completed")
        completed = max(0, min(completed, len(times)))

    for field in ("name", "amount", "duration"):
        if field in raw and not isinstance(raw[field], str):
            coerced.append(field)
    if not raw.get("name"):
        coerced.append("name")

    duration = _as_text(raw.get("duration")).strip() or DEFAULT_DURATION_DAYS

    if coerced:
        logger.warning(
            "Coerced fields %s of stored medicine %r", sorted(set(coerced)), raw.get("name")
        )
    return Medicine(
        id=_stored_id(raw) or new_medicine_id(),
        name=_as_text(raw.get("name")),
        amount=_as_text(raw.get("amount")),
        times=times,
        completed=completed,
        duration=duration,
    )


def _stored_id(raw: Any) -> Optional[str]:
    med_id = raw.get("id") if isinstance(raw, dict) else None
    if isinstance(med_id, str) and med_id:
        return med_id
    return None


def decode_collection(raw_text: Optional[str]) -> List[Any]:
    """Parse the stored blob into a list of raw records, [] when unusable."""
    if raw_text is None:
        return []
    try:
        data = json.loads(raw_text)
    except (TypeError, ValueError) as e:
        logger.warning("Stored medicines are not valid JSON, loading empty list: %s", e)
        return []
    if not isinstance(data, list):
        logger.warning("Stored medicines are %s, not a list; loading empty list", type(data).__name__)
        return []
    return data


def normalize_collection(raw_text: Optional[str]) -> List[Medicine]:
    return normalize_records(decode_collection(raw_text))


def normalize_records(data: List[Any]) -> List[Medicine]:
    medicines: List[Medicine] = []
    for index, raw in enumerate(data):
        try:
            medicines.append(normalize_medicine(raw))
        except MalformedDataError as e:
            logger.warning("Dropping stored medicine #%d: %s", index, e)
    return medicines


# ---------------- Validation ----------------
def validate_new_medicine(payload: MedicineCreate) -> Medicine:
    """Check the add-medicine form and build the record to store."""
    name = (payload.name or "").strip()
    amount = (payload.amount or "").strip()
    if not name:
        raise ValidationError("Medicine name is required")
    if not amount:
        raise ValidationError("Amount per dose is required")
    if payload.frequency < 1:
        raise ValidationError("Doses per day must be at least 1")
    if len(payload.times) != payload.frequency:
        raise ValidationError(
            f"Expected {payload.frequency} dose time(s), got {len(payload.times)}"
        )
    if any(not (t or "").strip() for t in payload.times):
        raise ValidationError("Please provide a time for every dose")
    duration = (payload.duration or "").strip() or DEFAULT_DURATION_DAYS
    return Medicine(
        name=name,
        amount=amount,
        times=[t.strip() for t in payload.times],
        completed=0,
        duration=duration,
    )


# ---------------- Stores ----------------
class MedicineRepository:
    def __init__(self, store: KeyValueStore):
        self.store = store

    async def load(self) -> List[Medicine]:
        """Load and normalize the collection.

        Ids issued to records stored without one are written back at once so
        they stay stable across reads.
        """
        records = decode_collection(await self.store.get(MEDICINES_KEY))
        medicines = normalize_records(records)
        issued = sum(1 for r in records if isinstance(r, dict) and not _stored_id(r))
        if issued:
            logger.info("Persisting ids issued to %d stored medicine(s)", issued)
            await self.save(medicines)
        return medicines

    async def save(self, collection: List[Medicine]) -> None:
        text = json.dumps([m.model_dump() for m in collection])
        await self.store.set(MEDICINES_KEY, text)

    async def add(self, collection: List[Medicine], payload: MedicineCreate) -> List[Medicine]:
        medicine = validate_new_medicine(payload)
        updated = list(collection) + [medicine]
        await self.save(updated)
        logger.info("Added medicine %r with %d daily dose(s)", medicine.name, medicine.dose_count)
        return updated

    async def remove(self, collection: List[Medicine], name: str) -> List[Medicine]:
        updated = [m for m in collection if m.name != name]
        await self.save(updated)
        logger.info("Removed %d medicine(s) named %r", len(collection) - len(updated), name)
        return updated


class ProfileStore:
    def __init__(self, store: KeyValueStore):
        self.store = store

    async def load(self) -> Profile:
        raw = await self.store.get(PROFILE_KEY)
        if raw is None:
            return Profile()
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.warning("Stored profile is not valid JSON, using default: %s", e)
            return Profile()
        if not isinstance(data, dict):
            logger.warning("Stored profile is %s, not an object; using default", type(data).__name__)
            return Profile()
        return Profile(name=_as_text(data.get("name")), email=_as_text(data.get("email")))

    async def save(self, profile: Profile) -> None:
        await self.store.set(PROFILE_KEY, json.dumps(profile.model_dump()))


class RolloverMarkerStore:
    """The last local day on which completion counters were reset."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def load(self) -> Optional[str]:
        raw = await self.store.get(LAST_RESET_KEY)
        if raw is None:
            return None
        # older writers stored the date JSON-quoted
        if raw.startswith('"'):
            try:
                decoded = json.loads(raw)
            except ValueError:
                return raw
            return decoded if isinstance(decoded, str) else raw
        return raw

    async def save(self, day: str) -> None:
        await self.store.set(LAST_RESET_KEY, day)
