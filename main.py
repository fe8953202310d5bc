import logging
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import List, Optional

from database import db, settings, store
from engine import AdherenceService
from errors import StorageError, ValidationError
from schemas import Medicine, MedicineCreate, Profile, Progress, TodayPlan

logger = logging.getLogger(__name__)

app = FastAPI(title="MedTrack API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_service = AdherenceService(store)


def get_service() -> AdherenceService:
    return _service


def _storage_failed(e: StorageError) -> HTTPException:
    logger.exception("Storage failure: %s", e)
    return HTTPException(status_code=503, detail=str(e))


@app.get("/")
def read_root():
    return {"message": "MedTrack Backend Running"}

@app.get("/test")
async def test_database(service: AdherenceService = Depends(get_service)):
    response = {
        "backend": "✅ Running",
        "store": service.medicines.store.name,
        "database": "❌ Not Available",
        "database_name": None,
        "connection_status": "Not Connected",
        "last_reset_date": None,
    }

    if db is not None:
        response["database"] = "✅ Available"
        response["database_name"] = db.name if hasattr(db, 'name') else "✅ Connected"
    else:
        response["database"] = "⚠️  Not configured, using in-memory store"

    try:
        await service.refresh()
        response["connection_status"] = "Connected"
        response["last_reset_date"] = service.last_reset_date
    except StorageError as e:
        response["connection_status"] = f"⚠️  Store error: {str(e)[:50]}"

    response["database_url"] = "✅ Set" if settings.database_url else "❌ Not Set"
    return response

# Helper models
class RemoveOut(BaseModel):
    name: str
    removed: int

# Medicines
@app.get("/api/medicines", response_model=List[Medicine])
async def list_medicines(q: Optional[str] = None, service: AdherenceService = Depends(get_service)):
    try:
        if q:
            return await service.search(q)
        return await service.list_medicines()
    except StorageError as e:
        raise _storage_failed(e)

@app.post("/api/medicines", response_model=Medicine, status_code=201)
async def add_medicine(payload: MedicineCreate, service: AdherenceService = Depends(get_service)):
    try:
        return await service.add_medicine(payload)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.reason)
    except StorageError as e:
        raise _storage_failed(e)

@app.delete("/api/medicines/{name}", response_model=RemoveOut)
async def remove_medicine(name: str, service: AdherenceService = Depends(get_service)):
    try:
        removed = await service.remove_medicine(name)
        return RemoveOut(name=name, removed=removed)
    except StorageError as e:
        raise _storage_failed(e)

@app.post("/api/medicines/{name}/taken", response_model=List[Medicine])
async def mark_taken(name: str, service: AdherenceService = Depends(get_service)):
    try:
        matches = await service.mark_taken(name)
    except StorageError as e:
        raise _storage_failed(e)
    if not matches:
        raise HTTPException(status_code=404, detail="Medicine not found")
    return matches

# Progress for today
@app.get("/api/progress", response_model=Progress)
async def get_progress(service: AdherenceService = Depends(get_service)):
    try:
        return await service.get_progress()
    except StorageError as e:
        raise _storage_failed(e)

@app.get("/api/today", response_model=TodayPlan)
async def today_plan(q: Optional[str] = None, service: AdherenceService = Depends(get_service)):
    try:
        return await service.today_plan(q)
    except StorageError as e:
        raise _storage_failed(e)

# Profile
@app.get("/api/profile", response_model=Profile)
async def get_profile(service: AdherenceService = Depends(get_service)):
    try:
        return await service.get_profile()
    except StorageError as e:
        raise _storage_failed(e)

@app.put("/api/profile", response_model=Profile)
async def save_profile(payload: Profile, service: AdherenceService = Depends(get_service)):
    try:
        return await service.save_profile(payload)
    except StorageError as e:
        raise _storage_failed(e)

if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
