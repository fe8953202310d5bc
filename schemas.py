"""
Record Schemas for MedTrack

Each Pydantic model is a plain data record handed to the presentation layer.
Medicine and Profile are also the shapes persisted as JSON in the key-value
store (keys "medicines" and "profile").
"""
import uuid
from pydantic import BaseModel, Field
from typing import List

DEFAULT_DURATION_DAYS = "30"


def new_medicine_id() -> str:
    return uuid.uuid4().hex[:12]


class Medicine(BaseModel):
    """A medicine and today's completion state.
    Key: medicines (JSON array, insertion order)
    """
    id: str = Field(default_factory=new_medicine_id, description="Generated identifier")
    name: str = Field(..., description="Medicine name, used as the lookup key")
    amount: str = Field("", description="Quantity per dose, free text e.g. '2' or '5ml'")
    times: List[str] = Field(default_factory=list, description="Time label for each daily dose")
    completed: int = Field(0, description="Doses marked taken today, 0..len(times)")
    duration: str = Field(DEFAULT_DURATION_DAYS, description="Course length in days, free text")

    @property
    def dose_count(self) -> int:
        return len(self.times)

    @property
    def is_complete(self) -> bool:
        return self.completed >= len(self.times)


class MedicineCreate(BaseModel):
    """Payload of the add-medicine form."""
    name: str = Field(..., description="Medicine name")
    amount: str = Field("", description="Quantity per dose")
    frequency: int = Field(1, description="Declared number of doses per day")
    times: List[str] = Field(default_factory=list, description="One time label per dose")
    duration: str = Field(DEFAULT_DURATION_DAYS, description="Course length in days")


class Profile(BaseModel):
    """Single user profile record.
    Key: profile
    """
    name: str = Field("", description="Display name")
    email: str = Field("", description="Contact email, not validated")


class Progress(BaseModel):
    total_doses: int = Field(0, description="Sum of scheduled doses over all medicines")
    completed_doses: int = Field(0, description="Sum of doses marked taken")
    percent: float = Field(0.0, description="completed_doses / total_doses * 100, 0 when nothing is scheduled")


class Partition(BaseModel):
    pending: List[Medicine] = Field(default_factory=list)
    complete: List[Medicine] = Field(default_factory=list)


class TodayPlan(BaseModel):
    """Everything the home screen shows for the current day."""
    date: str = Field(..., description="Local calendar day YYYY-MM-DD")
    greeting_name: str = Field("User", description="Profile name, or 'User' when unset")
    progress: Progress
    pending: List[Medicine] = Field(default_factory=list)
    complete: List[Medicine] = Field(default_factory=list)
