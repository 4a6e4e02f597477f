# app/schemas.py
import datetime as dt
import uuid
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


def new_id() -> str:
    return uuid.uuid4().hex


class LifecycleState(str, Enum):
    IDLE = "idle"
    HEADING = "heading"
    ONSITE = "onsite"
    LEFT = "left"


class ExpenseCategory(str, Enum):
    FUEL = "fuel"
    MEALS = "meals"
    TOLLS = "tolls"
    MATERIALS = "materials"
    OTHER = "other"


class ReportMode(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


# ---------------------------------------------------
#                 LOCATION
# ---------------------------------------------------
class PositionSample(BaseModel):
    latitude: float
    longitude: float
    speed: Optional[float] = None        # m/s as reported by the device
    timestamp: int                       # ms since epoch
    accuracy: Optional[float] = None     # metres


class Classification(BaseModel):
    is_driving: bool
    speed_mph: float
    accumulated_miles: float
    distance_miles: float
    auto_arrive: bool = False
    status: str


# ---------------------------------------------------
#                 JOBS
# ---------------------------------------------------
class JobDetails(BaseModel):
    customer_name: str
    contact: str = ""
    facility: str
    work_scope: str
    tasks_completed: str = ""

    @field_validator("customer_name", "facility", "work_scope")
    @classmethod
    def _required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field is required")
        return v


class Job(JobDetails):
    id: str = Field(default_factory=new_id)
    date: dt.date
    headed_time: dt.datetime
    arrived_time: Optional[dt.datetime] = None
    left_time: Optional[dt.datetime] = None
    drive_time: Optional[int] = None     # minutes
    work_time: Optional[int] = None      # minutes


class TrackerState(BaseModel):
    current_state: LifecycleState = LifecycleState.IDLE
    current_job_id: Optional[str] = None


class Transition(BaseModel):
    applied: bool
    state: LifecycleState
    job: Optional[Job] = None
    reason: Optional[str] = None
    show_job_form: bool = False


# ---------------------------------------------------
#                 EXPENSES
# ---------------------------------------------------
class ExpenseCreate(BaseModel):
    description: str
    amount: Decimal
    category: ExpenseCategory = ExpenseCategory.FUEL
    receipt: Optional[str] = None        # image payload (data URL)
    receipt_name: Optional[str] = None


class Expense(BaseModel):
    id: str = Field(default_factory=new_id)
    description: str = ""
    amount: Optional[Decimal] = None
    category: ExpenseCategory = ExpenseCategory.OTHER
    receipt: Optional[str] = None
    receipt_name: Optional[str] = None
    date: dt.date

    @field_validator("amount", mode="before")
    @classmethod
    def _lenient_amount(cls, v):
        # stored history may carry blanks or junk; totals count those as zero
        if v is None or isinstance(v, Decimal):
            return v
        try:
            v = Decimal(str(v).strip())
        except InvalidOperation:
            return None
        return v if v.is_finite() else None


# ---------------------------------------------------
#                 REPORTS
# ---------------------------------------------------
class Totals(BaseModel):
    drive_time: int = 0
    work_time: int = 0
    expenses: Decimal = Decimal("0")


class Report(BaseModel):
    mode: ReportMode
    start: dt.date
    end: dt.date
    jobs: List[Job]
    expenses: List[Expense]
    totals: Totals
