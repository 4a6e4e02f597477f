import datetime as dt
import math
from typing import List, Optional, Tuple

import pytz
from pydantic import TypeAdapter

from config import TRACKER_TIMEZONE
from schemas import Expense, Job, LifecycleState, TrackerState
from storage import KeyValueStore
from variables import EXPENSES_KEY, JOBS_KEY, STATE_KEY
from logging_config import get_logger

logger = get_logger("crud", "crud.log")

LOCAL_TZ = pytz.timezone(TRACKER_TIMEZONE)

JOB_LIST = TypeAdapter(List[Job])
EXPENSE_LIST = TypeAdapter(List[Expense])


def to_dt(v):
    if isinstance(v, dt.datetime):
        # ensure tz-aware
        return v if v.tzinfo else v.replace(tzinfo=dt.timezone.utc)

    if isinstance(v, str):
        dt_obj = dt.datetime.fromisoformat(v)
        return dt_obj if dt_obj.tzinfo else dt_obj.replace(tzinfo=dt.timezone.utc)

    return None


def local_date(ts) -> dt.date:
    """Calendar day of a timestamp in the tracker's configured zone."""
    return to_dt(ts).astimezone(LOCAL_TZ).date()


def minutes_between(start, end) -> int:
    # half-up, so 2.5 min reads as 3
    minutes = (to_dt(end) - to_dt(start)).total_seconds() / 60
    return math.floor(minutes + 0.5)


# ---------------------------------------------------
#                 SERIALIZATION
# ---------------------------------------------------
def dump_jobs(jobs: List[Job]) -> str:
    return JOB_LIST.dump_json(jobs).decode("utf-8")


def dump_expenses(expenses: List[Expense]) -> str:
    return EXPENSE_LIST.dump_json(expenses).decode("utf-8")


def dump_state(state: TrackerState) -> str:
    return state.model_dump_json()


def load_jobs(raw: Optional[str]) -> List[Job]:
    return JOB_LIST.validate_json(raw) if raw else []


def load_expenses(raw: Optional[str]) -> List[Expense]:
    return EXPENSE_LIST.validate_json(raw) if raw else []


def load_state(raw: Optional[str]) -> TrackerState:
    return TrackerState.model_validate_json(raw) if raw else TrackerState()


# ---------------------------------------------------
#                 READ / WRITE
# ---------------------------------------------------
async def load_snapshot(store: KeyValueStore) -> Tuple[List[Job], List[Expense], TrackerState]:
    """
    Read all three keys and re-derive the tracker state from them.
    Any read or decode failure means "no prior state": start fresh.
    """
    try:
        jobs = load_jobs(await store.get(JOBS_KEY))
        expenses = load_expenses(await store.get(EXPENSES_KEY))
        state = load_state(await store.get(STATE_KEY))
    except ValueError as e:
        logger.warning(f"Stored data unreadable, starting fresh: {e}")
        return [], [], TrackerState()
    except Exception as e:
        logger.warning(f"No saved data could be loaded, starting fresh: {e}")
        return [], [], TrackerState()

    if state.current_state == LifecycleState.IDLE:
        if state.current_job_id is not None:
            logger.warning(f"Idle state carried job pointer {state.current_job_id}; clearing it")
        return jobs, expenses, TrackerState()

    if not any(j.id == state.current_job_id for j in jobs):
        logger.warning(
            f"State {state.current_state.value} points at unknown job {state.current_job_id}; "
            f"resetting to idle"
        )
        return jobs, expenses, TrackerState()

    return jobs, expenses, state


async def save_jobs(store: KeyValueStore, jobs: List[Job]) -> None:
    await store.set(JOBS_KEY, dump_jobs(jobs))


async def save_expenses(store: KeyValueStore, expenses: List[Expense]) -> None:
    await store.set(EXPENSES_KEY, dump_expenses(expenses))


async def save_state(store: KeyValueStore, state: TrackerState) -> None:
    await store.set(STATE_KEY, dump_state(state))
