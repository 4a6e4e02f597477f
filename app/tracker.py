# app/tracker.py
import asyncio
import datetime as dt
from typing import Callable, List, Optional

import crud
from errors import PersistenceError
from motion import MotionProcessor
from schemas import (
    Classification,
    Expense,
    ExpenseCreate,
    Job,
    JobDetails,
    LifecycleState,
    PositionSample,
    TrackerState,
    Transition,
)
from storage import KeyValueStore

from logging_config import get_logger


logger = get_logger("tracker", "tracker.log")

UTC = dt.timezone.utc


def utcnow() -> dt.datetime:
    return dt.datetime.now(UTC)


class TrackerController:
    """
    Owns the one active job and the day's histories.

    idle -> heading -> onsite -> left -> idle. Manual commands and location
    samples both go through self.lock, so transitions and classifications are
    applied one at a time. A transition is adopted in memory only after its
    writes reach the store; if they fail the previous state stays current and
    PersistenceError propagates.
    """

    def __init__(self, store: KeyValueStore, clock: Callable[[], dt.datetime] = utcnow,
                 motion: Optional[MotionProcessor] = None):
        self.store = store
        self.clock = clock
        self.motion = motion or MotionProcessor()
        self.lock = asyncio.Lock()

        self.jobs: List[Job] = []
        self.expenses: List[Expense] = []
        self.state = TrackerState()

    # =====================================================================
    # Read side
    # =====================================================================
    @property
    def current_state(self) -> LifecycleState:
        return self.state.current_state

    @property
    def current_job(self) -> Optional[Job]:
        if self.state.current_job_id is None:
            return None
        for j in self.jobs:
            if j.id == self.state.current_job_id:
                return j
        return None

    def headline(self) -> str:
        job = self.current_job
        name = job.customer_name if job else "job"
        return {
            LifecycleState.IDLE: "Ready to start",
            LifecycleState.HEADING: f"Heading to {name}",
            LifecycleState.ONSITE: f"On-site at {name}",
            LifecycleState.LEFT: "Left site - Next action?",
        }[self.current_state]

    def status(self) -> dict:
        return {
            "state": self.current_state.value,
            "headline": self.headline(),
            "job": self.current_job,
            "accumulated_miles": self.motion.accumulated_miles,
        }

    # =====================================================================
    # Persistence
    # =====================================================================
    async def load(self) -> None:
        async with self.lock:
            self.jobs, self.expenses, self.state = await crud.load_snapshot(self.store)
            self.motion.reset()
        logger.info(
            f"[tracker] Loaded {len(self.jobs)} jobs, {len(self.expenses)} expenses, "
            f"state={self.current_state.value}"
        )

    async def _commit(self, *, jobs: Optional[List[Job]] = None,
                      expenses: Optional[List[Expense]] = None,
                      state: Optional[TrackerState] = None) -> None:
        # jobs before state: a state pointer never references an unwritten job
        try:
            if jobs is not None:
                await crud.save_jobs(self.store, jobs)
            if expenses is not None:
                await crud.save_expenses(self.store, expenses)
            if state is not None:
                await crud.save_state(self.store, state)
        except Exception as e:
            logger.exception(f"[tracker] Persistence failed, keeping previous state: {e}")
            raise PersistenceError(str(e)) from e

        if jobs is not None:
            self.jobs = jobs
        if expenses is not None:
            self.expenses = expenses
        if state is not None:
            self.state = state

    def _replace(self, job: Job) -> List[Job]:
        return [job if j.id == job.id else j for j in self.jobs]

    def _rejected(self, reason: str) -> Transition:
        logger.info(f"[tracker] Rejected in state {self.current_state.value}: {reason}")
        return Transition(applied=False, state=self.current_state, job=self.current_job, reason=reason)

    # =====================================================================
    # Transitions
    # =====================================================================
    async def start_job(self, details: JobDetails) -> Transition:
        async with self.lock:
            if self.current_state != LifecycleState.IDLE:
                return self._rejected(f"a job is already active ({self.current_state.value})")

            now = self.clock()
            job = Job(
                **details.model_dump(),
                date=crud.local_date(now),
                headed_time=now,
            )
            await self._commit(
                jobs=self.jobs + [job],
                state=TrackerState(current_state=LifecycleState.HEADING, current_job_id=job.id),
            )
            self.motion.reset_distance()

        logger.info(f"[tracker] Heading to {job.customer_name} ({job.facility}) job={job.id}")
        return Transition(applied=True, state=LifecycleState.HEADING, job=job)

    async def arrive(self, auto: bool = False) -> Transition:
        async with self.lock:
            return await self._arrive(auto)

    async def _arrive(self, auto: bool) -> Transition:
        job = self.current_job
        if self.current_state != LifecycleState.HEADING or job is None:
            return self._rejected("not heading to a job")

        now = self.clock()
        job = job.model_copy(update={
            "arrived_time": now,
            "drive_time": crud.minutes_between(job.headed_time, now),
        })
        await self._commit(
            jobs=self._replace(job),
            state=TrackerState(current_state=LifecycleState.ONSITE, current_job_id=job.id),
        )
        self.motion.reset()

        logger.info(
            f"[tracker] Arrived at {job.customer_name} job={job.id} "
            f"drive_time={job.drive_time}m auto={auto}"
        )
        return Transition(applied=True, state=LifecycleState.ONSITE, job=job)

    async def leave(self) -> Transition:
        async with self.lock:
            job = self.current_job
            if self.current_state != LifecycleState.ONSITE or job is None:
                return self._rejected("not on site")

            now = self.clock()
            job = job.model_copy(update={
                "left_time": now,
                "work_time": crud.minutes_between(job.arrived_time, now),
            })
            await self._commit(
                jobs=self._replace(job),
                state=TrackerState(current_state=LifecycleState.LEFT, current_job_id=job.id),
            )

        logger.info(f"[tracker] Left {job.customer_name} job={job.id} work_time={job.work_time}m")
        return Transition(applied=True, state=LifecycleState.LEFT, job=job)

    async def another_job(self, going_to_another: bool) -> Transition:
        if not going_to_another:
            return await self.conclude_day()

        async with self.lock:
            if self.current_state != LifecycleState.LEFT:
                return self._rejected("current job has not been left yet")
            await self._commit(state=TrackerState())

        logger.info("[tracker] Heading to another job; waiting for job details")
        return Transition(applied=True, state=LifecycleState.IDLE, show_job_form=True)

    async def conclude_day(self) -> Transition:
        async with self.lock:
            if self.current_state != LifecycleState.LEFT:
                return self._rejected("current job has not been left yet")
            await self._commit(state=TrackerState())

        logger.info("[tracker] Day concluded")
        return Transition(applied=True, state=LifecycleState.IDLE)

    # =====================================================================
    # Expenses
    # =====================================================================
    async def add_expense(self, data: ExpenseCreate) -> Expense:
        async with self.lock:
            expense = Expense(**data.model_dump(), date=crud.local_date(self.clock()))
            await self._commit(expenses=self.expenses + [expense])

        logger.info(
            f"[tracker] Expense {expense.id} {expense.category.value} {expense.amount} "
            f"receipt={'yes' if expense.receipt else 'no'}"
        )
        return expense

    # =====================================================================
    # Location
    # =====================================================================
    async def process_sample(self, sample: PositionSample) -> Optional[Classification]:
        async with self.lock:
            result = self.motion.process(sample, self.current_state)
            if result is not None and result.auto_arrive:
                await self._arrive(auto=True)
            return result

    def reset_motion(self) -> None:
        self.motion.reset()
