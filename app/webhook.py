import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

import reports
from crud import local_date
from location import now_ms, publish_sample
from logging_config import get_logger
from schemas import Expense, ExpenseCreate, Job, JobDetails, PositionSample, Report, ReportMode, Transition
from tracker import TrackerController
from worker import AutoDetector

router = APIRouter()
logger = get_logger("webhook", "webhook.log")


class PositionIn(BaseModel):
    latitude: float
    longitude: float
    speed: Optional[float] = None
    timestamp: Optional[int] = None
    accuracy: Optional[float] = None


class AnotherJobIn(BaseModel):
    going_to_another: bool


class AutoDetectIn(BaseModel):
    enabled: bool


def tracker_of(request: Request) -> TrackerController:
    return request.app.state.tracker


def detector_of(request: Request) -> AutoDetector:
    return request.app.state.detector


def _transition(result: Transition) -> Transition:
    if not result.applied:
        raise HTTPException(status_code=409, detail=result.reason)
    return result


# ---------------------------------------------------
#                DEVICE POSITIONS
# ---------------------------------------------------
@router.post("/positions")
async def ingest_position(payload: PositionIn, request: Request):
    client = request.app.state.redis
    if client is None:
        raise HTTPException(status_code=503, detail="location stream not configured")

    sample = PositionSample(
        latitude=payload.latitude,
        longitude=payload.longitude,
        speed=payload.speed,
        timestamp=payload.timestamp if payload.timestamp is not None else now_ms(),
        accuracy=payload.accuracy,
    )
    await publish_sample(client, sample)
    logger.debug(f"Sample stored at {sample.timestamp}")
    return {"ok": True}


# ---------------------------------------------------
#                JOB LIFECYCLE
# ---------------------------------------------------
@router.post("/jobs/start", response_model=Transition)
async def start_job(details: JobDetails, request: Request):
    return _transition(await tracker_of(request).start_job(details))


@router.post("/jobs/arrive", response_model=Transition)
async def arrive(request: Request):
    return _transition(await tracker_of(request).arrive())


@router.post("/jobs/leave", response_model=Transition)
async def leave(request: Request):
    return _transition(await tracker_of(request).leave())


@router.post("/jobs/another", response_model=Transition)
async def another_job(payload: AnotherJobIn, request: Request):
    return _transition(await tracker_of(request).another_job(payload.going_to_another))


@router.post("/jobs/conclude", response_model=Transition)
async def conclude_day(request: Request):
    return _transition(await tracker_of(request).conclude_day())


@router.get("/jobs", response_model=List[Job])
async def list_jobs(request: Request):
    return tracker_of(request).jobs


@router.get("/status")
async def status(request: Request):
    detector = detector_of(request)
    return {
        **tracker_of(request).status(),
        "auto_detect": detector.enabled,
        "location_status": detector.status,
    }


@router.post("/auto-detect")
async def toggle_auto_detect(payload: AutoDetectIn, request: Request):
    detector = detector_of(request)
    if payload.enabled:
        await detector.enable()
    else:
        await detector.disable()
    return {"enabled": detector.enabled, "location_status": detector.status}


# ---------------------------------------------------
#                EXPENSES
# ---------------------------------------------------
@router.post("/expenses", response_model=Expense)
async def add_expense(payload: ExpenseCreate, request: Request):
    return await tracker_of(request).add_expense(payload)


@router.get("/expenses", response_model=List[Expense])
async def list_expenses(request: Request):
    return tracker_of(request).expenses


# ---------------------------------------------------
#                REPORTS
# ---------------------------------------------------
def _report(request: Request, mode: ReportMode, date: Optional[dt.date]) -> Report:
    tracker = tracker_of(request)
    anchor = date or local_date(tracker.clock())
    return reports.build_report(mode, anchor, tracker.jobs, tracker.expenses)


@router.get("/reports/{mode}.csv", response_class=PlainTextResponse)
async def report_csv(mode: ReportMode, request: Request, date: Optional[dt.date] = Query(None)):
    return PlainTextResponse(reports.export_report_csv(_report(request, mode, date)), media_type="text/csv")


@router.get("/reports/{mode}", response_model=Report)
async def report(mode: ReportMode, request: Request, date: Optional[dt.date] = Query(None)):
    return _report(request, mode, date)
