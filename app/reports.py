import datetime as dt
from decimal import Decimal
from typing import Iterable, List, Tuple

import pandas as pd

from crud import LOCAL_TZ, to_dt
from schemas import Expense, Job, Report, ReportMode, Totals


def week_range(anchor: dt.date) -> Tuple[dt.date, dt.date]:
    """
    Sunday on or before the anchor, and the Saturday six days after it.
    """
    # date.weekday(): Monday=0 ... Sunday=6
    sunday = anchor - dt.timedelta(days=(anchor.weekday() + 1) % 7)
    return sunday, sunday + dt.timedelta(days=6)


def date_range(mode: ReportMode, anchor: dt.date) -> Tuple[dt.date, dt.date]:
    if ReportMode(mode) == ReportMode.WEEKLY:
        return week_range(anchor)
    return anchor, anchor


def _in_range(records, start: dt.date, end: dt.date):
    return [r for r in records if start <= r.date <= end]


def daily_jobs(jobs: Iterable[Job], day: dt.date) -> List[Job]:
    return [j for j in jobs if j.date == day]


def weekly_jobs(jobs: Iterable[Job], anchor: dt.date) -> List[Job]:
    return _in_range(jobs, *week_range(anchor))


def daily_expenses(expenses: Iterable[Expense], day: dt.date) -> List[Expense]:
    return [e for e in expenses if e.date == day]


def weekly_expenses(expenses: Iterable[Expense], anchor: dt.date) -> List[Expense]:
    return _in_range(expenses, *week_range(anchor))


def job_totals(jobs: Iterable[Job]) -> Tuple[int, int]:
    drive = sum(j.drive_time or 0 for j in jobs)
    work = sum(j.work_time or 0 for j in jobs)
    return drive, work


def expense_total(expenses: Iterable[Expense]) -> Decimal:
    return sum((e.amount or Decimal("0") for e in expenses), Decimal("0"))


def build_report(mode: ReportMode, anchor: dt.date, jobs: Iterable[Job], expenses: Iterable[Expense]) -> Report:
    """
    Jobs and expenses whose date falls in the daily or weekly window around
    the anchor, with summed drive/work minutes and expense amount. Pure: the
    inputs are only read.
    """
    start, end = date_range(mode, anchor)
    sel_jobs = _in_range(jobs, start, end)
    sel_expenses = _in_range(expenses, start, end)
    drive, work = job_totals(sel_jobs)

    return Report(
        mode=mode,
        start=start,
        end=end,
        jobs=sel_jobs,
        expenses=sel_expenses,
        totals=Totals(drive_time=drive, work_time=work, expenses=expense_total(sel_expenses)),
    )


# ---------------------------------------------------
#                 FORMATTING / EXPORT
# ---------------------------------------------------
def format_minutes(minutes) -> str:
    minutes = int(minutes or 0)
    return f"{minutes // 60}h {minutes % 60}m"


def format_time_of_day(ts) -> str:
    if not ts:
        return "--"
    return to_dt(ts).astimezone(LOCAL_TZ).strftime("%I:%M %p")


def report_frame(report: Report) -> pd.DataFrame:
    rows = [
        {
            "date": j.date.isoformat(),
            "customer": j.customer_name,
            "facility": j.facility,
            "work_scope": j.work_scope,
            "tasks_completed": j.tasks_completed,
            "headed": format_time_of_day(j.headed_time),
            "arrived": format_time_of_day(j.arrived_time),
            "left": format_time_of_day(j.left_time),
            "drive_time": format_minutes(j.drive_time),
            "work_time": format_minutes(j.work_time),
        }
        for j in report.jobs
    ]
    columns = ["date", "customer", "facility", "work_scope", "tasks_completed",
               "headed", "arrived", "left", "drive_time", "work_time"]
    return pd.DataFrame(rows, columns=columns)


def expense_frame(report: Report) -> pd.DataFrame:
    rows = [
        {
            "date": e.date.isoformat(),
            "description": e.description,
            "category": e.category.value,
            "amount": f"{(e.amount or Decimal('0')):.2f}",
            "receipt": e.receipt_name or "",
        }
        for e in report.expenses
    ]
    return pd.DataFrame(rows, columns=["date", "description", "category", "amount", "receipt"])


def export_report_csv(report: Report) -> str:
    """
    Jobs table, a blank line, then the expenses table, then one totals row.
    """
    jobs_csv = report_frame(report).to_csv(index=False)
    expenses_csv = expense_frame(report).to_csv(index=False)
    totals = report.totals
    totals_csv = pd.DataFrame([{
        "period_start": report.start.isoformat(),
        "period_end": report.end.isoformat(),
        "drive_time": format_minutes(totals.drive_time),
        "work_time": format_minutes(totals.work_time),
        "expenses": f"{totals.expenses:.2f}",
    }]).to_csv(index=False)
    return "\n".join([jobs_csv, expenses_csv, totals_csv])
