"""
Report API Endpoints

REST access to the report catalogue. Each request loads one report for a
selectable date range; fetch failures surface as a generic 502.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
import structlog

from pos_reports.ingestion.sql_source import SqlRecordSource
from pos_reports.reports.errors import InvalidDateRangeError, ReportLoadError, UnknownReportError
from pos_reports.reports.service import ReportService

router = APIRouter()
logger = structlog.get_logger(__name__)


class ReportInfo(BaseModel):
    """Catalogue entry"""
    name: str
    title: str
    datasets: List[str]


class ReportResponse(BaseModel):
    """Aggregated report payload"""
    report: str
    title: str
    days: int
    start: str
    end: str
    generated_at: str
    summary: Dict[str, float]
    tables: Dict[str, List[Dict[str, Any]]]


def get_report_service() -> ReportService:
    """Report service backed by the POS database"""
    return ReportService(SqlRecordSource())


@router.get("", response_model=List[ReportInfo])
async def list_available_reports(
    service: ReportService = Depends(get_report_service),
) -> List[ReportInfo]:
    """List every registered report."""
    return [ReportInfo(**definition.describe()) for definition in service.catalogue()]


@router.get("/{name}", response_model=ReportResponse)
async def get_report(
    name: str,
    days: Optional[int] = Query(None, description="Date range in days (7, 30, 90 or 365)"),
    service: ReportService = Depends(get_report_service),
) -> ReportResponse:
    """
    Load one report.

    Errors:
    - 404 unknown report
    - 422 date range not selectable
    - 502 a dataset could not be fetched
    """
    try:
        result = await service.load(name, days)
    except UnknownReportError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidDateRangeError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ReportLoadError as e:
        logger.error("Report request failed", report=name, dataset=e.dataset)
        raise HTTPException(status_code=502, detail=ReportLoadError.message)

    return ReportResponse(**result.to_dict())
