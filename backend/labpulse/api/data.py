from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from labpulse.api.schemas import (
    ImportRequest,
    ImportResponse,
    PlanDraftNormalizeResponse,
    PlanTaskItemResponse,
)
from labpulse.db.session import get_db_session
from labpulse.planner.errors import PlannerError
from labpulse.services.data_service import DataService
from labpulse.services.errors import from_planner_error
from labpulse.services.plan_draft_normalizer import normalize_plan_draft

router = APIRouter(tags=["data"])


@router.post("/plan-drafts/normalize", response_model=PlanDraftNormalizeResponse)
def normalize_draft(draft: Any = Body(...)) -> PlanDraftNormalizeResponse:
    try:
        items = normalize_plan_draft(draft)
    except PlannerError as exc:
        raise from_planner_error(exc) from exc
    return PlanDraftNormalizeResponse(
        plan=[PlanTaskItemResponse(**item) for item in items]
    )


@router.get("/data/export")
def export_data(session: Session = Depends(get_db_session)) -> dict[str, Any]:
    return DataService().export_snapshot(session)


@router.post("/data/import", response_model=ImportResponse)
def import_data(
    payload: ImportRequest,
    session: Session = Depends(get_db_session),
) -> ImportResponse:
    summary = DataService().import_snapshot(
        session, payload=payload.data, mode=payload.mode
    )
    return ImportResponse(mode=payload.mode, **summary)
