"""
FastAPI routes: Drill lifecycle, alerts and reports.

Provides endpoints to:
    POST /api/v1/start-drill                  — record a drill and notify live clients
    POST /api/v1/send-alert                   — record an alert, notify live, SMS parents
    POST /api/v1/mark-safe                    — a student acknowledges a drill
    GET  /api/v1/current-drill/{class_name}   — latest drill reaching a class
    GET  /api/v1/reports                      — every drill with its response count
    GET  /api/v1/live-report                  — newest drill report
    GET  /api/v1/responses/{drill_id}         — who responded to a drill
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from drillalert.api.schemas import DrillRequest, MarkSafeRequest
from drillalert.services import Services, get_services

router = APIRouter(prefix="/api/v1", tags=["drills"])


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@router.post(
    "/start-drill",
    summary="Start a drill",
    description=(
        "Stores the drill, then publishes drillStarted to the target class "
        "(every student for class ALL) and to teacher/admin dashboards."
    ),
)
async def start_drill(
    request: DrillRequest, services: Services = Depends(get_services)
) -> Dict[str, Any]:
    drill = await services.orchestrator.start_drill(
        request.type, request.class_name, request.message, request.started_by,
    )
    return {"success": True, "drill": drill.to_dict()}


@router.post(
    "/send-alert",
    summary="Send an alert with SMS to parents",
    description=(
        "Stores the alert, publishes it live, then texts each parent in the "
        "class. Individual SMS failures are listed in details and do not fail "
        "the request."
    ),
)
async def send_alert(
    request: DrillRequest, services: Services = Depends(get_services)
) -> Dict[str, Any]:
    result = await services.orchestrator.send_alert_with_sms(
        request.type, request.class_name, request.message, request.started_by,
    )
    return {"success": True, "mode": services.bridge.mode, **result.to_dict()}


@router.post("/mark-safe", summary="Acknowledge a drill as safe")
async def mark_safe(
    request: MarkSafeRequest, services: Services = Depends(get_services)
) -> Dict[str, Any]:
    response, created = await services.orchestrator.record_safe(
        request.drill_id, request.student_id,
    )
    return {"success": True, "response": response.to_dict(), "duplicate": not created}


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

@router.get("/current-drill/{class_name}", summary="Latest drill for a class")
async def current_drill(
    class_name: str, services: Services = Depends(get_services)
) -> Dict[str, Any]:
    drill = await services.orchestrator.get_current_drill(class_name)
    return {"success": True, "drill": drill.to_dict() if drill else None}


@router.get("/reports", summary="All drills with response counts, newest first")
async def reports(services: Services = Depends(get_services)) -> Dict[str, Any]:
    rows = await services.orchestrator.get_all_reports()
    return {"success": True, "reports": [r.to_dict() for r in rows]}


@router.get("/live-report", summary="Newest drill report")
async def live_report(
    class_name: Optional[str] = Query(None, description="Only drills reaching this class"),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    report = await services.orchestrator.get_live_report(class_name)
    return {"success": True, "report": report.to_dict() if report else None}


@router.get("/responses/{drill_id}", summary="Responses to a drill with student identity")
async def responses(
    drill_id: int, services: Services = Depends(get_services)
) -> Dict[str, Any]:
    entries = await services.orchestrator.get_responses(drill_id)
    return {"success": True, "responses": [e.to_dict() for e in entries]}
