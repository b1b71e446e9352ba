"""
FastAPI routes: Login and the teacher/student directory.

Provides endpoints to:
    POST /api/v1/login              — authenticate a teacher, student or admin
    POST /api/v1/register-teacher   — create a teacher account
    POST /api/v1/add-student        — create one student
    POST /api/v1/upload-students    — bulk import a roster CSV
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, File, UploadFile

from drillalert.api.schemas import AddStudentRequest, LoginRequest, RegisterTeacherRequest
from drillalert.core.errors import ValidationError
from drillalert.directory.csv_import import parse_roster
from drillalert.directory.models import StudentEntry
from drillalert.services import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["directory"])


@router.post(
    "/login",
    summary="Authenticate a user",
    description="Checks the bcrypt hash for the given role. Admins are teachers with is_admin set.",
)
async def login(request: LoginRequest, services: Services = Depends(get_services)) -> Dict[str, Any]:
    user = await services.directory.authenticate(request.role, request.username, request.password)
    return {"success": True, "user": user.to_dict()}


@router.post("/register-teacher", summary="Register a teacher account")
async def register_teacher(
    request: RegisterTeacherRequest, services: Services = Depends(get_services)
) -> Dict[str, Any]:
    teacher_id = await services.directory.register_teacher(
        request.username, request.password, request.name, is_admin=request.is_admin,
    )
    return {"success": True, "id": teacher_id}


@router.post("/add-student", summary="Add a single student")
async def add_student(
    request: AddStudentRequest, services: Services = Depends(get_services)
) -> Dict[str, Any]:
    student_id = await services.directory.add_student(
        StudentEntry(
            username=request.username,
            password=request.password,
            name=request.name,
            class_name=request.class_name,
            parent_phone=request.parent_phone,
        )
    )
    return {"success": True, "id": student_id}


@router.post(
    "/upload-students",
    summary="Bulk import students from CSV",
    description=(
        "Columns: USN, Name, DOB, Class, ParentPhone. The DOB becomes the "
        "initial password. Rows fail individually; the rest are inserted."
    ),
)
async def upload_students(
    file: UploadFile = File(...), services: Services = Depends(get_services)
) -> Dict[str, Any]:
    content = await file.read()
    try:
        roster = parse_roster(content, services.config.DEFAULT_CLASS)
    except UnicodeDecodeError as exc:
        raise ValidationError("CSV must be UTF-8 encoded", field="file") from exc

    result = await services.directory.bulk_insert(roster.entries)
    errors = sorted(roster.errors + result.errors, key=lambda e: e.row)

    logger.info(
        "Roster %s: %d inserted, %d rejected",
        file.filename, result.inserted, len(errors),
    )
    return {
        "success": True,
        "inserted": result.inserted,
        "errors": [e.to_dict() for e in errors],
    }
