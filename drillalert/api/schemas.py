"""
Pydantic request schemas for the drill-alert API.

Field names follow Python conventions; the camelCase names the browser
client sends ("class", "startedBy", "drillId", ...) are accepted as aliases.
Drill fields are optional here on purpose: a missing type or class is
reported by the orchestrator as a ValidationError with the usual envelope.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class LoginRequest(_Request):
    role: str = Field("student", examples=["teacher"], description="teacher | student | admin")
    username: str = Field(..., examples=["1RV21CS001"])
    password: str = Field(..., examples=["2008-04-12"])


class RegisterTeacherRequest(_Request):
    username: str = Field(..., min_length=1, examples=["mrao"])
    password: str = Field(..., min_length=1)
    name: Optional[str] = Field(None, examples=["Mrs Rao"])
    is_admin: bool = Field(False, alias="isAdmin")


class AddStudentRequest(_Request):
    username: str = Field(..., min_length=1, examples=["1RV21CS001"])
    password: str = Field(..., min_length=1, description="By convention the student's DOB")
    name: Optional[str] = Field(None, examples=["Asha"])
    class_name: Optional[str] = Field(None, alias="class", examples=["ClassA"])
    parent_phone: Optional[str] = Field(None, alias="parentPhone", examples=["+919876543210"])


class DrillRequest(_Request):
    type: Optional[str] = Field(None, examples=["fire"])
    class_name: Optional[str] = Field(None, alias="class", examples=["ClassA"])
    message: Optional[str] = Field(None, examples=["Evacuate via the east stairs"])
    started_by: Optional[str] = Field(None, alias="startedBy", examples=["Mrs Rao"])


class MarkSafeRequest(_Request):
    drill_id: Optional[int] = Field(None, alias="drillId", ge=1)
    student_id: Optional[int] = Field(None, alias="studentId", ge=1)


class JoinMessage(_Request):
    """Payload of the inbound websocket ``join`` event."""
    role: str = Field(..., examples=["student"])
    class_name: Optional[str] = Field(None, alias="class")
    username: Optional[str] = None
    user_id: Optional[int] = Field(None, alias="userId")
