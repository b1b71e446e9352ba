"""
models.py — Drill log tables and the derived report row.

Tables (append-only, nothing is ever updated or deleted):

    drills      id, type, class_name, message, started_by, started_at
    responses   id, drill_id → drills.id, student_id, time
                UNIQUE (drill_id, student_id): one acknowledgement per student

A drill's class is either a class identifier ("ClassA") or the sentinel
``ALL_CLASSES`` which targets every class.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from drillalert.core.database import Base

ALL_CLASSES = "ALL"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 string; naive values (SQLite) are read back as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


class Drill(Base):
    __tablename__ = "drills"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(64))
    class_name: Mapped[str] = mapped_column("class", String(64), index=True)
    message: Mapped[str] = mapped_column(Text, default="")
    started_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "class": self.class_name,
            "message": self.message,
            "started_by": self.started_by,
            "started_at": isoformat_utc(self.started_at),
        }

    def to_event(self) -> Dict[str, Any]:
        """Live-channel payload (camelCase keys)."""
        return {
            "id": self.id,
            "type": self.type,
            "class": self.class_name,
            "message": self.message,
            "startedBy": self.started_by,
            "startedAt": isoformat_utc(self.started_at),
        }


class DrillResponse(Base):
    """A student's "I'm safe" acknowledgement of one drill."""

    __tablename__ = "responses"
    __table_args__ = (
        UniqueConstraint("drill_id", "student_id", name="uq_response_drill_student"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    drill_id: Mapped[int] = mapped_column(ForeignKey("drills.id"), index=True)
    student_id: Mapped[int] = mapped_column(Integer)
    time: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "drill_id": self.drill_id,
            "student_id": self.student_id,
            "time": isoformat_utc(self.time),
        }

    def to_event(self) -> Dict[str, Any]:
        return {
            "drillId": self.drill_id,
            "studentId": self.student_id,
            "time": isoformat_utc(self.time),
        }


@dataclass(frozen=True)
class DrillReport:
    """One report row: a drill plus how many students acknowledged it."""
    drill_id: int
    type: str
    class_name: str
    message: str
    started_by: Optional[str]
    started_at: datetime
    responses_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "drill_id": self.drill_id,
            "type": self.type,
            "class": self.class_name,
            "message": self.message,
            "started_by": self.started_by,
            "started_at": isoformat_utc(self.started_at),
            "responses_count": self.responses_count,
        }


@dataclass(frozen=True)
class ResponseEntry:
    """A response joined with the responding student's directory identity."""
    response: DrillResponse
    username: Optional[str] = None
    name: Optional[str] = None
    class_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.response.to_dict(),
            "username": self.username,
            "name": self.name,
            "class": self.class_name,
        }
