"""
models.py — Directory tables (teachers, students) and import DTOs.

Passwords are stored as bcrypt hashes. A student's ``parent_phone`` is the
contact address used for SMS alerts; it may be missing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from drillalert.core.database import Base


class Teacher(Base):
    __tablename__ = "teachers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    password: Mapped[str] = mapped_column(String(128))
    name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)


class Student(Base):
    __tablename__ = "students"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    password: Mapped[str] = mapped_column(String(128))
    name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    class_name: Mapped[str] = mapped_column("class", String(64), index=True)
    parent_phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)


# Directory "tables" addressable by find_user()
USER_TABLES = {"teachers": Teacher, "students": Student}


@dataclass
class UserIdentity:
    """What the directory hands back to callers; never carries the hash."""
    id: int
    username: str
    name: str
    role: str
    class_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "class": self.class_name,
            "role": self.role,
        }


@dataclass
class StudentEntry:
    """One row to insert into the student directory (password is plain text)."""
    username: str
    password: str
    name: Optional[str] = None
    class_name: Optional[str] = None
    parent_phone: Optional[str] = None
    row: Optional[int] = None  # 1-based source row when imported from CSV


@dataclass
class RowError:
    row: int
    reason: str
    username: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"row": self.row, "username": self.username, "reason": self.reason}


@dataclass
class BulkInsertResult:
    inserted: int = 0
    errors: List[RowError] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inserted": self.inserted,
            "errors": [e.to_dict() for e in self.errors],
        }
