"""
service.py — Directory of teachers and students.

The drill core consumes three things from here:
    • find_user / authenticate  — login
    • students_in_class         — SMS recipients for an alert
    • bulk_insert               — CSV roster import

Bulk insert runs rows concurrently under a semaphore, one transaction per
row, and collects a per-row outcome instead of stopping at the first error.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from drillalert.core.config import settings
from drillalert.core.errors import (
    AuthenticationError,
    ConflictError,
    StorageError,
    ValidationError,
)
from drillalert.directory.models import (
    USER_TABLES,
    BulkInsertResult,
    RowError,
    Student,
    StudentEntry,
    Teacher,
    UserIdentity,
)
from drillalert.directory.passwords import hash_password_async, verify_password_async
from drillalert.drills.models import ALL_CLASSES

logger = logging.getLogger(__name__)

# Login role → directory table
_ROLE_TABLES = {"teacher": "teachers", "admin": "teachers", "student": "students"}


class DirectoryService:
    """Credential and roster store backed by the ``teachers``/``students`` tables."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        bulk_concurrency: Optional[int] = None,
        default_class: Optional[str] = None,
    ):
        self._session_factory = session_factory
        self.bulk_concurrency = max(1, bulk_concurrency or settings.BULK_IMPORT_CONCURRENCY)
        self.default_class = default_class or settings.DEFAULT_CLASS

    # ── Lookup ──

    async def find_user(
        self, table: str, username: str
    ) -> Optional[Union[Teacher, Student]]:
        """Return the row for ``username`` in ``table`` ("teachers" | "students")."""
        model = USER_TABLES.get(table)
        if model is None:
            raise ValidationError(f"Unknown directory table '{table}'", field="table")
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(model).where(model.username == username)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StorageError("find_user", str(exc), table=table) from exc

    async def authenticate(self, role: str, username: str, password: str) -> UserIdentity:
        table = _ROLE_TABLES.get(role)
        if table is None:
            raise ValidationError(f"Unknown role '{role}'", field="role")
        if not username or not password:
            raise ValidationError("username/password required")

        row = await self.find_user(table, username)
        if row is None:
            raise AuthenticationError("User not found")
        if not await verify_password_async(password, row.password):
            raise AuthenticationError("Wrong password")
        if role == "admin" and not row.is_admin:
            raise AuthenticationError("Not an administrator")

        logger.info("Login: %s as %s", username, role)
        return UserIdentity(
            id=row.id,
            username=row.username,
            name=row.name or row.username,
            role=role,
            class_name=getattr(row, "class_name", None),
        )

    async def students_in_class(self, class_name: str) -> List[Student]:
        """Students of ``class_name``; every student for the ALL sentinel."""
        stmt = select(Student).order_by(Student.id)
        if class_name != ALL_CLASSES:
            stmt = stmt.where(Student.class_name == class_name)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise StorageError("students_in_class", str(exc), class_name=class_name) from exc

    # ── Inserts ──

    async def register_teacher(
        self,
        username: str,
        password: str,
        name: Optional[str] = None,
        *,
        is_admin: bool = False,
    ) -> int:
        if not username or not password:
            raise ValidationError("username/password required")
        teacher = Teacher(
            username=username,
            password=await hash_password_async(password),
            name=name or username,
            is_admin=is_admin,
        )
        return await self._insert(teacher, "Teacher already exists")

    async def add_student(self, entry: StudentEntry) -> int:
        if not entry.username or not entry.password:
            raise ValidationError("username/password required")
        student = Student(
            username=entry.username,
            password=await hash_password_async(entry.password),
            name=entry.name or entry.username,
            class_name=entry.class_name or self.default_class,
            parent_phone=entry.parent_phone or None,
        )
        return await self._insert(student, "Student exists")

    async def bulk_insert(self, entries: Sequence[StudentEntry]) -> BulkInsertResult:
        """
        Insert many students with bounded concurrency.

        Each entry succeeds or fails on its own; failures are reported with
        the entry's source row (or its 1-based position when it has none).
        """
        semaphore = asyncio.Semaphore(self.bulk_concurrency)

        async def insert_one(position: int, entry: StudentEntry) -> Optional[RowError]:
            row = entry.row or position
            async with semaphore:
                try:
                    await self.add_student(entry)
                except (ValidationError, ConflictError, StorageError) as exc:
                    return RowError(row=row, reason=exc.message, username=entry.username)
            return None

        outcomes = await asyncio.gather(
            *(insert_one(i, e) for i, e in enumerate(entries, start=1))
        )

        result = BulkInsertResult()
        for outcome in outcomes:
            if outcome is None:
                result.inserted += 1
            else:
                result.errors.append(outcome)
        result.errors.sort(key=lambda e: e.row)

        logger.info(
            "Bulk insert: %d inserted, %d failed (of %d)",
            result.inserted, len(result.errors), len(entries),
        )
        return result

    async def _insert(self, row: Union[Teacher, Student], conflict_message: str) -> int:
        try:
            async with self._session_factory() as session:
                session.add(row)
                await session.commit()
                return row.id
        except IntegrityError as exc:
            raise ConflictError(conflict_message, username=row.username) from exc
        except SQLAlchemyError as exc:
            raise StorageError("directory insert", str(exc)) from exc
