"""
store.py — Append-only persistence for drills and student responses.

Every write is its own short transaction; nothing is updated or deleted.
Timestamps come from the server clock at insert time, never from clients.

Policies:
    • A response must reference an existing drill (ValidationError otherwise).
    • A student acknowledges a drill at most once: a repeat submission returns
      the stored response and inserts nothing.
    • Persistence failures surface as StorageError; nothing is retried here.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from drillalert.core.errors import NotFoundError, StorageError, ValidationError
from drillalert.directory.models import Student
from drillalert.drills.models import (
    ALL_CLASSES,
    Drill,
    DrillReport,
    DrillResponse,
    ResponseEntry,
    utcnow,
)

logger = logging.getLogger(__name__)


class DrillStore:
    """Drill log and acknowledgement log over an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # ── Writes ──

    async def create_drill(
        self,
        type: str,
        class_name: str,
        message: str,
        started_by: Optional[str],
    ) -> Drill:
        drill = Drill(
            type=type,
            class_name=class_name,
            message=message,
            started_by=started_by,
            started_at=utcnow(),
        )
        try:
            async with self._session_factory() as session:
                session.add(drill)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Drill insert failed: %s", exc)
            raise StorageError("create_drill", str(exc)) from exc

        logger.info(
            "Drill %d recorded: %s for %s",
            drill.id, drill.type, drill.class_name,
            extra={"drill_id": drill.id, "class_name": drill.class_name},
        )
        return drill

    async def record_response(
        self, drill_id: int, student_id: int
    ) -> Tuple[DrillResponse, bool]:
        """
        Store a student's acknowledgement.

        Returns
        -------
        (DrillResponse, bool)
            The stored row and True if it was created by this call,
            False if the student had already responded.
        """
        try:
            async with self._session_factory() as session:
                if await session.get(Drill, drill_id) is None:
                    raise ValidationError(
                        f"Drill {drill_id} does not exist", field="drill_id"
                    )

                existing = await self._find_response(session, drill_id, student_id)
                if existing is not None:
                    return existing, False

                response = DrillResponse(
                    drill_id=drill_id, student_id=student_id, time=utcnow()
                )
                session.add(response)
                await session.commit()
                return response, True
        except IntegrityError:
            # Lost a race with a concurrent submission from the same student
            async with self._session_factory() as session:
                existing = await self._find_response(session, drill_id, student_id)
            if existing is None:
                raise StorageError("record_response", "integrity violation")
            return existing, False
        except SQLAlchemyError as exc:
            raise StorageError("record_response", str(exc), drill_id=drill_id) from exc

    # ── Reads ──

    async def get_drill(self, drill_id: int) -> Optional[Drill]:
        try:
            async with self._session_factory() as session:
                return await session.get(Drill, drill_id)
        except SQLAlchemyError as exc:
            raise StorageError("get_drill", str(exc), drill_id=drill_id) from exc

    async def get_current_drill(self, class_name: str) -> Optional[Drill]:
        """Most recent drill aimed at ``class_name`` or at every class."""
        stmt = (
            select(Drill)
            .where(or_(Drill.class_name == class_name, Drill.class_name == ALL_CLASSES))
            .order_by(Drill.started_at.desc(), Drill.id.desc())
            .limit(1)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StorageError("get_current_drill", str(exc), class_name=class_name) from exc

    async def list_reports(self) -> List[DrillReport]:
        """Every drill with its response count, newest first (ties: higher id first)."""
        counts = (
            select(
                DrillResponse.drill_id.label("drill_id"),
                func.count(DrillResponse.id).label("responses_count"),
            )
            .group_by(DrillResponse.drill_id)
            .subquery()
        )
        stmt = (
            select(Drill, func.coalesce(counts.c.responses_count, 0))
            .outerjoin(counts, counts.c.drill_id == Drill.id)
            .order_by(Drill.started_at.desc(), Drill.id.desc())
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as exc:
            raise StorageError("list_reports", str(exc)) from exc

        return [
            DrillReport(
                drill_id=drill.id,
                type=drill.type,
                class_name=drill.class_name,
                message=drill.message,
                started_by=drill.started_by,
                started_at=drill.started_at,
                responses_count=int(count),
            )
            for drill, count in rows
        ]

    async def get_responses(self, drill_id: int) -> List[ResponseEntry]:
        """Responses for one drill joined with the student directory, oldest first."""
        stmt = (
            select(DrillResponse, Student.username, Student.name, Student.class_name)
            .outerjoin(Student, Student.id == DrillResponse.student_id)
            .where(DrillResponse.drill_id == drill_id)
            .order_by(DrillResponse.time, DrillResponse.id)
        )
        try:
            async with self._session_factory() as session:
                if await session.get(Drill, drill_id) is None:
                    raise NotFoundError("Drill", drill_id=drill_id)
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as exc:
            raise StorageError("get_responses", str(exc), drill_id=drill_id) from exc

        return [
            ResponseEntry(response=resp, username=username, name=name, class_name=cls)
            for resp, username, name, cls in rows
        ]

    @staticmethod
    async def _find_response(
        session: AsyncSession, drill_id: int, student_id: int
    ) -> Optional[DrillResponse]:
        result = await session.execute(
            select(DrillResponse).where(
                DrillResponse.drill_id == drill_id,
                DrillResponse.student_id == student_id,
            )
        )
        return result.scalar_one_or_none()
