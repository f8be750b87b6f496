from __future__ import annotations
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable

from sqlalchemy import select, update, func, text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from feedbackdesk.enums import SubmissionStatus
from feedbackdesk.errors import StorageUnavailable
from feedbackdesk.models.service import Service
from feedbackdesk.models.submission import Submission
from feedbackdesk.models.user import User
from feedbackdesk.schemas.auth import UserRead
from feedbackdesk.schemas.service import ServiceCreate, ServiceRead
from feedbackdesk.schemas.submission import SubmissionRead


def _is_transient(exc: DBAPIError) -> bool:
    return isinstance(exc, OperationalError) or bool(getattr(exc, "connection_invalidated", False))


class SqlSubmissionRepository:
    """Repository over one AsyncSession; the session's transaction is the unit of work."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def _guard(self) -> AsyncIterator[None]:
        try:
            yield
        except DBAPIError as e:
            if _is_transient(e):
                raise StorageUnavailable(reason=type(e.orig).__name__ if e.orig else "dbapi") from e
            raise

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        try:
            yield
            async with self._guard():
                await self.session.commit()
        except BaseException:
            await self.session.rollback()
            raise

    def _dialect(self) -> str:
        return self.session.get_bind().dialect.name

    async def lock_user(self, user_id: int) -> None:
        """Transaction-scoped advisory lock; other dialects rely on the conditional writes alone."""
        if self._dialect() != "postgresql":
            return
        async with self._guard():
            await self.session.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:k))"), {"k": f"submissions:user:{user_id}"}
            )

    # ---------- submissions ----------

    async def get_submission(self, submission_id: int) -> SubmissionRead | None:
        async with self._guard():
            row = await self.session.scalar(
                select(Submission)
                .where(Submission.id == submission_id)
                .execution_options(populate_existing=True)
            )
        return SubmissionRead.model_validate(row) if row else None

    async def create_submission(self, values: dict[str, Any]) -> SubmissionRead:
        row = Submission(**values)
        async with self._guard():
            self.session.add(row)
            await self.session.flush()
        return SubmissionRead.model_validate(row)

    async def update_submission(
        self, submission_id: int, *, expected_status: SubmissionStatus, values: dict[str, Any]
    ) -> SubmissionRead | None:
        stmt = (
            update(Submission)
            .where(Submission.id == submission_id, Submission.status == str(expected_status))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self._guard():
            result = await self.session.execute(stmt)
        if result.rowcount != 1:
            return None
        return await self.get_submission(submission_id)

    async def list_submissions(
        self, *, user_id: int | None = None, statuses: Iterable[SubmissionStatus] | None = None
    ) -> list[SubmissionRead]:
        q = select(Submission)
        if user_id is not None:
            q = q.where(Submission.user_id == user_id)
        if statuses is not None:
            q = q.where(Submission.status.in_([str(s) for s in statuses]))
        q = q.order_by(Submission.id.asc()).execution_options(populate_existing=True)
        async with self._guard():
            rows = (await self.session.execute(q)).scalars().all()
        return [SubmissionRead.model_validate(r) for r in rows]

    async def count_submissions(self, *, user_id: int, status: SubmissionStatus) -> int:
        async with self._guard():
            total = await self.session.scalar(
                select(func.count()).select_from(Submission)
                .where(Submission.user_id == user_id, Submission.status == str(status))
            )
        return int(total or 0)

    # ---------- services ----------

    async def get_service(self, service_id: int) -> ServiceRead | None:
        async with self._guard():
            row = await self.session.get(Service, service_id, populate_existing=True)
        return ServiceRead.model_validate(row) if row else None

    async def list_services(self) -> list[ServiceRead]:
        async with self._guard():
            rows = (await self.session.execute(select(Service).order_by(Service.id.asc()))).scalars().all()
        return [ServiceRead.model_validate(r) for r in rows]

    async def create_service(self, data: ServiceCreate) -> ServiceRead:
        row = Service(**data.model_dump())
        async with self._guard():
            self.session.add(row)
            await self.session.flush()
        return ServiceRead.model_validate(row)

    # ---------- users ----------

    async def get_user(self, user_id: int) -> UserRead | None:
        async with self._guard():
            row = await self.session.get(User, user_id, populate_existing=True)
        return UserRead.model_validate(row) if row else None

    async def increment_user_submission_count(self, user_id: int) -> None:
        async with self._guard():
            await self.session.execute(
                update(User)
                .where(User.id == user_id)
                .values(submission_count=User.submission_count + 1)
                .execution_options(synchronize_session=False)
            )
