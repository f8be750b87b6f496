"""
Storage contract consumed by the submission engine and read models.

Records crossing this boundary are the frozen pydantic snapshots from
``feedbackdesk.schemas``; callers never hold live ORM objects. Two
implementations exist: ``SqlSubmissionRepository`` (sql_repository.py) for
the service and ``InMemorySubmissionRepository`` below for tests and local
experiments.
"""
from __future__ import annotations
import asyncio
import itertools
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Protocol

from feedbackdesk.enums import SubmissionStatus
from feedbackdesk.schemas.auth import UserRead
from feedbackdesk.schemas.service import ServiceCreate, ServiceRead
from feedbackdesk.schemas.submission import SubmissionRead


class SubmissionRepository(Protocol):
    def atomic(self) -> Any:
        """Async context manager: everything inside commits together or not at all."""
        ...

    async def lock_user(self, user_id: int) -> None:
        """Serialize writers acting for one user until the surrounding atomic block ends."""
        ...

    async def get_submission(self, submission_id: int) -> SubmissionRead | None: ...

    async def create_submission(self, values: dict[str, Any]) -> SubmissionRead: ...

    async def update_submission(
        self, submission_id: int, *, expected_status: SubmissionStatus, values: dict[str, Any]
    ) -> SubmissionRead | None:
        """
        Conditional write: applies ``values`` only while the row still has
        ``expected_status``. Returns None when it does not (or the id is unknown).
        """
        ...

    async def list_submissions(
        self, *, user_id: int | None = None, statuses: Iterable[SubmissionStatus] | None = None
    ) -> list[SubmissionRead]:
        """Matching submissions ordered by id."""
        ...

    async def count_submissions(self, *, user_id: int, status: SubmissionStatus) -> int: ...

    async def get_service(self, service_id: int) -> ServiceRead | None: ...

    async def list_services(self) -> list[ServiceRead]: ...

    async def create_service(self, data: ServiceCreate) -> ServiceRead: ...

    async def get_user(self, user_id: int) -> UserRead | None: ...

    async def increment_user_submission_count(self, user_id: int) -> None: ...


class InMemorySubmissionRepository:
    """
    Process-local repository. ``atomic()`` holds one lock for the whole store
    and restores a snapshot when the block raises, so it behaves like a
    serializable transaction.
    """

    def __init__(self, services: Iterable[ServiceCreate] = (), users: Iterable[UserRead] = ()):
        self._lock = asyncio.Lock()
        self._submissions: dict[int, SubmissionRead] = {}
        self._services: dict[int, ServiceRead] = {}
        self._users: dict[int, UserRead] = {u.id: u for u in users}
        self._submission_ids = itertools.count(1)
        self._service_ids = itertools.count(1)
        for s in services:
            sid = next(self._service_ids)
            self._services[sid] = ServiceRead(id=sid, **s.model_dump())

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        async with self._lock:
            snapshot = (dict(self._submissions), dict(self._users))
            try:
                yield
            except BaseException:
                self._submissions, self._users = snapshot
                raise

    async def lock_user(self, user_id: int) -> None:
        # atomic() already serializes every writer
        return None

    async def _io(self) -> None:
        # give other tasks a chance to run, as a network round trip would
        await asyncio.sleep(0)

    async def get_submission(self, submission_id: int) -> SubmissionRead | None:
        await self._io()
        return self._submissions.get(submission_id)

    async def create_submission(self, values: dict[str, Any]) -> SubmissionRead:
        await self._io()
        sub = SubmissionRead(id=next(self._submission_ids), **values)
        self._submissions[sub.id] = sub
        return sub

    async def update_submission(
        self, submission_id: int, *, expected_status: SubmissionStatus, values: dict[str, Any]
    ) -> SubmissionRead | None:
        await self._io()
        current = self._submissions.get(submission_id)
        if current is None or current.status != expected_status:
            return None
        updated = SubmissionRead.model_validate({**current.model_dump(), **values})
        self._submissions[submission_id] = updated
        return updated

    async def list_submissions(
        self, *, user_id: int | None = None, statuses: Iterable[SubmissionStatus] | None = None
    ) -> list[SubmissionRead]:
        await self._io()
        wanted = set(statuses) if statuses is not None else None
        return [
            s for _, s in sorted(self._submissions.items())
            if (user_id is None or s.user_id == user_id) and (wanted is None or s.status in wanted)
        ]

    async def count_submissions(self, *, user_id: int, status: SubmissionStatus) -> int:
        await self._io()
        return sum(1 for s in self._submissions.values() if s.user_id == user_id and s.status == status)

    async def get_service(self, service_id: int) -> ServiceRead | None:
        await self._io()
        return self._services.get(service_id)

    async def list_services(self) -> list[ServiceRead]:
        await self._io()
        return [s for _, s in sorted(self._services.items())]

    async def create_service(self, data: ServiceCreate) -> ServiceRead:
        await self._io()
        sid = next(self._service_ids)
        self._services[sid] = ServiceRead(id=sid, **data.model_dump())
        return self._services[sid]

    async def get_user(self, user_id: int) -> UserRead | None:
        await self._io()
        return self._users.get(user_id)

    async def increment_user_submission_count(self, user_id: int) -> None:
        await self._io()
        user = self._users.get(user_id)
        if user is None:
            return
        self._users[user_id] = user.model_copy(update={"submission_count": user.submission_count + 1})
