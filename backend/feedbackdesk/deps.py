from __future__ import annotations
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from feedbackdesk.config import settings
from feedbackdesk.db import get_session
from feedbackdesk.services.lifecycle import SubmissionLifecycle
from feedbackdesk.services.read_models import SubmissionQueries
from feedbackdesk.services.repository import SubmissionRepository
from feedbackdesk.services.sql_repository import SqlSubmissionRepository

async def get_repository(session: AsyncSession = Depends(get_session)) -> SubmissionRepository:
    return SqlSubmissionRepository(session)

async def get_lifecycle(repo: SubmissionRepository = Depends(get_repository)) -> SubmissionLifecycle:
    return SubmissionLifecycle(repo, pending_limit=settings.pending_submission_limit)

async def get_queries(repo: SubmissionRepository = Depends(get_repository)) -> SubmissionQueries:
    return SubmissionQueries(repo)
