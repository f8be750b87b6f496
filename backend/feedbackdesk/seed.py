"""Insert the default service tiers. Safe to run repeatedly: ``python -m feedbackdesk.seed``."""
from __future__ import annotations
import asyncio
import structlog
from feedbackdesk.schemas.service import ServiceCreate, ServiceRead
from feedbackdesk.services.repository import SubmissionRepository

log = structlog.get_logger()

DEFAULT_SERVICES: tuple[ServiceCreate, ...] = (
    ServiceCreate(
        name="Standard Review",
        description="Comprehensive feedback on your academic writing with detailed suggestions for improvement in structure, clarity, flow, and argumentation.",
        unit_price=1500,
        turnaround_hours=72,
        is_express=False,
    ),
    ServiceCreate(
        name="Express Review",
        description="Expedited feedback for time-sensitive submissions. Same comprehensive review with priority handling for urgent deadlines.",
        unit_price=3000,
        turnaround_hours=24,
        is_express=True,
    ),
    ServiceCreate(
        name="Statement of Purpose",
        description="Specialized feedback for graduate school, scholarship, or fellowship application statements, focusing on impact, clarity, and personal narrative.",
        unit_price=1500,
        turnaround_hours=72,
        is_express=False,
    ),
    ServiceCreate(
        name="Research Paper Review",
        description="Detailed feedback on academic research papers, with attention to argumentation, methodology presentation, and academic conventions.",
        unit_price=1500,
        turnaround_hours=72,
        is_express=False,
    ),
)

async def seed_services(repo: SubmissionRepository) -> list[ServiceRead]:
    """Create the default tiers unless the catalogue already has services."""
    async with repo.atomic():
        existing = await repo.list_services()
        if existing:
            log.info("seed.skipped", services=len(existing))
            return existing
        created = [await repo.create_service(s) for s in DEFAULT_SERVICES]
    log.info("seed.services_created", services=len(created))
    return created

async def _main() -> None:
    from feedbackdesk.db import SessionLocal, dispose_engine
    from feedbackdesk.logging_setup import configure_logging
    from feedbackdesk.services.sql_repository import SqlSubmissionRepository

    configure_logging()
    async with SessionLocal() as session:
        await seed_services(SqlSubmissionRepository(session))
    await dispose_engine()

if __name__ == "__main__":
    asyncio.run(_main())
