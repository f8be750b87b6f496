from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException
from feedbackdesk.deps import get_repository
from feedbackdesk.schemas.service import ServiceRead
from feedbackdesk.services.repository import SubmissionRepository

router = APIRouter(prefix="/services", tags=["services"])

@router.get("", response_model=list[ServiceRead])
async def list_services(repo: SubmissionRepository = Depends(get_repository)):
    return await repo.list_services()

@router.get("/{service_id}", response_model=ServiceRead)
async def get_service(service_id: int, repo: SubmissionRepository = Depends(get_repository)):
    service = await repo.get_service(service_id)
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")
    return service
