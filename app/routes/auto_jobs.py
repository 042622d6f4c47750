"""
API endpoints for the auto job lifecycle
(The periodic loop runs on its own; these are for manual triggers and status)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import Project
from ..schemas import AutoJobRunResult, AutoJobStatusResponse, ProjectLifecycleResponse
from ..services.auto_job_service import AutoJobService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auto-jobs", tags=["Auto Jobs"])


def get_auto_job_service(request: Request) -> AutoJobService:
    """The service instance is created at startup and stored on app.state"""
    service = getattr(request.app.state, "auto_job_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Auto job service not initialized")
    return service


@router.get("/status", response_model=AutoJobStatusResponse)
async def get_auto_job_status(service: AutoJobService = Depends(get_auto_job_service)):
    return AutoJobStatusResponse(**service.status())


@router.post("/run", response_model=AutoJobRunResult)
async def run_auto_job_check(service: AutoJobService = Depends(get_auto_job_service)):
    """Manually trigger one auto-start/auto-complete pass"""
    summary = await service.tick()
    return AutoJobRunResult(**summary)


@router.post("/projects/{project_id}/arrive", response_model=ProjectLifecycleResponse)
async def mark_project_arrived(
    project_id: int,
    organization_id: int = Query(...),
    service: AutoJobService = Depends(get_auto_job_service),
    db: Session = Depends(get_db),
):
    """Record that the technician arrived at a scheduled job site"""
    project = (
        db.query(Project)
        .filter(Project.id == project_id, Project.organization_id == organization_id)
        .first()
    )
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")

    try:
        marked = await service.mark_arrival(project_id, organization_id)
    except Exception as e:
        logger.error(f"❌ Failed to mark arrival for job {project_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to mark arrival") from e

    if marked:
        logger.info(f"📍 Arrival recorded for job {project_id}")

    db.expire_all()
    project = db.query(Project).filter(Project.id == project_id).first()
    return ProjectLifecycleResponse.model_validate(project)
