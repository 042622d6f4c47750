from datetime import timedelta

import pytest

from app.models import JobStatus, Project
from app.worker import WorkerSettings, auto_job_check_task

from .conftest import NOW


def test_worker_registers_minute_cron():
    assert auto_job_check_task in WorkerSettings.functions
    assert [job.coroutine for job in WorkerSettings.cron_jobs] == [auto_job_check_task]


@pytest.mark.asyncio
async def test_auto_job_check_task_runs_tick(db, service, make_project):
    project = make_project(status=JobStatus.ARRIVED, arrived_at=NOW - timedelta(minutes=20))

    summary = await auto_job_check_task({"auto_job_service": service})

    assert summary["auto_started"] == 1
    db.expire_all()
    assert db.get(Project, project.id).status == JobStatus.IN_PROGRESS

