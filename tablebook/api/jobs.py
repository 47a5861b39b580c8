"""On-demand maintenance job endpoints"""

from fastapi import APIRouter, Depends

from tablebook.api.deps import get_maintenance_jobs
from tablebook.jobs.maintenance import MaintenanceJobs, job_status
from tablebook.schemas.jobs import JobResult, JobStatusResponse

router = APIRouter()


@router.get("/status", response_model=JobStatusResponse)
async def list_jobs():
    """Registered jobs and their schedules"""
    return job_status()


@router.post("/{name}/run", response_model=JobResult)
async def run_job(
    name: str,
    jobs: MaintenanceJobs = Depends(get_maintenance_jobs),
):
    """Run a maintenance job now"""
    return await jobs.run_job(name)
