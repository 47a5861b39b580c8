"""Background job schemas"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel


class JobResult(BaseModel):
    """Outcome of one job run"""
    job: str
    success: bool
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    details: Dict[str, Any] = {}
    error: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None


class JobInfo(BaseModel):
    """Registered job and its schedule"""
    name: str
    schedule: str
    description: str


class JobStatusResponse(BaseModel):
    """Registered jobs"""
    jobs: List[JobInfo]
    timezone: str = "UTC"


class RestaurantWeeklyStats(BaseModel):
    """Trailing-window reservation statistics for one restaurant"""
    restaurant_id: str
    restaurant_name: str
    total: int
    by_status: Dict[str, int]
    total_guests: int
    average_party_size: float
    completion_rate: float
    no_show_rate: float
