from typing import Literal

from tenantflow.schemas.common import CamelModel


class DashboardStats(CamelModel):
    scope: Literal["global", "tenant"]
    total_projects: int
    active_tasks: int
    completed_tasks: int
    total_users: int
