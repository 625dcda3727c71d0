"""Work log data models."""

from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional


class WorklogEntry(BaseModel):
    """Work log entry, either on the source tracker or staged under a parent."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: str = Field(..., description="Worklog ID, unique within its container")
    issue_key: str = Field(..., description="Issue key the time was logged on")
    issue_summary: str = Field(default="", description="Issue summary")
    issue_type: str = Field(default="", description="Issue type name (Task, Bug, ...)")
    labels: List[str] = Field(default_factory=list, description="Issue labels")
    time_spent_seconds: int = Field(default=0, ge=0, description="Time spent in seconds")
    time_spent_formatted: str = Field(default="", description="Time spent in the active display mode")
    comment: str = Field(default="", description="Work log comment")
    author: Optional[str] = Field(None, description="Work log author")
    started: Optional[str] = Field(None, description="Work log date (YYYY-MM-DD)")
    is_new: bool = Field(default=False, description="Staged in this session, not yet written remotely")
    is_moved: bool = Field(default=False, description="Source entry already represented on the destination")
    original_worklog_id: Optional[str] = Field(None, description="Source worklog ID of a staged clone")

    @property
    def identity(self) -> str:
        """ID of the real-world source worklog this entry stands for."""
        return self.original_worklog_id or self.id


class PendingTotals(BaseModel):
    """Count and formatted time of staged worklogs."""

    count: int = 0
    time: str = "0h"


class MigrationBatch(BaseModel):
    """Staged worklogs of one destination parent, ready for migration."""

    parent_id: str
    parent_key: str
    parent_summary: str = ""
    children: List[WorklogEntry] = Field(default_factory=list)
    total_time: str = "0h"


class MigrationProgress(BaseModel):
    """Progress snapshot reported while migrating."""

    current: int = 0
    total: int = 0
    percentage: int = 0
    current_parent: Optional[str] = None
    current_worklog: Optional[str] = None
    phase: str = Field(default="init", description="init, attributes, prepare, migrating or complete")


class MigrationResult(BaseModel):
    """Batch-level migration result.

    success only means that at least one worklog was written.
    """

    success: bool
    migrated_count: int = 0
    failed_count: int = 0
    total: int = 0
    cancelled: bool = False
