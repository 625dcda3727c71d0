"""Jira issue data models."""

from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional

from .worklog import WorklogEntry


class ParentTask(BaseModel):
    """Destination issue acting as a time-logging bucket."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: str = Field(..., description="Issue ID")
    issue_key: str = Field(..., description="Issue key (e.g., PROJ-123)")
    issue_summary: str = Field(default="", description="Issue summary")
    type: str = Field(default="Task", description="Issue type name")
    status: str = Field(default="", description="Issue status, or a marker for placeholder parents")
    children: List[WorklogEntry] = Field(default_factory=list, description="Ordered worklogs")
    is_expanded: bool = Field(default=True, description="UI expansion state")
    initial_total_time_seconds: int = Field(default=0, ge=0, description="Remote total at last fetch")

    def staged_children(self) -> List[WorklogEntry]:
        """Children not yet written to the destination."""
        return [child for child in self.children if child.is_new]

    def historical_children(self) -> List[WorklogEntry]:
        """Children already persisted on the destination."""
        return [child for child in self.children if not child.is_new]

    def find_child(self, worklog_id: str) -> Optional[WorklogEntry]:
        for child in self.children:
            if child.id == worklog_id:
                return child
        return None


class WorkAttributeDefinition(BaseModel):
    """Tempo work attribute definition."""

    model_config = ConfigDict(populate_by_name=True)

    key: str
    name: str = ""
    type: Optional[str] = None
    required: bool = False
    values: List[str] = Field(default_factory=list, description="Allowed values for static lists")

    @property
    def is_category(self) -> bool:
        return self.name == "Category" or self.key == "_Category_"
