"""Migration rule model."""

from typing import Literal

from pydantic import BaseModel, Field, ConfigDict, field_validator

RuleSourceType = Literal["task", "label", "type"]


class MigrationRule(BaseModel):
    """User-authored routing rule: worklogs matching the source go to the target task."""

    model_config = ConfigDict(populate_by_name=True)

    source_type: RuleSourceType = Field(..., description="Match by issue key, label or issue type")
    source_value: str = Field(..., description="Value to match")
    target_task_key: str = Field(..., description="Destination parent issue key")
    target_task_summary: str = Field(default="", description="Destination parent summary")

    @field_validator('source_value', 'target_task_key', mode='before')
    @classmethod
    def strip_value(cls, v) -> str:
        if v is None:
            raise ValueError("Value is required")
        v = str(v).strip()
        if not v:
            raise ValueError("Value is required")
        return v

    @field_validator('target_task_key')
    @classmethod
    def upper_target_key(cls, v: str) -> str:
        return v.upper()
