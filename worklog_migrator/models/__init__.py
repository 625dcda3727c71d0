"""Data models for worklog migration."""

from .issue import ParentTask, WorkAttributeDefinition
from .rule import MigrationRule
from .worklog import (
    MigrationBatch,
    MigrationProgress,
    MigrationResult,
    PendingTotals,
    WorklogEntry,
)

__all__ = [
    'MigrationBatch',
    'MigrationProgress',
    'MigrationResult',
    'MigrationRule',
    'ParentTask',
    'PendingTotals',
    'WorkAttributeDefinition',
    'WorklogEntry',
]
