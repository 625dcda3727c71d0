"""CLI commands for Worklog Migrator."""

from .migrate import migrate
from .status import status

__all__ = ['migrate', 'status']
