"""Worklog Migrator - reconcile and migrate Jira worklogs between trackers."""

__version__ = "0.1.0"
