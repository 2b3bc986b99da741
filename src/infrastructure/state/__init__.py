"""Persistent migration state: jobs and accounts."""

from infrastructure.state.job_store import JsonJobStore
from infrastructure.state.account_registry import AccountRegistry

__all__ = ["JsonJobStore", "AccountRegistry"]
