"""Persistence layer for stepflow workflows and executions."""

from __future__ import annotations

import os
from typing import Dict, Optional

from ..config import StepflowConfig, load_config
from .inmemory import InMemoryWorkflowRepository
from .repository import WorkflowRepository
from .sqlite import SQLiteWorkflowRepository

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresWorkflowRepository
except ImportError:  # pragma: no cover - optional dependency
    PostgresWorkflowRepository = None  # type: ignore

_repository_instance: WorkflowRepository | None = None
# one repository per database URL; "" is the in-memory store
_repositories: Dict[str, WorkflowRepository] = {}


def get_repository(
    database_url: Optional[str] = None, config: Optional[StepflowConfig] = None
) -> WorkflowRepository:
    """Factory function to obtain a workflow repository.

    The repository backend is selected based on ``database_url`` which can be
    provided explicitly, via environment variable ``STEPFLOW_DATABASE_URL`` or
    ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, an in-memory repository is returned. Repositories are cached
    per URL, so repeated calls share one connection.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("STEPFLOW_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or getattr(config, "database_url", None)
        or ""
    )

    cached = _repositories.get(database_url)
    if cached is not None:
        _repository_instance = cached
        return cached

    if not database_url:
        repository: WorkflowRepository = InMemoryWorkflowRepository()
    elif database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        repository = SQLiteWorkflowRepository(path)
    elif database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        if PostgresWorkflowRepository is None:
            raise RuntimeError("Postgres support not available")
        repository = PostgresWorkflowRepository(database_url)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    _repositories[database_url] = repository
    _repository_instance = repository
    return repository


__all__ = [
    "WorkflowRepository",
    "SQLiteWorkflowRepository",
    "PostgresWorkflowRepository",
    "InMemoryWorkflowRepository",
    "get_repository",
]
