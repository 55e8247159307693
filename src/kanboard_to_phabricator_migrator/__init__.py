"""
Kanboard to Phabricator Migration Tool

Moves the tasks of a Kanboard project, with their comments, into a
Phabricator Maniphest project.
"""

from __future__ import annotations

from .cli import main
from .exceptions import ConduitError, KanboardError, MigrationError, TaskLookupError
from .migrator import KanboardToPhabricatorMigrator
from .models import MigrationConfig, StagedTask
from .utils import setup_logging

# Package version
__version__ = "0.1.0"

__all__ = [
    "ConduitError",
    "KanboardError",
    "KanboardToPhabricatorMigrator",
    "MigrationConfig",
    "MigrationError",
    "StagedTask",
    "TaskLookupError",
    "main",
    "setup_logging",
]
