"""
Custom exception classes for the Kanboard to Phabricator migration tool.
"""

from __future__ import annotations


class MigrationError(Exception):
    """Base exception for migration errors."""


class KanboardError(MigrationError):
    """Raised when a Kanboard JSON-RPC call fails."""


class ConduitError(MigrationError):
    """Raised when a Phabricator Conduit call fails."""


class TaskLookupError(MigrationError):
    """Raised when a staged task has no title match in the destination project."""
