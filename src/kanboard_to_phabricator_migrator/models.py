"""Data models exchanged between the Collector and the Publisher.

Source records coming from Kanboard are kept as the plain mappings the
JSON-RPC API returns. Only the staging wrapper and the run configuration
are proper types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

SourceTask = dict[str, Any]
SourceComment = dict[str, Any]


@dataclass(frozen=True)
class StagedTask:
    """A Kanboard task together with everything needed to re-create it.

    All data is read from Kanboard before anything is written to Phabricator,
    so a connection problem half way through the publish phase never leaves
    the source side of the data set incomplete.
    """

    task: SourceTask
    comments: tuple[SourceComment, ...] = ()  # Ascending by creation date
    assignee: str | None = None  # Kanboard username of the task owner

    @property
    def title(self) -> str:
        return self.task["title"]

    @property
    def description(self) -> str:
        return self.task.get("description") or ""


@dataclass(frozen=True)
class MigrationConfig:
    """Everything a migration run needs to talk to both systems."""

    kanboard_url: str
    kanboard_token: str
    kanboard_project_id: str
    phabricator_url: str
    phabricator_token: str
    phabricator_project_phid: str
    watcher_phid: str
    # Column ids such as 'Closed' or 'Done' which need not be migrated
    excluded_columns: frozenset[str] = field(default_factory=frozenset)
    kanboard_user: str = "jsonrpc"
