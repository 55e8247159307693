"""Read everything that is going to be migrated out of Kanboard.

The Collector finishes all its Kanboard traffic before the Publisher sends a
single request to Phabricator.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable
from typing import TYPE_CHECKING

from .exceptions import KanboardError
from .models import SourceComment, SourceTask, StagedTask

if TYPE_CHECKING:
    from .kanboard_utils import KanboardClient

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

# Kanboard uses 0 for "nobody" in owner_id
_NO_OWNER: frozenset[str] = frozenset({"", "0"})


def filter_tasks(tasks: Iterable[SourceTask], excluded_columns: Collection[str]) -> list[SourceTask]:
    """Drop tasks sitting in one of the excluded columns.

    Kanboard returns ids as strings or integers depending on version, so the
    comparison is done on the string form.
    """
    return [t for t in tasks if str(t.get("column_id")) not in excluded_columns]


def sort_comments(comments: Iterable[SourceComment]) -> tuple[SourceComment, ...]:
    """Sort comments oldest first, keeping fetch order for equal dates."""
    return tuple(sorted(comments, key=lambda c: int(c["date"])))


def resolve_assignee(client: KanboardClient, owner_id: object) -> str | None:
    """Resolve a Kanboard owner id to the owner's username.

    Returns None for unassigned tasks, unknown users, or when the user lookup
    itself fails. None of these are reasons to stop the migration.
    """
    if owner_id is None or str(owner_id) in _NO_OWNER:
        return None

    try:
        user = client.get_user(str(owner_id))
    except KanboardError as e:
        logger.warning(f"Could not resolve Kanboard user {owner_id}: {e}")
        return None

    if not user:
        logger.debug(f"Kanboard user {owner_id} not found, leaving task unassigned")
        return None
    return user.get("username")


def stage_task(client: KanboardClient, task: SourceTask) -> StagedTask:
    """Fetch comments and assignee of one task and wrap them up."""
    comments = sort_comments(client.get_all_comments(str(task["id"])))
    assignee = resolve_assignee(client, task.get("owner_id"))
    logger.debug(f"Staged task {task['id']} '{task['title']}' with {len(comments)} comments")
    return StagedTask(task=task, comments=comments, assignee=assignee)


def collect(
    client: KanboardClient,
    project_id: str,
    excluded_columns: Collection[str],
) -> list[StagedTask]:
    """Stage all migratable tasks of a Kanboard project.

    Args:
        client: Connected Kanboard client
        project_id: Kanboard project id
        excluded_columns: Column ids whose tasks are not migrated

    Returns:
        Fully materialized list of staged tasks, in Kanboard's task order.

    Raises:
        KanboardError: If the task list or any comment list cannot be fetched
    """
    tasks = client.get_all_tasks(project_id)
    retained = filter_tasks(tasks, excluded_columns)
    logger.info(
        f"Found {len(tasks)} active tasks in Kanboard project {project_id}, "
        f"{len(tasks) - len(retained)} in excluded columns"
    )

    staged = [stage_task(client, task) for task in retained]
    logger.info(f"Staged {len(staged)} tasks with {sum(len(s.comments) for s in staged)} comments")
    return staged
