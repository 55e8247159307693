"""Push staged Kanboard data into a Phabricator Maniphest project.

Publishing runs in strict order, each step depending on the previous one:

1. Create one Maniphest task per staged task.
2. Re-query the project and index its tasks by title.
3. Replay the comments of every staged task on its indexed counterpart,
   then remove the watcher from every indexed task.

Step 2 also picks up tasks created by an earlier, interrupted run, so a
re-run still gets comments onto them. Matching by title is unreliable but
is the best re-entrant approach Conduit offers without extra fields.
"""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .exceptions import TaskLookupError
from .models import SourceComment, StagedTask

if TYPE_CHECKING:
    from .phabricator_utils import ConduitClient

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)

UNKNOWN_AUTHOR = "Unknown"


@dataclass
class PublishResult:
    """Counters collected while publishing."""

    tasks_created: int = 0
    tasks_indexed: int = 0
    comments_replayed: int = 0
    tasks_unsubscribed: int = 0
    unmatched_titles: list[str] = field(default_factory=list)


def format_timestamp(epoch_seconds: int | str) -> str:
    """Format epoch seconds as e.g. "2021-01-01 00:00:00 UTC"."""
    timestamp_dt = dt.datetime.fromtimestamp(int(epoch_seconds), tz=dt.UTC)
    return timestamp_dt.strftime("%Y-%m-%d %H:%M:%S UTC")


def format_comment_body(comment: SourceComment) -> str:
    """Build the Maniphest comment text for a Kanboard comment, with attribution header."""
    author = comment.get("username") or UNKNOWN_AUTHOR
    return f"Originally made by {author} at {format_timestamp(comment['date'])}\n\n{comment['comment']}"


def create_all(client: ConduitClient, staged_tasks: Iterable[StagedTask], project_phid: str) -> int:
    """Create a Maniphest task for every staged task.

    The PHIDs of the new tasks are only logged. Tasks are found again by title
    in index_destination_tasks().

    Returns:
        Number of tasks created
    """
    created = 0
    for staged in staged_tasks:
        phid = client.create_task(staged.title, staged.description, [project_phid])
        created += 1
        logger.debug(f"Created task {phid}: {staged.title}")
    logger.info(f"Created {created} Maniphest tasks")
    return created


def query_destination_tasks(client: ConduitClient, project_phid: str) -> list[tuple[str, Mapping[str, Any]]]:
    """Return (PHID, record) pairs for every task in the Maniphest project, in Conduit's order.

    maniphest.query answers with a PHID keyed mapping; a plain list of records
    carrying their own "phid" is accepted too.
    """
    result = client.query_tasks([project_phid])
    if isinstance(result, Mapping):
        return list(result.items())
    return [(record["phid"], record) for record in result]


def build_title_index(records: Iterable[tuple[str, Mapping[str, Any]]]) -> dict[str, str]:
    """Map title to PHID. When several tasks share a title the first one wins."""
    index: dict[str, str] = {}
    for phid, record in records:
        title = record.get("title")
        if title in index:
            logger.debug(f"Duplicate title '{title}': keeping {index[title]}, ignoring {phid}")
            continue
        index[title] = phid
    return index


def index_destination_tasks(
    client: ConduitClient,
    project_phid: str,
    records: Sequence[tuple[str, Mapping[str, Any]]] | None = None,
) -> dict[str, str]:
    """Map title to PHID for every task in the Maniphest project.

    Pass records already returned by query_destination_tasks() to index them
    without querying the project again.
    """
    if records is None:
        records = query_destination_tasks(client, project_phid)
    index = build_title_index(records)
    logger.info(f"Indexed {len(index)} titles from {len(records)} Maniphest tasks in {project_phid}")
    return index


def find_task_phid(index: Mapping[str, str], title: str) -> str:
    """Look up the PHID for an exact title.

    Raises:
        TaskLookupError: If no task with this title exists
    """
    try:
        return index[title]
    except KeyError:
        msg = f"No Maniphest task titled '{title}'"
        raise TaskLookupError(msg) from None


def replay_comments(
    client: ConduitClient,
    staged_tasks: Iterable[StagedTask],
    index: Mapping[str, str],
) -> tuple[int, list[str]]:
    """Post every staged comment onto the matching Maniphest task.

    Tasks without a title match are skipped and reported, the rest of the run
    continues.

    Returns:
        Number of comments posted and the titles that had no match
    """
    replayed = 0
    unmatched: list[str] = []
    for staged in staged_tasks:
        try:
            phid = find_task_phid(index, staged.title)
        except TaskLookupError as e:
            logger.error(f"{e}, skipping {len(staged.comments)} comments")  # noqa: TRY400
            unmatched.append(staged.title)
            continue

        for comment in staged.comments:
            transaction = {"type": "comment", "value": format_comment_body(comment)}
            client.edit_task(phid, [transaction])
            replayed += 1
        logger.debug(f"Replayed {len(staged.comments)} comments on {phid}")

    logger.info(f"Replayed {replayed} comments")
    return replayed, unmatched


def unsubscribe_watcher(client: ConduitClient, phids: Iterable[str], watcher_phid: str) -> int:
    """Remove the watcher from the subscribers of every given task.

    Keeps the migration operator from getting mail for later work on the tasks.
    """
    count = 0
    for phid in phids:
        transaction = {"type": "subscribers.remove", "value": [watcher_phid]}
        client.edit_task(phid, [transaction])
        count += 1
    logger.info(f"Unsubscribed {watcher_phid} from {count} tasks")
    return count


def publish(
    client: ConduitClient,
    staged_tasks: Sequence[StagedTask],
    project_phid: str,
    watcher_phid: str,
) -> PublishResult:
    """Run create, index, comment replay and unsubscribe in order.

    The watcher is removed from every task the project query returned, which
    includes tasks hidden behind a duplicate title in the index.
    """
    result = PublishResult()
    result.tasks_created = create_all(client, staged_tasks, project_phid)

    records = query_destination_tasks(client, project_phid)
    index = index_destination_tasks(client, project_phid, records)
    result.tasks_indexed = len(records)

    result.comments_replayed, result.unmatched_titles = replay_comments(client, staged_tasks, index)
    result.tasks_unsubscribed = unsubscribe_watcher(client, [phid for phid, _ in records], watcher_phid)
    return result
