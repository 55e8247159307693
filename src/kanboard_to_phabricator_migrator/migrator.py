"""
Main migration class for Kanboard to Phabricator migration.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from . import kanboard_utils as kbu
from . import phabricator_utils as phu
from .collector import collect
from .exceptions import ConduitError, KanboardError, MigrationError
from .publisher import PublishResult, publish

if TYPE_CHECKING:
    from .models import MigrationConfig, StagedTask

# Module-wide logger
logger: logging.Logger = logging.getLogger(__name__)


class KanboardToPhabricatorMigrator:
    """Main migration class."""

    def __init__(
        self,
        config: MigrationConfig,
        *,
        kanboard_client: kbu.KanboardClient | None = None,
        phabricator_client: phu.ConduitClient | None = None,
    ) -> None:
        self.config: MigrationConfig = config

        self.kanboard_client: kbu.KanboardClient = kanboard_client or kbu.get_client(
            config.kanboard_url, config.kanboard_token, user=config.kanboard_user
        )
        self.phabricator_client: phu.ConduitClient = phabricator_client or phu.get_client(
            config.phabricator_url, config.phabricator_token
        )

        logger.info(
            f"Initialized migrator for Kanboard project {config.kanboard_project_id} -> "
            f"{config.phabricator_project_phid}"
        )

    def validate_api_access(self) -> None:
        """Validate Kanboard and Conduit API access."""
        try:
            version = self.kanboard_client.get_version()
            logger.info(f"Kanboard API access validated (version {version})")
        except KanboardError as e:
            msg = f"Kanboard API access failed: {e}"
            raise MigrationError(msg) from e

        try:
            user = self.phabricator_client.whoami()
            logger.info(f"Conduit API access validated as {user.get('userName')}")
        except ConduitError as e:
            msg = f"Conduit API access failed: {e}"
            raise MigrationError(msg) from e

    def collect(self) -> list[StagedTask]:
        """Read all migratable tasks out of Kanboard."""
        return collect(
            self.kanboard_client,
            self.config.kanboard_project_id,
            self.config.excluded_columns,
        )

    def publish(self, staged_tasks: list[StagedTask]) -> PublishResult:
        """Write staged tasks into Maniphest."""
        return publish(
            self.phabricator_client,
            staged_tasks,
            self.config.phabricator_project_phid,
            self.config.watcher_phid,
        )

    def build_report(self, staged_tasks: list[StagedTask], result: PublishResult) -> dict[str, Any]:
        """Summarize a run in the shape the CLI prints."""
        errors: list[str] = [
            f"No Maniphest task titled '{title}', comments not migrated" for title in result.unmatched_titles
        ]
        return {
            "kanboard_project": self.config.kanboard_project_id,
            "phabricator_project": self.config.phabricator_project_phid,
            "success": not errors,
            "errors": errors,
            "statistics": {
                "kanboard_tasks_staged": len(staged_tasks),
                "kanboard_comments_staged": sum(len(s.comments) for s in staged_tasks),
                "maniphest_tasks_created": result.tasks_created,
                "maniphest_tasks_indexed": result.tasks_indexed,
                "maniphest_comments_created": result.comments_replayed,
                "maniphest_tasks_unsubscribed": result.tasks_unsubscribed,
            },
        }

    def migrate(self) -> dict[str, Any]:
        """Execute the complete migration process."""
        try:
            logger.info("Starting Kanboard to Phabricator migration")

            self.validate_api_access()

            # All Kanboard reads happen before the first Phabricator write
            staged_tasks = self.collect()
            result = self.publish(staged_tasks)

            report = self.build_report(staged_tasks, result)
            if report["success"]:
                logger.info("Migration completed successfully")
            else:
                logger.warning(f"Migration completed with {len(report['errors'])} unmatched tasks")

        except (KanboardError, ConduitError) as e:
            logger.exception("Migration failed")
            msg = f"Migration failed: {e}"
            raise MigrationError(msg) from e

        return report
