"""Bootstrap CLI: prepare storage and record the current content as the baseline.

Creates the tables and the build-state row, copies any delivery settings given
through the environment into the option table, and stores the current content
fingerprint without dispatching. The first mutation after installation then
only triggers a build when content really differs from what is live.
"""

import asyncio
import logging

from pydantic import SecretStr

from buildhook.config import Settings
from buildhook.content.hasher import ContentHasher
from buildhook.db.repository import Repository
from buildhook.dispatch.config_store import ConfigStore, ConfigValidationError
from buildhook.dispatch.models import WebhookConfig

logger = logging.getLogger(__name__)


def _config_from_settings(settings: Settings) -> WebhookConfig | None:
    if not any((settings.webhook_url, settings.webhook_secret, settings.github_repo)):
        return None
    return WebhookConfig(
        url=settings.webhook_url or None,
        secret=SecretStr(settings.webhook_secret) if settings.webhook_secret else None,
        ci_repo=settings.github_repo or None,
        ci_workflow_file=settings.github_workflow,
        ci_token=SecretStr(settings.github_token) if settings.github_token else None,
    )


async def bootstrap(settings: Settings | None = None) -> None:
    settings = settings or Settings()

    repo = Repository(settings.database_url)
    await repo.init_db()

    try:
        config = _config_from_settings(settings)
        if config is not None:
            try:
                warnings = await ConfigStore(repo).save(config)
            except ConfigValidationError as exc:
                logger.error("Delivery settings from environment rejected: %s", exc)
            else:
                logger.info("Delivery settings imported (%d warnings)", len(warnings))
        else:
            logger.info("No delivery settings in environment, leaving stored settings as-is")

        hasher = ContentHasher(repo, settings.content_types)
        fingerprint = await hasher.compute_fingerprint()
        result = await repo.record_baseline(fingerprint)
        if result.changed:
            logger.info(
                "Recorded baseline fingerprint %s over %d items",
                fingerprint.hash, fingerprint.item_count,
            )
        else:
            logger.info("Baseline already current (build %s)", result.state.build_version)
    finally:
        await repo.close()


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(bootstrap())


if __name__ == "__main__":
    main()
