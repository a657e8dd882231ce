"""Read-only build status and the operator's manual trigger."""

import logging
from dataclasses import dataclass

from buildhook.content.hasher import ContentHasher
from buildhook.db.repository import Repository
from buildhook.dispatch.config_store import ConfigStore
from buildhook.dispatch.dispatcher import ConfigIncomplete, DispatchReport, WebhookDispatcher
from buildhook.utils.timestamps import isoformat_utc, utcnow

logger = logging.getLogger(__name__)

MANUAL_TRIGGER_EVENT = "manual_trigger"
TEST_EVENT = "test"


@dataclass(frozen=True)
class TriggerResult:
    success: bool
    message: str
    build_version: str | None = None
    configured: bool = True


def _failure_message(report: DispatchReport) -> str:
    return "; ".join(str(failure) for failure in report.failures)


class BuildStatusService:
    def __init__(
        self,
        repo: Repository,
        hasher: ContentHasher,
        dispatcher: WebhookDispatcher,
        config_store: ConfigStore,
    ) -> None:
        self._repo = repo
        self._hasher = hasher
        self._dispatcher = dispatcher
        self._config_store = config_store

    async def get_status(self) -> dict:
        """Stored build state plus live publish counts. Never writes."""
        state = await self._repo.get_build_state()
        counts = {
            content_type: await self._repo.count_published(content_type)
            for content_type in {"post", "page", *self._hasher.content_types}
        }
        return {
            "last_build": isoformat_utc(state.last_build_at),
            "build_version": state.build_version,
            "content_hash": state.content_hash or "",
            "posts_count": counts["post"],
            "pages_count": counts["page"],
            "publishable_count": sum(
                counts[content_type] for content_type in set(self._hasher.content_types)
            ),
            "timestamp": isoformat_utc(utcnow()),
        }

    async def get_content_hash(self) -> dict:
        fingerprint = await self._hasher.compute_fingerprint()
        return {
            "hash": fingerprint.hash,
            "publishable_count": fingerprint.item_count,
            "timestamp": isoformat_utc(fingerprint.computed_at),
        }

    async def trigger_build(self, triggered_by: str | None = None) -> TriggerResult:
        """Force a dispatch regardless of whether content changed.

        Raises EnumerationError if content cannot be fingerprinted; delivery
        problems are reported in the result.
        """
        config = await self._config_store.load()
        if not self._dispatcher.sinks_for(config):
            return TriggerResult(False, "No webhook URL configured", configured=False)

        fingerprint = await self._hasher.compute_fingerprint()
        state = await self._repo.record_manual_build(fingerprint)
        user = triggered_by or "operator"
        logger.info("Manual build %s triggered by %s", state.build_version, user)

        payload = self._dispatcher.build_payload(
            MANUAL_TRIGGER_EVENT, build_version=state.build_version, user=user
        )
        try:
            report = await self._dispatcher.deliver(payload, config)
        except ConfigIncomplete as exc:
            return TriggerResult(False, str(exc), state.build_version, configured=False)

        if not report.ok:
            return TriggerResult(False, _failure_message(report), state.build_version)
        return TriggerResult(True, "Build triggered successfully", state.build_version)

    async def send_test_webhook(self) -> TriggerResult:
        """Deliver a test event to the configured sinks; build state is untouched."""
        config = await self._config_store.load()
        payload = self._dispatcher.build_payload(TEST_EVENT)
        try:
            report = await self._dispatcher.deliver(payload, config)
        except ConfigIncomplete as exc:
            return TriggerResult(False, str(exc), configured=False)

        if not report.ok:
            return TriggerResult(False, _failure_message(report))
        return TriggerResult(True, "Webhook sent successfully")
