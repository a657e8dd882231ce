"""Build pipeline: mirror → fingerprint → compare-and-update → dispatch."""

import logging

from buildhook.content.hasher import ContentHasher, EnumerationError
from buildhook.content.mirror import ContentMirror, MirrorError
from buildhook.db.repository import CompareResult, Repository
from buildhook.dispatch.config_store import ConfigStore
from buildhook.dispatch.dispatcher import WebhookDispatcher
from buildhook.events.models import ChangeEvent

logger = logging.getLogger(__name__)


class BuildPipeline:
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
        self._mirror = ContentMirror(repo)

    async def handle_event(self, event: ChangeEvent) -> CompareResult | None:
        """Run one pass for a forwarded event.

        The build state is advanced before the dispatch is sent: a crash in
        between loses the trigger rather than sending it twice.
        """
        try:
            await self._mirror.apply(event)
        except MirrorError:
            logger.exception("Cannot store %s for %s, skipping", event.hook, event.entity_id)
            return None

        try:
            fingerprint = await self._hasher.compute_fingerprint()
        except EnumerationError:
            logger.exception("Cannot fingerprint content after %s, skipping", event.hook)
            return None

        result = await self._repo.compare_and_update(fingerprint)
        if not result.changed:
            logger.debug(
                "%s for %s left content unchanged (%s)",
                event.hook, event.entity_id, fingerprint.hash,
            )
            return result

        config = await self._config_store.load()
        await self._dispatcher.dispatch(result.state, event, config)
        return result
