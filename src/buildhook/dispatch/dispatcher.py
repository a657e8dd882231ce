"""Builds build-trigger payloads and fans them out to the configured sinks."""

import logging
import time
from dataclasses import dataclass, field

import httpx

from buildhook.db.repository import BuildState
from buildhook.dispatch.models import WebhookConfig, WebhookPayload
from buildhook.dispatch.sinks import DeliveryFailure, Sink, WebhookSink, WorkflowDispatchSink
from buildhook.events.models import ChangeEvent

logger = logging.getLogger(__name__)


class ConfigIncomplete(Exception):
    """No delivery destination is configured."""


@dataclass
class DispatchReport:
    delivered: list[str] = field(default_factory=list)
    failures: list[DeliveryFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class WebhookDispatcher:
    def __init__(
        self,
        site_url: str,
        *,
        github_api_base: str = "https://api.github.com",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._site_url = site_url
        self._github_api_base = github_api_base
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    def build_payload(
        self,
        event: str,
        *,
        post_id: str | None = None,
        build_version: str | None = None,
        timestamp: int | None = None,
        user: str | None = None,
    ) -> WebhookPayload:
        return WebhookPayload(
            event=event,
            timestamp=int(time.time()) if timestamp is None else timestamp,
            site_url=self._site_url,
            post_id=post_id,
            build_version=build_version,
            user=user,
        )

    def sinks_for(self, config: WebhookConfig) -> list[Sink]:
        sinks: list[Sink] = []
        if config.url:
            sinks.append(WebhookSink(self._client, config.url, config.secret_value))
        if config.ci_configured:
            sinks.append(
                WorkflowDispatchSink(
                    self._client,
                    config.ci_repo,
                    config.ci_workflow_file,
                    config.ci_token.get_secret_value(),
                    ref=config.ci_ref,
                    api_base=self._github_api_base,
                )
            )
        elif config.ci_repo or config.ci_token:
            logger.warning("CI workflow configuration incomplete, skipping workflow dispatch")
        return sinks

    async def deliver(self, payload: WebhookPayload, config: WebhookConfig) -> DispatchReport:
        """Send one payload to every configured sink, one attempt each.

        A failing sink does not prevent delivery to the others.
        """
        sinks = self.sinks_for(config)
        if not sinks:
            raise ConfigIncomplete("No webhook URL configured")

        report = DispatchReport()
        for sink in sinks:
            try:
                await sink.deliver(payload)
            except DeliveryFailure as exc:
                logger.error(
                    "Build trigger not delivered: %s (event=%s, build_version=%s, timestamp=%d)",
                    exc, payload.event, payload.build_version, payload.timestamp,
                )
                report.failures.append(exc)
            else:
                report.delivered.append(sink.name)
        return report

    async def dispatch(
        self, state: BuildState, event: ChangeEvent, config: WebhookConfig
    ) -> DispatchReport | None:
        """Background delivery after a content change. Never raises on delivery problems."""
        payload = self.build_payload(
            event.hook, post_id=event.entity_id, build_version=state.build_version
        )
        try:
            return await self.deliver(payload, config)
        except ConfigIncomplete:
            logger.info(
                "No build destination configured, skipping dispatch of build %s",
                state.build_version,
            )
            return None
