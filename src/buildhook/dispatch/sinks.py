"""Delivery targets for build notifications."""

import logging
from abc import ABC, abstractmethod
from urllib.parse import urlsplit

import httpx

from buildhook.dispatch.models import (
    WebhookPayload,
    WorkflowDispatchRequest,
    WorkflowInputs,
)
from buildhook.dispatch.signing import SIGNATURE_HEADER, sign_request

logger = logging.getLogger(__name__)

USER_AGENT = "buildhook/0.1"


def redact_url(url: str | None) -> str:
    """Host part only; hook URLs often embed a token in the path or query."""
    if not url:
        return "<unset>"
    return urlsplit(url).hostname or "<invalid>"


class DeliveryFailure(Exception):
    """Raised when a sink's HTTP call fails or returns a non-2xx status."""

    def __init__(self, sink: str, detail: str, status_code: int | None = None):
        self.sink = sink
        self.detail = detail
        self.status_code = status_code
        status = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"{sink} delivery failed{status}: {detail}")


class Sink(ABC):
    name: str

    @abstractmethod
    async def deliver(self, payload: WebhookPayload) -> None: ...

    async def _post(
        self, client: httpx.AsyncClient, url: str, *, json: dict, headers: dict
    ) -> httpx.Response:
        try:
            resp = await client.post(url, json=json, headers=headers)
        except httpx.HTTPError as exc:
            raise DeliveryFailure(self.name, str(exc) or type(exc).__name__) from exc

        if not resp.is_success:
            raise DeliveryFailure(self.name, resp.text[:200], status_code=resp.status_code)
        return resp


class WebhookSink(Sink):
    """Generic webhook endpoint, signed when a secret is configured."""

    name = "webhook"

    def __init__(self, client: httpx.AsyncClient, url: str, secret: str = "") -> None:
        self._client = client
        self._url = url
        self._secret = secret

    async def deliver(self, payload: WebhookPayload) -> None:
        headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        if self._secret:
            headers[SIGNATURE_HEADER] = sign_request(self._url, payload.timestamp, self._secret)

        await self._post(
            self._client,
            self._url,
            json=payload.model_dump(exclude_none=True),
            headers=headers,
        )
        logger.info("Webhook sent to %s (event %s)", redact_url(self._url), payload.event)


class WorkflowDispatchSink(Sink):
    """GitHub Actions workflow_dispatch trigger."""

    name = "workflow_dispatch"

    def __init__(
        self,
        client: httpx.AsyncClient,
        repo: str,
        workflow_file: str,
        token: str,
        *,
        ref: str = "main",
        api_base: str = "https://api.github.com",
    ) -> None:
        self._client = client
        self._repo = repo
        self._workflow_file = workflow_file
        self._token = token
        self._ref = ref
        self._api_base = api_base.rstrip("/")

    @property
    def dispatch_url(self) -> str:
        return (
            f"{self._api_base}/repos/{self._repo}"
            f"/actions/workflows/{self._workflow_file}/dispatches"
        )

    def build_request(self, payload: WebhookPayload) -> WorkflowDispatchRequest:
        return WorkflowDispatchRequest(
            ref=self._ref,
            inputs=WorkflowInputs(
                wordpress_event=payload.event,
                post_id=payload.post_id or "",
                timestamp=str(payload.timestamp),
            ),
        )

    async def deliver(self, payload: WebhookPayload) -> None:
        headers = {
            "Authorization": f"token {self._token}",
            "Accept": "application/vnd.github.v3+json",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        await self._post(
            self._client,
            self.dispatch_url,
            json=self.build_request(payload).model_dump(),
            headers=headers,
        )
        logger.info("Workflow dispatch accepted (event %s)", payload.event)
