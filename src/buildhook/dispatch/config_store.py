"""Persistence and validation of the operator's delivery settings."""

import logging

from pydantic import SecretStr

from buildhook.db.repository import Repository
from buildhook.dispatch.models import DEFAULT_REF, DEFAULT_WORKFLOW_FILE, WebhookConfig
from buildhook.dispatch.sinks import redact_url

logger = logging.getLogger(__name__)

OPTION_NAMES = [
    "webhook_url",
    "webhook_secret",
    "ci_repo",
    "ci_workflow_file",
    "ci_token",
    "ci_ref",
]

UNSIGNED_WARNING = "Webhook secret not set: deliveries will be unsigned"
NO_URL_WARNING = "Webhook URL not configured"
CI_INCOMPLETE_WARNING = "CI workflow dispatch needs both a repository and a token"


class ConfigValidationError(ValueError):
    pass


def _secret(value: str | None) -> SecretStr | None:
    return SecretStr(value) if value else None


def _plain(value: SecretStr | None) -> str | None:
    return (value.get_secret_value() or None) if value else None


def config_warnings(config: WebhookConfig) -> list[str]:
    warnings = []
    if not config.url:
        warnings.append(NO_URL_WARNING)
    elif not config.secret_value:
        warnings.append(UNSIGNED_WARNING)
    if bool(config.ci_repo) != bool(_plain(config.ci_token)):
        warnings.append(CI_INCOMPLETE_WARNING)
    return warnings


class ConfigStore:
    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    async def load(self) -> WebhookConfig:
        values = await self._repo.get_options(OPTION_NAMES)
        return WebhookConfig(
            url=values.get("webhook_url") or None,
            secret=_secret(values.get("webhook_secret")),
            ci_repo=values.get("ci_repo") or None,
            ci_workflow_file=values.get("ci_workflow_file") or DEFAULT_WORKFLOW_FILE,
            ci_token=_secret(values.get("ci_token")),
            ci_ref=values.get("ci_ref") or DEFAULT_REF,
        )

    async def save(self, config: WebhookConfig) -> list[str]:
        """Validate and persist. Returns warnings for the operator."""
        if config.secret_value and not config.url:
            raise ConfigValidationError("A webhook secret requires a webhook URL")

        await self._repo.set_options(
            {
                "webhook_url": config.url or None,
                "webhook_secret": _plain(config.secret),
                "ci_repo": config.ci_repo or None,
                "ci_workflow_file": config.ci_workflow_file,
                "ci_token": _plain(config.ci_token),
                "ci_ref": config.ci_ref,
            }
        )
        warnings = config_warnings(config)
        logger.info(
            "Delivery settings saved (webhook host=%s, signed=%s, ci=%s)",
            redact_url(config.url), bool(config.secret_value), config.ci_configured,
        )
        for warning in warnings:
            logger.warning(warning)
        return warnings
