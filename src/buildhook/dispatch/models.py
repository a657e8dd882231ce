"""Pydantic models for outbound build notifications and their configuration."""

from pydantic import BaseModel, SecretStr

DEFAULT_WORKFLOW_FILE = "build-deploy.yml"
DEFAULT_REF = "main"


class WebhookConfig(BaseModel):
    """Operator-supplied delivery targets. Immutable once loaded."""

    model_config = {"frozen": True}

    url: str | None = None
    secret: SecretStr | None = None
    ci_repo: str | None = None  # "owner/repository"
    ci_workflow_file: str = DEFAULT_WORKFLOW_FILE
    ci_token: SecretStr | None = None
    ci_ref: str = DEFAULT_REF

    @property
    def ci_configured(self) -> bool:
        return bool(self.ci_repo and self.ci_token and self.ci_token.get_secret_value())

    @property
    def secret_value(self) -> str:
        return self.secret.get_secret_value() if self.secret else ""


class WebhookPayload(BaseModel):
    event: str  # save_post, delete_post, wp_update_nav_menu, manual_trigger, ...
    timestamp: int  # unix seconds
    site_url: str
    post_id: str | None = None
    build_version: str | None = None
    user: str | None = None  # operator who forced a manual build


class WorkflowInputs(BaseModel):
    wordpress_event: str
    post_id: str = ""
    timestamp: str


class WorkflowDispatchRequest(BaseModel):
    ref: str = DEFAULT_REF
    inputs: WorkflowInputs
