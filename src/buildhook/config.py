from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Site
    site_url: str = "http://localhost"
    content_types: list[str] = ["post", "page"]

    # Auth
    api_token: str = ""  # operator bearer token for trigger-build and settings
    cms_signing_secret: str = ""  # HMAC key for incoming mutation notifications

    # Database
    database_url: str = "sqlite+aiosqlite:///./buildhook.db"

    # Outbound delivery
    github_api_base: str = "https://api.github.com"
    request_timeout: float = 30.0

    # Seed values written to the option table by the bootstrap CLI
    webhook_url: str = ""
    webhook_secret: str = ""
    github_token: str = ""
    github_repo: str = ""
    github_workflow: str = "build-deploy.yml"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "info"
