"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Remote trial service
    trial_service_url: str = "https://augur.openproject-edge.com"

    # Local backend (token storage)
    backend_base_url: str = "http://localhost:3000"
    backend_auth_token: str = ""  # sent as bearer token when set

    # HTTP
    http_timeout_seconds: float = 10.0

    # Confirmation polling
    poll_delay_ms: int = 5000  # wait 5s between checks
    poll_retries: int = 60  # ~5 minutes
    resend_retries: int = 6  # ~30 seconds after a resend

    # Page bootstrap
    resumption_key: str = "ee_trial_key"

    # App
    log_level: str = "INFO"
    environment: str = "development"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
