"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Scraper REST API
    scraper_api_url: str = "http://localhost:5000/api"
    request_timeout_s: float = 30.0

    # Real-time push channel
    socket_url: str = "http://localhost:5000"
    socket_topic: str = "scraper"
    socket_reconnection_attempts: int = 5
    socket_reconnection_delay_s: float = 1.0
    socket_connect_timeout_s: float = 10.0

    # Polling fallback
    poll_interval_ms: int = 2000
    wait_timeout_s: float = 60.0

    # Service
    service_port: int = 8002
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
