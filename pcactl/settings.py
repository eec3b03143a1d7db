from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    """Timeouts and polling knobs for lifecycle operations (seconds unless noted)."""
    create_timeout: float = 60.0
    poll_interval: float = 5.0
    create_retry_budget: float = 60.0
    create_retry_max_wait: float = 10.0
    issue_wait_delay: int = 3
    issue_wait_max_attempts: int = 60  # attempts, not seconds


DEFAULT_SETTINGS = Settings()
