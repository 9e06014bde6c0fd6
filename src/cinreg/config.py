from __future__ import annotations

import logging
import os
from dataclasses import dataclass

DEFAULT_APP_ID = "default-app-id"
DEFAULT_POLL_INTERVAL_S = 0.5


def normalize_base_url(url: str) -> str:
    url = url.strip()
    if not url:
        return ""
    # Allow passing just host:port.
    if "://" not in url:
        url = "http://" + url
    return url.rstrip("/")


@dataclass(frozen=True)
class RegistryConfig:
    """Runtime settings, normally read from `CINREG_*` environment variables.

    - app_id: namespace every collection lives under.
    - bootstrap_token: optional custom token tried before anonymous sign-in.
    - store_url: running store server; empty means the in-process store.
    """

    app_id: str = DEFAULT_APP_ID
    bootstrap_token: str | None = None
    store_url: str = ""
    poll_interval_s: float = DEFAULT_POLL_INTERVAL_S
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "RegistryConfig":
        poll = os.getenv("CINREG_POLL_INTERVAL", "")
        try:
            poll_interval_s = float(poll) if poll else DEFAULT_POLL_INTERVAL_S
        except ValueError:
            raise ValueError(f"CINREG_POLL_INTERVAL must be a number, got {poll!r}") from None
        if poll_interval_s <= 0:
            raise ValueError("CINREG_POLL_INTERVAL must be > 0")

        return cls(
            app_id=os.getenv("CINREG_APP_ID", "").strip() or DEFAULT_APP_ID,
            bootstrap_token=os.getenv("CINREG_AUTH_TOKEN") or None,
            store_url=normalize_base_url(os.getenv("CINREG_URL", "")),
            poll_interval_s=poll_interval_s,
            log_level=os.getenv("CINREG_LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str | int | None = None) -> None:
    if level is None:
        level = os.getenv("CINREG_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
