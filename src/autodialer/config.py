"""Dialer settings, read from the process environment.

Each ``Settings`` field maps to the upper-cased environment variable of the
same name (``twilio_auth_token`` -> ``TWILIO_AUTH_TOKEN``). Fields without a
default are required.
"""

import os
import sys
import logging
from dataclasses import MISSING, dataclass, fields, replace

from autodialer.initiator import TWILIO_API_BASE_URL

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    twilio_account_sid: str
    twilio_auth_token: str
    twilio_from_number: str
    public_base_url: str
    twilio_api_base_url: str = TWILIO_API_BASE_URL
    log_level: str = "INFO"
    port: int = 8765

    @property
    def twiml_url(self) -> str:
        return f"{self.public_base_url.rstrip('/')}/twiml"

    @property
    def status_callback_url(self) -> str:
        return f"{self.public_base_url.rstrip('/')}/twilio/status"


def required_env_vars() -> list[str]:
    return [f.name.upper() for f in fields(Settings) if f.default is MISSING]


def load_settings() -> Settings:
    """Build Settings from the environment.

    Exits the process with status 1, naming every unset required variable,
    so the server never starts without Twilio credentials.
    """
    values = {}
    missing = []
    for f in fields(Settings):
        env_name = f.name.upper()
        raw = os.getenv(env_name, "").strip()
        if not raw:
            if f.default is MISSING:
                missing.append(env_name)
            else:
                logger.warning("%s not set, using %r", env_name, f.default)
            continue
        values[f.name] = int(raw) if f.type is int else raw

    if missing:
        print(f"Cannot start dialer, set these in .env or the environment: {', '.join(missing)}", file=sys.stderr)
        sys.exit(1)

    settings = Settings(**values)
    return replace(settings, log_level=settings.log_level.upper())
