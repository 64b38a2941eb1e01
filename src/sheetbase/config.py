"""Settings for connecting to the Google Sheets API.

Precedence order for every value:
1. Constructor arguments
2. SHEETBASE_ACCESS_TOKEN / SHEETBASE_API_KEY / SHEETBASE_TIMEOUT environment variables
3. Access token saved in the OS keyring (see store_access_token)
4. ~/.config/sheetbase/config.json ("access_token", "api_key", "timeout")
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import keyring
from keyring.errors import KeyringError

from sheetbase.transport import DEFAULT_TIMEOUT, GoogleSheetsTransport

logger = logging.getLogger(__name__)

CONFIG_PATH = Path.home() / ".config" / "sheetbase" / "config.json"

# Keyring service name for storing tokens
KEYRING_SERVICE = "sheetbase"
KEYRING_USERNAME = "access_token"


@dataclass
class Settings:
    """Resolved connection settings.

    Attributes:
        access_token: OAuth2 access token with the spreadsheets scope
        api_key: API key, for read-only access to public spreadsheets
        timeout: Request timeout in seconds
    """

    access_token: str | None = None
    api_key: str | None = None
    timeout: int = DEFAULT_TIMEOUT

    @classmethod
    def load(
        cls,
        access_token: str | None = None,
        api_key: str | None = None,
        timeout: int | None = None,
        config_path: Path | None = None,
    ) -> Settings:
        """Resolve settings from arguments, environment, keyring and config file."""
        file_config = _load_config_file(config_path or CONFIG_PATH)

        token = (
            access_token
            or os.environ.get("SHEETBASE_ACCESS_TOKEN")
            or load_stored_access_token()
            or file_config.get("access_token")
        )
        key = api_key or os.environ.get("SHEETBASE_API_KEY") or file_config.get("api_key")

        resolved_timeout = timeout
        if resolved_timeout is None:
            env_timeout = os.environ.get("SHEETBASE_TIMEOUT")
            if env_timeout:
                try:
                    resolved_timeout = int(env_timeout)
                except ValueError as e:
                    raise ValueError(
                        f"SHEETBASE_TIMEOUT must be an integer, got {env_timeout!r}"
                    ) from e
            else:
                resolved_timeout = int(file_config.get("timeout", DEFAULT_TIMEOUT))

        return cls(access_token=token, api_key=key, timeout=resolved_timeout)

    @property
    def read_only(self) -> bool:
        """True when only an API key is available."""
        return not self.access_token

    def create_transport(self) -> GoogleSheetsTransport:
        """Build a transport from these settings.

        Raises:
            ValueError: If neither an access token nor an API key is set
        """
        if not self.access_token and not self.api_key:
            raise ValueError(
                "No credentials configured. Set SHEETBASE_ACCESS_TOKEN or "
                "SHEETBASE_API_KEY, store a token with 'sheetbase set-token', "
                f"or add one to {CONFIG_PATH}."
            )
        return GoogleSheetsTransport(
            access_token=self.access_token,
            api_key=self.api_key,
            timeout=self.timeout,
        )


def load_stored_access_token() -> str | None:
    """Return the access token saved in the OS keyring, if any."""
    try:
        return keyring.get_password(KEYRING_SERVICE, KEYRING_USERNAME)
    except KeyringError as e:
        logger.debug("Keyring unavailable: %s", e)
        return None


def store_access_token(token: str) -> None:
    """Save an access token in the OS keyring."""
    keyring.set_password(KEYRING_SERVICE, KEYRING_USERNAME, token)


def _load_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {path}")
    return data
