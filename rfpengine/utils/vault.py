"""
RFP Engine settings
===================
Service settings live in one HashiCorp Vault KV-v2 secret,
``secret/rfpengine/{RFPENGINE_ENV}``. Anything missing there is read from the
process environment, then from the caller's default, then from the defaults
below.

    key                 default                 used by
    db_type             "mock"                  utils/db/connection.py
    postgres_url        ""                      utils/db/connection.py
    gemini_api_key      ""                      utils/llm/LLM.py
    groq_api_key        ""                      utils/llm/LLM_GROQ.py
    llm_model           "gemini-2.5-flash"      utils/llm/LLM.py
    groq_model          "llama-3.1-8b-instant"  utils/llm/LLM_GROQ.py
    rfpengine_log_dir   "" (~/process_logs)     utils/core/log.py

Keys are case-insensitive in Vault; in the environment both ``db_type`` and
``DB_TYPE`` work. Vault is only contacted when VAULT_ADDR is set, using
AppRole (VAULT_ROLE_ID + VAULT_SECRET_ID) or VAULT_TOKEN.

Usage:
    from rfpengine.utils.vault import secrets

    db_type = secrets.get("db_type")
    secrets.refresh()
"""

import os
import logging
from typing import Any, Dict, Optional

import hvac

logger = logging.getLogger("RfpEngine")

MOUNT_POINT = "secret"

KNOWN_SETTINGS: Dict[str, str] = {
    "db_type": "mock",
    "postgres_url": "",
    "gemini_api_key": "",
    "groq_api_key": "",
    "llm_model": "gemini-2.5-flash",
    "groq_model": "llama-3.1-8b-instant",
    "rfpengine_log_dir": "",
}


class VaultClient:
    def __init__(self, addr: Optional[str] = None, env: Optional[str] = None):
        if addr is None:
            addr = os.getenv("VAULT_ADDR", "")
        self.addr = addr.strip()
        self.env = env or os.getenv("RFPENGINE_ENV", "dev")
        self.path = f"rfpengine/{self.env}"
        self._values: Optional[Dict[str, Any]] = None

    def _login(self) -> Optional[hvac.Client]:
        if not self.addr:
            return None

        client = hvac.Client(url=self.addr)
        role_id = os.getenv("VAULT_ROLE_ID")
        secret_id = os.getenv("VAULT_SECRET_ID")
        token = os.getenv("VAULT_TOKEN")

        if role_id and secret_id:
            client.auth.approle.login(role_id=role_id, secret_id=secret_id)
            logger.info(f"Authenticated to Vault via AppRole for {self.env}")
        elif token:
            client.token = token
            logger.info(f"Authenticated to Vault via token for {self.env}")
        else:
            logger.warning("VAULT_ADDR is set but no Vault credentials are configured")
            return None
        return client

    def _read(self) -> Dict[str, Any]:
        """Settings stored at secret/rfpengine/{env}, keyed by lower-case name."""
        try:
            client = self._login()
            if client is None:
                return {}
            response = client.secrets.kv.v2.read_secret_version(
                path=self.path, mount_point=MOUNT_POINT
            )
        except Exception as e:
            logger.warning(f"Could not read {MOUNT_POINT}/{self.path} from Vault: {e}")
            return {}

        data = response["data"]["data"] or {}
        logger.debug(f"Fetched {len(data)} settings from Vault ({self.path})")
        return {str(k).lower(): v for k, v in data.items()}

    @property
    def values(self) -> Dict[str, Any]:
        if self._values is None:
            self._values = self._read()
        return self._values

    def get(self, key: str, default: Optional[str] = None) -> Any:
        """
        Look up a setting: Vault, environment, ``default``, then KNOWN_SETTINGS.

        Raises:
            KeyError: unknown key with no value anywhere and no default.
        """
        name = key.lower()
        if name in self.values:
            return self.values[name]

        for candidate in (key, name, name.upper()):
            value = os.getenv(candidate)
            if value:
                return value

        if default is not None:
            return default
        if name in KNOWN_SETTINGS:
            return KNOWN_SETTINGS[name]
        raise KeyError(f"Setting '{key}' not found (Vault or env)")

    def refresh(self) -> None:
        """Drop cached Vault values and read them again."""
        self._values = self._read()
        logger.info(f"Settings refreshed for {self.env}")


secrets = VaultClient()
