"""Key-value credential storage with a merged local/settings view."""

import base64
import binascii
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

import tomlkit

from zepsync.errors import ConfigError
from zepsync.models import Credentials
from zepsync.settings import ZepSyncSettings

logger = logging.getLogger(__name__)

STORAGE_KEY = "zep-api-credentials"
CREDENTIALS_PATH = Path.home() / ".config" / "zepsync" / "credentials.toml"


class KeyValueStore(ABC):
    @abstractmethod
    def get(self, key: str) -> dict | None: ...

    @abstractmethod
    def set(self, key: str, value: dict) -> None: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...


class TomlFileStore(KeyValueStore):
    """One TOML table per key in a local file."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or CREDENTIALS_PATH

    def _load(self) -> tomlkit.TOMLDocument:
        if not self.path.exists():
            return tomlkit.document()
        return tomlkit.load(self.path.open())

    def get(self, key: str) -> dict | None:
        doc = self._load()
        if key not in doc:
            return None
        return dict(doc[key].unwrap())

    def set(self, key: str, value: dict) -> None:
        doc = self._load()
        doc[key] = {k: v for k, v in value.items() if v is not None}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(tomlkit.dumps(doc))

    def delete(self, key: str) -> None:
        doc = self._load()
        if key in doc:
            del doc[key]
            self.path.write_text(tomlkit.dumps(doc))


class SettingsStore(KeyValueStore):
    """Read-only view of credentials configured through settings or ZEPSYNC_* env vars."""

    def __init__(self, settings: ZepSyncSettings) -> None:
        self._settings = settings

    def get(self, key: str) -> dict | None:
        if key != STORAGE_KEY:
            return None
        s = self._settings
        return {
            "api_key": s.api_key.get_secret_value() if s.api_key else None,
            "base_url": s.base_url,
            "use_proxy": s.use_proxy,
            "proxy_url": s.proxy_url,
        }

    def set(self, key: str, value: dict) -> None:
        raise ConfigError("Settings-based credentials are read-only; edit your profile or environment instead.")

    def delete(self, key: str) -> None:
        raise ConfigError("Settings-based credentials are read-only; edit your profile or environment instead.")


class LayeredStore(KeyValueStore):
    """Primary values layered over a fallback. Writes go to the primary."""

    def __init__(self, primary: KeyValueStore, fallback: KeyValueStore) -> None:
        self.primary = primary
        self.fallback = fallback

    def get(self, key: str) -> dict | None:
        base = self.fallback.get(key)
        top = self.primary.get(key)
        if base is None and top is None:
            return None
        merged = dict(base or {})
        merged.update({k: v for k, v in (top or {}).items() if v not in (None, "")})
        return merged

    def set(self, key: str, value: dict) -> None:
        self.primary.set(key, value)

    def delete(self, key: str) -> None:
        self.primary.delete(key)


def _obfuscate(text: str) -> str:
    # Obfuscation only; the file should still be kept private.
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _deobfuscate(text: str) -> str:
    try:
        return base64.b64decode(text.encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError):
        # plain-text value written by hand
        return text


class CredentialService:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def get_credentials(self) -> Credentials:
        stored = self._store.get(STORAGE_KEY) or {}
        api_key = stored.get("api_key")
        if api_key and stored.get("obfuscated"):
            api_key = _deobfuscate(api_key)
        return Credentials(
            api_key=api_key or None,
            base_url=stored.get("base_url") or None,
            use_proxy=bool(stored.get("use_proxy", False)),
            proxy_url=stored.get("proxy_url") or None,
        )

    def save_credentials(self, credentials: Credentials) -> None:
        api_key = credentials.api_key.get_secret_value() if credentials.api_key else None
        self._store.set(
            STORAGE_KEY,
            {
                "api_key": _obfuscate(api_key) if api_key else None,
                "obfuscated": bool(api_key),
                "base_url": credentials.base_url,
                "use_proxy": credentials.use_proxy,
                "proxy_url": credentials.proxy_url,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
        )
        logger.info("Saved ZEP credentials (proxy mode: %s)", credentials.use_proxy)

    def clear_credentials(self) -> None:
        self._store.delete(STORAGE_KEY)

    def has_stored_credentials(self) -> bool:
        """True when the stored credentials are enough to build a ZepClient.

        Proxy mode needs only the relay URL; direct mode needs API key and base URL.
        """
        credentials = self.get_credentials()
        if credentials.use_proxy:
            return bool(credentials.proxy_url)
        return bool(credentials.api_key and credentials.base_url)

    def storage_info(self) -> dict:
        stored = self._store.get(STORAGE_KEY) or {}
        return {
            "has_credentials": bool(stored),
            "last_updated": stored.get("updated_at"),
        }
