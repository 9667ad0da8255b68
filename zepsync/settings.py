"""Settings resolution with named profile support."""

import os
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path

import tomlkit
import typer
from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_PATH = Path.home() / ".config" / "zepsync" / "config.toml"


class ZepSyncSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ZEPSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    default_profile: str | None = None

    # ZEP time service
    api_key: SecretStr | None = None
    base_url: str | None = None
    use_proxy: bool = False
    proxy_url: str | None = None  # e.g. https://relay.example.com/api/zep
    timeout: float = 30.0
    page_size: int = 100

    # Azure DevOps work items
    azure_org_url: str | None = None  # https://dev.azure.com/<org>
    azure_pat: SecretStr | None = None
    ticket_field: str = "Custom.ZEPNummer"
    duration_field: str = "CUSTOM.IST"

    log_level: str | None = None


@lru_cache(maxsize=1)
def _load_toml() -> tomlkit.TOMLDocument:
    """Load ~/.config/zepsync/config.toml, returning empty document if missing."""
    if not CONFIG_PATH.exists():
        return tomlkit.document()
    return tomlkit.load(CONFIG_PATH.open())


def _list_profiles(config: Mapping) -> list[str]:
    # tomlkit Table implements MutableMapping but not dict, so check Mapping
    return [k for k, v in config.items() if isinstance(v, Mapping)]


def get_settings(profile: str | None = None) -> ZepSyncSettings:
    """Resolve the active profile and return a fully populated ZepSyncSettings.

    Precedence (highest to lowest):
    1. profile argument (--profile CLI flag)
    2. ZEPSYNC_DEFAULT_PROFILE env var
    3. default_profile key in ~/.config/zepsync/config.toml
    4. First profile defined in ~/.config/zepsync/config.toml
    """
    toml_config = _load_toml()

    active = (
        profile
        or os.environ.get("ZEPSYNC_DEFAULT_PROFILE")
        or toml_config.get("default_profile")
        or ((_profiles := _list_profiles(toml_config)) and _profiles[0] or None)
    )

    profile_defaults: dict = {}
    if active:
        if active in toml_config and isinstance(toml_config[active], Mapping):
            profile_defaults = dict(toml_config[active])
        elif active not in toml_config:
            profiles = _list_profiles(toml_config)
            typer.echo(f"Profile '{active}' not found in {CONFIG_PATH}. Available: {profiles or '(none)'}")
            raise typer.Exit(1)

    # init kwargs outrank env vars in pydantic-settings: profile values win over ZEPSYNC_*
    return ZepSyncSettings(**profile_defaults)
