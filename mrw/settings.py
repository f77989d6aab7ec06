"""Settings resolution with named profile support."""

import os
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from typing import Annotated

import tomlkit
import typer
from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, PydanticBaseSettingsSource, SettingsConfigDict

CONFIG_PATH = Path.home() / ".config" / "mrw" / "config.toml"


class MrwSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MRW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    default_profile: str | None = None

    # GitLab
    base_url: str = "https://gitlab.com"
    token: SecretStr | None = None

    # Team handles used for workload and roulette
    team: Annotated[list[str], NoDecode] = []

    # Webhook server
    webhook_host: str = "0.0.0.0"
    webhook_port: int = 8080

    issue_url_template: str | None = None  # e.g. https://tracker.example.com/browse/{issue}
    max_workers: int = 8  # parallel requests per batch

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # profile values arrive as init kwargs; env vars and .env win over them
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @field_validator("team", mode="before")
    @classmethod
    def _split_team(cls, value: object) -> object:
        if isinstance(value, str):
            return [handle.strip() for handle in value.split(",") if handle.strip()]
        return value

    @field_validator("max_workers")
    @classmethod
    def _positive_workers(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_workers must be at least 1")
        return value


@lru_cache(maxsize=1)
def _load_toml() -> tomlkit.TOMLDocument:
    """Load ~/.config/mrw/config.toml, returning empty document if missing."""
    if not CONFIG_PATH.exists():
        return tomlkit.document()
    return tomlkit.load(CONFIG_PATH.open())


def _list_profiles(config: Mapping) -> list[str]:
    # tomlkit Table implements MutableMapping but not dict, so check Mapping
    return [k for k, v in config.items() if isinstance(v, Mapping)]


def resolve_profile(profile: str | None = None) -> str | None:
    """Pick the active profile name.

    Precedence (highest to lowest):
    1. profile argument (--profile CLI flag)
    2. MRW_PROFILE env var
    3. default_profile key in ~/.config/mrw/config.toml
    4. First profile defined in ~/.config/mrw/config.toml
    """
    toml_config = _load_toml()
    profiles = _list_profiles(toml_config)
    return (
        profile
        or os.environ.get("MRW_PROFILE")
        or toml_config.get("default_profile")
        or (profiles[0] if profiles else None)
    )


def load_settings(profile: str | None = None) -> MrwSettings:
    """Build MrwSettings from the active profile with env vars on top. Performs no validation."""
    toml_config = _load_toml()
    active = resolve_profile(profile)

    profile_defaults: dict = {}
    if active:
        if active in toml_config and isinstance(toml_config[active], Mapping):
            profile_defaults = dict(toml_config[active])
        else:
            profiles = _list_profiles(toml_config)
            typer.echo(f"Profile '{active}' not found in {CONFIG_PATH}. Available: {profiles or '(none)'}")
            raise typer.Exit(1)

    # env vars + .env always override profile defaults
    return MrwSettings(**profile_defaults)


def get_settings(profile: str | None = None) -> MrwSettings:
    """Resolve the active profile and return validated settings (token and team present)."""
    settings = load_settings(profile)
    active = resolve_profile(profile)

    if not settings.token:
        typer.echo(
            "Missing GitLab credentials. Set MRW_TOKEN or "
            f"token in the [{active or 'profile'}] section of {CONFIG_PATH}"
        )
        raise typer.Exit(1)
    if not settings.team:
        typer.echo(
            "No team configured. Set MRW_TEAM (comma-separated usernames) or "
            f"team in the [{active or 'profile'}] section of {CONFIG_PATH}"
        )
        raise typer.Exit(1)

    return settings
