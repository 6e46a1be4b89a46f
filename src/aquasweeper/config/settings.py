from __future__ import annotations

import json
import os
import tomllib
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, model_validator

from .paths import default_config_path, default_data_dir, expand_path

CONFIG_ENV_VAR = "AQUASWEEPER_CONFIG"


class DatabaseConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    path: str = Field(default_factory=lambda: str(default_data_dir()))


class ProbeConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    port: int = Field(default=80, ge=1, le=65535)
    default_timeout: float = Field(default=5.0, gt=0)


class DiscoveryConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    device_type: str = "AquaSweeper"
    ap_address: str = "192.168.4.1"
    ap_ssid_prefix: str = "AquaSweeper-"
    cached_timeout: float = Field(default=2.0, gt=0)
    ap_timeout: float = Field(default=5.0, gt=0)
    sweep_timeout: float = Field(default=0.3, gt=0)
    common_subnets: tuple[str, ...] = ("192.168.1", "192.168.0", "10.0.0")


class ConnectionConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    poll_interval: float = Field(default=3.0, gt=0)
    failure_threshold: int = Field(default=3, ge=1)
    abandon_after: int = Field(default=10, ge=1)
    status_timeout: float = Field(default=5.0, gt=0)
    command_timeout: float = Field(default=5.0, gt=0)
    restore_retry_delay: float = Field(default=5.0, ge=0)

    @model_validator(mode="after")
    def _abandon_after_threshold(self) -> ConnectionConfig:
        if self.abandon_after <= self.failure_threshold:
            raise ValueError("abandon_after must be greater than failure_threshold")
        return self


class PairingConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    settle_delay: float = Field(default=5.0, ge=0)
    validate_timeout: float = Field(default=5.0, gt=0)
    wifi_timeout: float = Field(default=5.0, gt=0)
    credentials_ttl: float = Field(default=300.0, gt=0)


class Settings(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    probe: ProbeConfig = Field(default_factory=ProbeConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    pairing: PairingConfig = Field(default_factory=PairingConfig)


def resolve_config_path(allow_missing: bool = False) -> tuple[Path, bool]:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = expand_path(env_path)
        if not allow_missing and not path.exists():
            raise FileNotFoundError(f"{CONFIG_ENV_VAR} points to missing file: {path}")
        return path, path.exists()

    path = default_config_path()
    return path, path.exists()


def load_settings(path: Path) -> Settings:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in config file: {path}\n{exc}") from exc

    try:
        return Settings.model_validate(data or {})
    except ValidationError as exc:
        raise ValueError(f"Invalid config file: {path}\n{exc}") from exc


@lru_cache
def get_settings() -> Settings:
    path, exists = resolve_config_path(allow_missing=False)
    if exists:
        return load_settings(path)
    return Settings()


def data_dir_from_settings(settings: Settings) -> Path:
    return expand_path(settings.database.path)


def _toml_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (tuple, list)):
        return "[" + ", ".join(_toml_value(item) for item in value) + "]"
    return json.dumps(str(value))


def render_settings_toml(settings: Settings, only: str | None = None) -> str:
    lines = ["# AquaSweeper configuration", ""]
    for section, model in settings:
        if only is not None and section != only:
            continue
        lines.append(f"[{section}]")
        for key, value in model:
            lines.append(f"{key} = {_toml_value(value)}")
        lines.append("")
    return "\n".join(lines)


def write_settings(settings: Settings, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_settings_toml(settings))
