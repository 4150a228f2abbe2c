import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

try:
    import tomllib
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib


@dataclass(frozen=True)
class RuntimeTarget:
    ip: str | None = None
    device_id: str | None = None
    discover_timeout: float = 5.0
    describe_timeout: float = 3.0
    ssdp_fallback: bool = True


@dataclass(frozen=True)
class DaemonConfig:
    target: RuntimeTarget
    control_timeout_s: float = 3.0
    poll_interval_s: float = 5.0
    volume_step: int = 2
    log_level: str = "INFO"
    dedupe_window_s: float = 0.25


def _toml_error_type():
    return getattr(tomllib, "TOMLDecodeError", ValueError)


def _reject_bool(value):
    if isinstance(value, bool):
        raise ValueError("boolean values are not valid for numeric fields")
    return value


class _TargetConfigModel(BaseModel):
    ip: str | None = None
    device_id: str | None = None
    discover_timeout: float = Field(default=5.0, gt=0)
    describe_timeout: float = Field(default=3.0, gt=0)
    ssdp_fallback: bool = True

    @field_validator("discover_timeout", "describe_timeout", mode="before")
    @classmethod
    def _reject_bool_numbers(cls, value):
        return _reject_bool(value)

    @field_validator("ip", "device_id", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value


class _DaemonConfigModel(BaseModel):
    target: _TargetConfigModel = Field(default_factory=_TargetConfigModel)
    control_timeout_s: float = Field(default=3.0, gt=0)
    poll_interval_s: float = Field(default=5.0, gt=0)
    volume_step: int = Field(default=2, ge=1, le=20)
    log_level: str = "INFO"
    dedupe_window_s: float = Field(default=0.25, ge=0)

    @field_validator(
        "control_timeout_s",
        "poll_interval_s",
        "volume_step",
        "dedupe_window_s",
        mode="before",
    )
    @classmethod
    def _reject_bool_numbers(cls, value):
        return _reject_bool(value)

    @field_validator("log_level", mode="before")
    @classmethod
    def _uppercase_log_level(cls, value):
        return str(value).upper()


def _default_config_path() -> Path:
    xdg = os.getenv("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "sonosctl" / "config.toml"
    return Path.home() / ".config" / "sonosctl" / "config.toml"


def _load_toml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    if not path.is_file():
        raise ValueError(f"Config path is not a file: {path}")
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except OSError as exc:
        raise ValueError(f"Cannot read config file: {path}") from exc
    except _toml_error_type() as exc:
        raise ValueError(f"Invalid TOML in config file: {path}") from exc
    return data if isinstance(data, dict) else {}


def _merge_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    merged = dict(data)
    target_data = dict(merged.get("target")) if isinstance(merged.get("target"), dict) else {}

    env_ip = os.getenv("SONOSCTL_IP")
    env_device_id = os.getenv("SONOSCTL_DEVICE_ID")
    env_log_level = os.getenv("SONOSCTL_LOG_LEVEL")
    env_poll_interval = os.getenv("SONOSCTL_POLL_INTERVAL")
    if env_ip is not None:
        target_data["ip"] = env_ip
    if env_device_id is not None:
        target_data["device_id"] = env_device_id
    if env_log_level is not None:
        merged["log_level"] = env_log_level
    if env_poll_interval is not None:
        merged["poll_interval_s"] = env_poll_interval

    merged["target"] = target_data
    return merged


def load_config(path: str | None = None) -> DaemonConfig:
    cfg_path = Path(path) if path else _default_config_path()
    data = _merge_env_overrides(_load_toml(cfg_path))
    try:
        parsed = _DaemonConfigModel.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid config values: {exc}") from exc

    target = RuntimeTarget(
        ip=parsed.target.ip,
        device_id=parsed.target.device_id,
        discover_timeout=parsed.target.discover_timeout,
        describe_timeout=parsed.target.describe_timeout,
        ssdp_fallback=parsed.target.ssdp_fallback,
    )
    return DaemonConfig(
        target=target,
        control_timeout_s=parsed.control_timeout_s,
        poll_interval_s=parsed.poll_interval_s,
        volume_step=parsed.volume_step,
        log_level=parsed.log_level,
        dedupe_window_s=parsed.dedupe_window_s,
    )
