"""Configuration of the sitectl tool itself.

Sources, lowest precedence first:

1. :data:`DEFAULTS`.
2. ``/etc/sitectl/config.yml``, or the path given by ``--config-file`` or
   ``SITECTL_CONFIG_FILE``. A missing file is not an error.
3. ``SITECTL_*`` environment variables; ``__`` separates nested keys::

       export SITECTL_DOCTOR__MIN_MEMORY_MB=256
       export SITECTL_SYSTEMD__SYSTEMCTL_BIN=/usr/bin/systemctl

   Values go through ``yaml.safe_load`` so ``8`` is an int and ``true`` a bool.
4. ``overrides`` passed by the caller.

Per-instance settings (site URL, port...) are not here; they live in each
instance's own config file, see :mod:`sitectl.instance`.
"""
from __future__ import annotations

import copy
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import yaml

from .errors import SitectlError
from .exit_codes import ExitCode

ENV_PREFIX = "SITECTL_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"

KNOWN_ENVIRONMENTS = ("development", "production")


class ConfigError(SitectlError):
    """Invalid configuration; reported before any command runs."""

    exit_code = ExitCode.VALIDATION


@dataclass(frozen=True)
class SystemdConfig:
    systemctl_bin: str = "systemctl"


@dataclass(frozen=True)
class DoctorConfig:
    max_concurrency: int = 4
    min_memory_mb: int = 150


@dataclass(frozen=True)
class AppConfig:
    """Resolved configuration values for sitectl."""

    config_file: Path
    instance_root: Path
    state_dir: Path
    registry_dir: Path
    logs_dir: Path
    default_environment: str
    systemd: SystemdConfig
    doctor: DoctorConfig


DEFAULTS: dict[str, object] = {
    "config_file": "/etc/sitectl/config.yml",
    "instance_root": "/var/www",
    "state_dir": "/var/lib/sitectl",
    "registry_dir": None,  # state_dir/registry when unset
    "logs_dir": "/var/log/sitectl",
    "default_environment": "production",
    "systemd": {"systemctl_bin": "systemctl"},
    "doctor": {"max_concurrency": 4, "min_memory_mb": 150},
}

SECTIONS = {key: set(value) for key, value in DEFAULTS.items() if isinstance(value, dict)}


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> AppConfig:
    """Merge every configuration source into an :class:`AppConfig`."""
    env = os.environ if env is None else env
    path = Path(config_file or env.get(CONFIG_ENV_VAR) or str(DEFAULTS["config_file"]))

    merged = copy.deepcopy(DEFAULTS)
    for layer in (_file_layer(path), _env_layer(env), dict(overrides or {})):
        merged = _merge(merged, layer)
    merged["config_file"] = str(path)

    _validate(merged)
    return _build(merged)


def _file_layer(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return _mapping(data, str(path))


def _env_layer(env: Mapping[str, str]) -> dict[str, object]:
    layer: dict[str, object] = {}
    for key, raw in env.items():
        if not key.startswith(ENV_PREFIX) or key == CONFIG_ENV_VAR:
            continue
        segments = [part.lower() for part in key[len(ENV_PREFIX):].split("__") if part]
        if not segments:
            continue
        node = layer
        for segment in segments[:-1]:
            child = node.setdefault(segment, {})
            if not isinstance(child, dict):
                raise ConfigError(
                    f"{key} conflicts with the scalar set by {ENV_PREFIX}{segment.upper()}."
                )
            node = child
        if isinstance(node.get(segments[-1]), dict):
            raise ConfigError(f"{key} conflicts with nested {key}__* variables.")
        node[segments[-1]] = _parse_env_value(raw)
    return layer


def _parse_env_value(raw: str) -> object:
    try:
        return yaml.safe_load(raw.strip())
    except yaml.YAMLError:
        return raw.strip()


def _merge(base: Mapping[str, object], layer: Mapping[str, object]) -> dict[str, object]:
    result = dict(base)
    for key, value in layer.items():
        current = result.get(key)
        if isinstance(current, Mapping) and value is None:
            continue
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = _merge(current, value)
        else:
            result[key] = value
    return result


def _validate(raw: Mapping[str, object]) -> None:
    unknown = sorted(set(raw) - set(DEFAULTS))
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}.")

    for section, allowed in SECTIONS.items():
        unknown = sorted(set(_mapping(raw.get(section), section)) - allowed)
        if unknown:
            raise ConfigError(f"Unknown {section} configuration keys: {', '.join(unknown)}.")

    environment = raw.get("default_environment")
    if environment not in KNOWN_ENVIRONMENTS:
        raise ConfigError(
            f"Unsupported default_environment '{environment}'. "
            f"Allowed: {', '.join(KNOWN_ENVIRONMENTS)}."
        )


def _build(raw: Mapping[str, object]) -> AppConfig:
    state_dir = _path(raw["state_dir"], "state_dir")
    registry_dir = raw.get("registry_dir")
    systemd = _mapping(raw["systemd"], "systemd")
    doctor = _mapping(raw["doctor"], "doctor")

    doctor_config = DoctorConfig(
        max_concurrency=_int(doctor["max_concurrency"], "doctor.max_concurrency", minimum=1),
        min_memory_mb=_int(doctor["min_memory_mb"], "doctor.min_memory_mb", minimum=0),
    )
    return AppConfig(
        config_file=_path(raw["config_file"], "config_file"),
        instance_root=_path(raw["instance_root"], "instance_root"),
        state_dir=state_dir,
        registry_dir=_path(registry_dir, "registry_dir") if registry_dir else state_dir / "registry",
        logs_dir=_path(raw["logs_dir"], "logs_dir"),
        default_environment=str(raw["default_environment"]),
        systemd=SystemdConfig(systemctl_bin=str(systemd["systemctl_bin"])),
        doctor=doctor_config,
    )


def _path(value: object, label: str) -> Path:
    if isinstance(value, (str, Path)) and str(value).strip():
        return Path(value).expanduser()
    raise ConfigError(f"Expected {label} to be a filesystem path. Got {value!r}.")


def _int(value: object, label: str, *, minimum: int) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be an integer. Got boolean {value!r}.")
    if isinstance(value, str):
        try:
            value = int(value, 0)
        except ValueError as exc:
            raise ConfigError(f"Invalid integer for {label}: {value!r}.") from exc
    if not isinstance(value, int):
        raise ConfigError(f"Expected {label} to be an integer. Got {type(value).__name__}.")
    if value < minimum:
        raise ConfigError(f"{label} must be at least {minimum}.")
    return value


def _mapping(value: object, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    bad_keys = [key for key in value if not isinstance(key, str)]
    if bad_keys:
        raise ConfigError(f"Mapping {label} must use string keys. Got {bad_keys[0]!r}.")
    return dict(value)


__all__ = [
    "AppConfig",
    "ConfigError",
    "DoctorConfig",
    "ENV_PREFIX",
    "KNOWN_ENVIRONMENTS",
    "SystemdConfig",
    "load_config",
]
