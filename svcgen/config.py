"""Configuration loading for svcgen (.svcgen.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .merge.engine import DEFAULT_CODE_START

CONFIG_FILENAME = ".svcgen.yml"
MODULE_NAME_ENV = "SVCGEN_MODULE_NAME"
SERVER_NAME_ENV = "SVCGEN_SERVER_NAME"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class OutputConfig:
    """Directories that receive each artifact kind, relative to the root."""

    logic: str = "internal/service"
    router: str = "internal/routers"
    ecode: str = "internal/ecode"


@dataclass
class ErrorCodeConfig:
    """Numbering of generated RPC error codes."""

    start: int = DEFAULT_CODE_START


@dataclass
class SvcGenConfig:
    """Represents the settings defined in .svcgen.yml."""

    root: Path
    module_name: Optional[str] = None
    server_name: Optional[str] = None
    mono_repo: bool = False
    output: OutputConfig = field(default_factory=OutputConfig)
    error_codes: ErrorCodeConfig = field(default_factory=ErrorCodeConfig)
    backup_dir: Optional[Path] = None
    templates_dir: Optional[Path] = None

    def output_dir(self, relative: str) -> Path:
        """Resolve an output directory, honouring mono-repo layouts."""
        if self.mono_repo and self.server_name:
            return self.root / self.server_name / relative
        return self.root / relative

    def logic_package(self) -> str:
        """Dotted package path of the logic output directory."""
        relative = Path(self.output.logic)
        if self.mono_repo and self.server_name:
            relative = Path(self.server_name) / relative
        return ".".join(part for part in relative.parts if part not in ("", "."))


def load_config(config_path: Path) -> SvcGenConfig:
    """Load configuration from disk, applying environment overrides."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)

    output_data = _as_dict(data.get("output"))
    defaults = OutputConfig()
    output = OutputConfig(
        logic=_as_str(output_data.get("logic")) or defaults.logic,
        router=_as_str(output_data.get("router")) or defaults.router,
        ecode=_as_str(output_data.get("ecode")) or defaults.ecode,
    )

    codes_data = _as_dict(data.get("error_codes"))
    start = codes_data.get("start", DEFAULT_CODE_START)
    if isinstance(start, bool) or not isinstance(start, int) or start < 0:
        raise ConfigError("error_codes.start must be a non-negative integer")

    backup = _as_str(data.get("backup_dir"))
    templates = _as_str(data.get("templates_dir"))

    config = SvcGenConfig(
        root=root,
        module_name=_as_str(data.get("module_name")),
        server_name=_as_str(data.get("server_name")),
        mono_repo=bool(data.get("mono_repo", False)),
        output=output,
        error_codes=ErrorCodeConfig(start=start),
        backup_dir=root / (backup or ".svcgen/backup"),
        templates_dir=root / templates if templates else None,
    )
    return apply_env_overrides(config)


def apply_env_overrides(config: SvcGenConfig, environ: Mapping[str, str] | None = None) -> SvcGenConfig:
    env = os.environ if environ is None else environ
    module_name = env.get(MODULE_NAME_ENV)
    if module_name:
        config.module_name = module_name
    server_name = env.get(SERVER_NAME_ENV)
    if server_name:
        config.server_name = server_name
    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")
    return loaded


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool) or value is None:
        return None
    return str(value) if isinstance(value, (str, int, float)) else None


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "ErrorCodeConfig",
    "OutputConfig",
    "SvcGenConfig",
    "apply_env_overrides",
    "load_config",
]
