"""Configuration loading for the adpatch command line."""

from __future__ import annotations

import codecs
import logging
import os
from pathlib import Path
from typing import Any, List, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .engine.rules import ExpressionRule
from .errors import ConfigError
from .utils.paths import resolve_reference_path

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "config.yaml"
ENCODING_ENV_VAR = "ADPATCH_ENCODING"


class ConfigModel(BaseModel):
    """Base Pydantic model rejecting unknown keys."""

    model_config = ConfigDict(extra="forbid")


class PathsConfig(ConfigModel):
    """Directories used when resolving ``--version`` and default patch inputs."""

    extracted: Path = Path("extracted")
    patches: Path = Path("patches")


class AdaptivePatchConfig(ConfigModel):
    """Validated contents of ``config.yaml``.

    ``base_dir`` is the directory relative references are resolved against:
    the config file's directory, or the working directory when no file exists.
    """

    paths: PathsConfig = Field(default_factory=PathsConfig)
    encoding: str = "utf-8"
    rules: List[ExpressionRule] = Field(default_factory=list)
    base_dir: Path = Field(default_factory=Path.cwd, exclude=True)

    def resolve(self, reference: Path | str) -> Path:
        return resolve_reference_path(reference, self.base_dir)


def _check_encoding(encoding: str) -> str:
    try:
        codecs.lookup(encoding)
    except LookupError as error:
        raise ConfigError(f"Unknown encoding: {encoding}", details={"encoding": encoding}) from error
    return encoding


def load_config(config_path: Optional[Path] = None, *, env: Mapping[str, str] | None = None) -> AdaptivePatchConfig:
    """Load ``config_path`` into an :class:`AdaptivePatchConfig`.

    A missing file yields the defaults. ``ADPATCH_ENCODING`` in ``env`` (the
    process environment by default) overrides the configured encoding.
    """
    env_mapping = os.environ if env is None else env
    path = Path(config_path) if config_path is not None else Path(DEFAULT_CONFIG_NAME)
    base_dir = path.resolve().parent

    data: Any = {}
    if path.exists():
        try:
            with path.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as error:
            raise ConfigError(f"Failed to parse config {path}: {error}", details={"path": path}) from error
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a mapping at the top level.", details={"path": path})
    else:
        LOGGER.debug("No config at %s; using defaults", path)

    try:
        config = AdaptivePatchConfig.model_validate(data)
    except ValidationError as error:
        raise ConfigError(f"Invalid config {path}: {error}", details={"path": path}) from error

    encoding = env_mapping.get(ENCODING_ENV_VAR) or config.encoding
    paths = PathsConfig(
        extracted=(base_dir / config.paths.extracted).resolve(),
        patches=(base_dir / config.paths.patches).resolve(),
    )
    return config.model_copy(update={"paths": paths, "encoding": _check_encoding(encoding), "base_dir": base_dir})


__all__ = [
    "AdaptivePatchConfig",
    "DEFAULT_CONFIG_NAME",
    "ENCODING_ENV_VAR",
    "PathsConfig",
    "load_config",
]
