"""Configuration: typed sink options, explicit merging, and file loading.

A sink is configured with a :class:`SinkConfig`.  Reconfiguring merges new
options over the stored ones (new values win, explicit ``None`` included)
through :meth:`SinkConfig.merge`, which rejects unknown option names.

Config files are JSON.  Resolution order for ``${VAR}`` placeholders:
    CLI overrides → environment variables → raw config value.

``${VAR}`` (no default) raises if unresolvable.
``${VAR:-default}`` falls back to *default*.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Union

import jsonschema
import orjson

from rotating_log_sink.models import Level

logger = logging.getLogger(__name__)

_VAR_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-(.*?))?\}")

_SCHEMA_PATH = Path(__file__).resolve().parent / "config.schema.json"

DEFAULT_FORMAT = "$time $metadata[$level] $message\n"

DIRECTORY_KINDS = ("user_data", "user_log")


@dataclass(frozen=True)
class DirectoryDescriptor:
    """A per-user platform directory instead of a literal path.

    ``user_data`` resolves to the application's data directory and
    ``user_log`` to its ``Logs`` subdirectory.
    """

    kind: str
    app: str
    author: Optional[str] = None
    version: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind not in DIRECTORY_KINDS:
            raise ValueError(
                f"Directory kind must be one of {DIRECTORY_KINDS}, got {self.kind!r}"
            )
        if not self.app:
            raise ValueError("Directory descriptor requires an app name")

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "DirectoryDescriptor":
        """Build from ``{"user_log": {"app": ..., "author": ..., "version": ...}}``."""
        if len(raw) != 1:
            raise ValueError(f"Directory descriptor needs exactly one kind, got {sorted(raw)}")
        (kind, params), = raw.items()
        if isinstance(params, str):
            params = {"app": params}
        return cls(
            kind=kind,
            app=params.get("app", ""),
            author=params.get("author"),
            version=params.get("version"),
        )


@dataclass(frozen=True)
class RotationPolicy:
    """Size rotation threshold and per-day retention."""

    max_bytes: Optional[int] = None
    keep: Optional[int] = None

    @property
    def rotates_by_size(self) -> bool:
        return (
            isinstance(self.max_bytes, int)
            and isinstance(self.keep, int)
            and self.keep > 0
        )


Directory = Union[str, os.PathLike, DirectoryDescriptor, None]
MetadataFilter = Optional[tuple]
Format = Union[str, Callable[..., Any]]


@dataclass(frozen=True)
class SinkConfig:
    """Options for one sink.  Every field has a usable default."""

    directory: Directory = "."
    filename: Optional[str] = "log"
    level: Optional[Level] = None
    format: Format = DEFAULT_FORMAT
    metadata: Union[str, tuple] = ()
    metadata_filter: MetadataFilter = None
    rotate: Optional[RotationPolicy] = None

    def __post_init__(self) -> None:
        # Coerce loosely-typed option values (plain dicts, lists, level names).
        set_ = object.__setattr__
        if isinstance(self.directory, Mapping):
            set_(self, "directory", DirectoryDescriptor.from_dict(self.directory))
        if self.level is not None:
            set_(self, "level", Level.parse(self.level))
        set_(self, "metadata", _coerce_metadata(self.metadata))
        set_(self, "metadata_filter", _coerce_filter(self.metadata_filter))
        if isinstance(self.rotate, Mapping):
            set_(self, "rotate", RotationPolicy(
                max_bytes=self.rotate.get("max_bytes"),
                keep=self.rotate.get("keep"),
            ))

    def merge(self, **changes: Any) -> "SinkConfig":
        """Return a copy with *changes* applied over the current values."""
        return self.merge_options(changes)

    def merge_options(self, options: Mapping[str, Any]) -> "SinkConfig":
        """Like :meth:`merge`, for an options mapping.

        Raises
        ------
        ValueError
            If *options* contains a name that is not a sink option.
        """
        unknown = set(options) - set(_OPTION_NAMES)
        if unknown:
            raise ValueError(f"Unknown sink option(s): {', '.join(sorted(unknown))}")
        return dataclasses.replace(self, **options)


_OPTION_NAMES = tuple(f.name for f in dataclasses.fields(SinkConfig))


def _coerce_metadata(value: Any) -> Union[str, tuple]:
    if value == "all":
        return "all"
    if value is None:
        return ()
    if isinstance(value, str):
        raise ValueError(f'metadata must be "all" or a list of keys, got {value!r}')
    return tuple(value)


def _coerce_filter(value: Any) -> MetadataFilter:
    if value is None:
        return None
    if isinstance(value, Mapping):
        return tuple(value.items())
    return tuple((key, expected) for key, expected in value)


@dataclass
class LoggingConfig:
    """Diagnostic logging settings for the sink process itself."""

    level: str = "info"
    format: str = "json"


@dataclass
class AppConfig:
    """Top-level application configuration."""

    default_sink: str = "default"
    sinks: dict[str, SinkConfig] = field(default_factory=lambda: {"default": SinkConfig()})
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _interpolate_value(value: str, overrides: dict[str, str] | None = None) -> str:
    """Replace ``${VAR}`` / ``${VAR:-default}`` in *value*."""

    def _replacer(match: re.Match) -> str:
        var_name = match.group(1)
        default = match.group(2)  # None when no ``:-`` present

        # 1. CLI overrides
        if overrides and var_name in overrides:
            return overrides[var_name]
        # 2. Environment variables
        env_val = os.environ.get(var_name)
        if env_val is not None:
            return env_val
        # 3. Default
        if default is not None:
            return default

        raise ValueError(
            f"Required variable ${{{var_name}}} is not set in environment or CLI overrides"
        )

    return _VAR_RE.sub(_replacer, value)


def _walk_and_interpolate(obj: Any, overrides: dict[str, str] | None = None) -> Any:
    """Recursively interpolate all string values in a JSON-like structure."""
    if isinstance(obj, str):
        return _interpolate_value(obj, overrides)
    if isinstance(obj, dict):
        return {k: _walk_and_interpolate(v, overrides) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_walk_and_interpolate(item, overrides) for item in obj]
    return obj


def sink_config_from_dict(raw: Mapping[str, Any], base: SinkConfig | None = None) -> SinkConfig:
    """Build a :class:`SinkConfig` from a JSON object, merged over *base*."""
    return (base or SinkConfig()).merge_options(raw)


def _dict_to_config(raw: dict[str, Any]) -> AppConfig:
    """Convert a raw dict into a typed :class:`AppConfig`."""
    sinks_raw = raw.get("sinks") or {"default": {}}
    logging_raw = raw.get("logging", {})

    sinks = {name: sink_config_from_dict(opts) for name, opts in sinks_raw.items()}
    default_sink = raw.get("default_sink", next(iter(sinks)))
    if default_sink not in sinks:
        raise ValueError(f"default_sink {default_sink!r} is not a configured sink")

    return AppConfig(
        default_sink=default_sink,
        sinks=sinks,
        logging=LoggingConfig(
            level=logging_raw.get("level", "info"),
            format=logging_raw.get("format", "json"),
        ),
    )


def load_config(
    path: str | Path,
    overrides: dict[str, str] | None = None,
    schema_path: str | Path | None = None,
) -> AppConfig:
    """Load, interpolate, validate, and return the application config.

    Parameters
    ----------
    path:
        Filesystem path to the JSON config file.
    overrides:
        CLI-supplied variable overrides.
    schema_path:
        Path to the JSON Schema file.  Defaults to the schema shipped
        inside the package.

    Returns
    -------
    AppConfig
        Fully resolved and validated configuration.

    Raises
    ------
    ValueError
        If a required ``${VAR}`` cannot be resolved or an option is invalid.
    jsonschema.ValidationError
        If the config fails schema validation.
    """
    raw_bytes = Path(path).read_bytes()
    raw: dict[str, Any] = orjson.loads(raw_bytes)

    interpolated = _walk_and_interpolate(raw, overrides=overrides)

    # --- schema validation ---
    sp = Path(schema_path) if schema_path else _SCHEMA_PATH
    if sp.exists():
        schema = orjson.loads(sp.read_bytes())
        jsonschema.validate(instance=interpolated, schema=schema)
        logger.debug("Config passed schema validation")
    else:
        logger.warning("Schema file not found at %s, skipping validation", sp)

    return _dict_to_config(interpolated)
