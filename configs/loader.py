"""Configuration loading and validation for version-tolerant deserializers."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from core.descriptors import as_fingerprint
from core.fingerprint_registry import FingerprintRegistry

LOGGER = logging.getLogger(__name__)

_LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class DeserializerConfig:
    """Validated deserializer configuration container.

    ``allowed_fingerprints`` maps a type identity to the historical
    fingerprints accepted in place of its current one.
    """

    allowed_fingerprints: dict[str, tuple[int, ...]] = field(default_factory=dict)
    log_level: str = "WARNING"
    extras: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Return a configuration value by key.

        Args:
            key: Configuration key name.
            default: Value to return if key does not exist.

        Returns:
            Value associated with ``key`` or ``default``.
        """
        if hasattr(self, key):
            return getattr(self, key)
        return self.extras.get(key, default)


class ConfigLoader:
    """Load and validate deserializer configuration files (YAML or JSON)."""

    @staticmethod
    def load(path: str | Path) -> DeserializerConfig:
        """Load a deserializer config from ``path``.

        Args:
            path: Path to a YAML or JSON config file.

        Returns:
            A validated ``DeserializerConfig`` instance.
        """
        payload = _read_config_payload(path)
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError("Config file must contain a mapping object.")
        config = _validate_and_build(payload)
        LOGGER.info(
            "Loaded %d allowed fingerprint entries from %s",
            sum(len(values) for values in config.allowed_fingerprints.values()),
            path,
        )
        return config


def apply_config(config: DeserializerConfig, registry: FingerprintRegistry) -> FingerprintRegistry:
    """Register every allowed fingerprint of ``config`` with ``registry``."""
    for identity, fingerprints in config.allowed_fingerprints.items():
        for fingerprint in fingerprints:
            registry.allow(identity, fingerprint)
    return registry


def _read_config_payload(path: str | Path) -> Any:
    """Read raw config payload from JSON or YAML file."""
    config_path = Path(path)
    suffix = config_path.suffix.lower()
    content = config_path.read_text(encoding="utf-8")

    if suffix == ".json":
        return json.loads(content)

    if suffix in {".yaml", ".yml"}:
        return yaml.safe_load(content)

    raise ValueError(f"Unsupported config extension: {suffix}")


def _validate_fingerprints(identity: str, raw: Any) -> tuple[int, ...]:
    values = raw if isinstance(raw, list) else [raw]
    fingerprints: list[int] = []
    for value in values:
        try:
            fingerprints.append(as_fingerprint(value))
        except ValueError as exc:
            raise ValueError(f"Invalid fingerprint for '{identity}': {exc}") from exc
    return tuple(fingerprints)


def _validate_and_build(payload: Mapping[str, Any]) -> DeserializerConfig:
    """Validate raw mapping and build ``DeserializerConfig``."""
    raw_allowed = payload.get("allowed_fingerprints") or {}
    if not isinstance(raw_allowed, Mapping):
        raise ValueError("'allowed_fingerprints' must be a mapping of type name to fingerprints.")

    allowed: dict[str, tuple[int, ...]] = {}
    for identity, raw in raw_allowed.items():
        name = str(identity).strip()
        if not name:
            raise ValueError("allowed_fingerprints keys must be non-empty type names")
        allowed[name] = _validate_fingerprints(name, raw)

    log_level = str(payload.get("log_level", "WARNING")).upper()
    if log_level not in _LOG_LEVELS:
        raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")

    extras = {k: v for k, v in payload.items() if k not in {"allowed_fingerprints", "log_level"}}

    return DeserializerConfig(allowed_fingerprints=allowed, log_level=log_level, extras=extras)
