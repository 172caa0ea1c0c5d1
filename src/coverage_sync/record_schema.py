"""Load, validate, and hot-reload the canonical record schema.

The schema lives in ``record_schema.yaml`` alongside this module.  It is
loaded once and cached; ``reload_record_schema()`` re-reads it from disk.

Usage::

    from src.coverage_sync.record_schema import get_record_schema

    schema = get_record_schema()
    record = schema.empty_record()          # every canonical key → None
    schema.is_network_dependent("upload_speed")   # True
    schema.network_type_name(13)                  # "LTE"
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from src.coverage_sync.base import MeasurementRecord

logger = logging.getLogger("coverage_sync.schema")

_SCHEMA_PATH = Path(__file__).parent / "record_schema.yaml"


@dataclass
class SpeedTestConfig:
    """Upload speed test parameters."""

    upload_path: str
    upload_bytes: int


@dataclass
class RecordSchema:
    """Validated record schema.

    Attributes:
        version:           Schema version string.
        library_version:   Value stamped into every record.
        fields:            Canonical field names, in declaration order.
        network_dependent: Fields nulled when the network is unavailable.
        network_types:     Radio technology code → display name.
        speed_test:        Speed test settings.
    """

    version: str
    library_version: str
    fields: list[str]
    network_dependent: frozenset[str]
    network_types: dict[int, str]
    speed_test: SpeedTestConfig
    _raw: dict = field(default_factory=dict, repr=False)

    def empty_record(self) -> MeasurementRecord:
        """Return a record with every canonical key set to ``None``."""
        return {name: None for name in self.fields}

    def is_network_dependent(self, name: str) -> bool:
        return name in self.network_dependent

    def network_type_name(self, code: int | None) -> str | None:
        """Map a radio technology code to its name.

        Unknown codes map to ``"UNKNOWN (<code>)"``; ``None`` stays ``None``.
        """
        if code is None:
            return None
        return self.network_types.get(code, f"UNKNOWN ({code})")


class SchemaValidationError(ValueError):
    """Raised when record_schema.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    if not path.exists():
        raise FileNotFoundError(f"Record schema not found: {path}")
    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise SchemaValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> RecordSchema:
    """Validate the raw YAML dict and construct a RecordSchema.

    Raises:
        SchemaValidationError: If required sections are missing or invalid.
    """
    errors: list[str] = []

    fields_raw = raw.get("fields") or []
    if not isinstance(fields_raw, list) or not fields_raw:
        errors.append("'fields' must be a non-empty list")
        fields_raw = []
    fields: list[str] = []
    for name in fields_raw:
        if not isinstance(name, str):
            errors.append(f"fields entry {name!r} must be a string")
        elif name in fields:
            errors.append(f"fields entry '{name}' is duplicated")
        else:
            fields.append(name)

    dependent_raw = raw.get("network_dependent") or []
    if not isinstance(dependent_raw, list):
        errors.append("'network_dependent' must be a list")
        dependent_raw = []
    for name in dependent_raw:
        if name not in fields:
            errors.append(f"network_dependent field '{name}' is not in 'fields'")

    network_types: dict[int, str] = {}
    for code, name in (raw.get("network_types") or {}).items():
        try:
            network_types[int(code)] = str(name)
        except (TypeError, ValueError):
            errors.append(f"network_types key {code!r} must be an integer")

    st_raw = raw.get("speed_test") or {}
    speed_test = SpeedTestConfig(
        upload_path=str(st_raw.get("upload_path", "/api/test-data-upload")),
        upload_bytes=int(st_raw.get("upload_bytes", 100_000)),
    )
    if speed_test.upload_bytes <= 0:
        errors.append("speed_test.upload_bytes must be positive")

    if errors:
        raise SchemaValidationError(
            f"record_schema.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return RecordSchema(
        version=str(raw.get("version", "1.0")),
        library_version=str(raw.get("library_version", "v0.1")),
        fields=fields,
        network_dependent=frozenset(dependent_raw),
        network_types=network_types,
        speed_test=speed_test,
        _raw=raw,
    )


def load_record_schema(path: Path | None = None) -> RecordSchema:
    """Load and validate the record schema from disk.

    Args:
        path: Override path to YAML.  Uses the bundled file by default.
    """
    target = path or _SCHEMA_PATH
    schema = _validate_and_build(_load_yaml(target))
    logger.info("Loaded record schema v%s from %s", schema.version, target)
    return schema


# ---------------------------------------------------------------------------
# Cached singleton with reload support
# ---------------------------------------------------------------------------

_schema: RecordSchema | None = None
_schema_lock = threading.Lock()


def get_record_schema() -> RecordSchema:
    """Return the cached RecordSchema, loading it on first call.  Thread-safe."""
    global _schema
    if _schema is None:
        with _schema_lock:
            if _schema is None:
                _schema = load_record_schema()
    return _schema


def reload_record_schema(path: Path | None = None) -> RecordSchema:
    """Re-read the schema and replace the cached copy.

    If validation fails the previous schema is kept and the error re-raised.
    """
    global _schema
    new_schema = load_record_schema(path)
    with _schema_lock:
        old_version = _schema.version if _schema else "none"
        _schema = new_schema
    logger.info("Reloaded record schema: %s → %s", old_version, new_schema.version)
    return new_schema
