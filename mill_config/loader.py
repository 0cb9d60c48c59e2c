"""
Configuration Loader (``mill_config.loader``).

Responsibility
--------------
Loads the milling rules YAML file and parses it into a frozen
``MillingRules`` instance. Runtime callers go through
``mill_config.get_active_rules()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Unknown weight unit or unparseable number  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from mill_config.schema import MillingRules
from mill_kernel.domain.values import WeightUnit

REQUIRED_KEYS = (
    "config_id",
    "paddy_bag_yield_quintals",
    "store_weight_unit",
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file.

    Raises:
        FileNotFoundError: if ``path`` does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field: str) -> Decimal:
    # YAML floats go through str() so 0.47 stays 0.47
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid decimal for {field}: {value!r}") from e


def parse_rules(data: dict[str, Any]) -> MillingRules:
    """Parse a rules dict into MillingRules, stamping its checksum."""
    for key in REQUIRED_KEYS:
        if key not in data:
            raise KeyError(f"Milling rules missing required key: {key}")

    try:
        unit = WeightUnit(data["store_weight_unit"])
    except ValueError as e:
        raise ValueError(
            f"Unknown store_weight_unit: {data['store_weight_unit']!r}"
        ) from e

    return MillingRules(
        config_id=str(data["config_id"]),
        version=int(data.get("version", 1)),
        paddy_bag_yield_quintals=parse_decimal(
            data["paddy_bag_yield_quintals"], "paddy_bag_yield_quintals"
        ),
        store_weight_unit=unit,
        amount_places=int(data.get("amount_places", 2)),
        warn_on_negative_pools=bool(data.get("warn_on_negative_pools", True)),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
