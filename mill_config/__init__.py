"""
mill_config -- single public entrypoint for milling configuration.

Responsibility:
    Provides the only way to obtain milling rules at runtime through
    ``get_active_rules()``. Services call it once and pass the frozen
    ``MillingRules`` into the engines; engines never read files.

Architecture position:
    Configuration. Sits above ``mill_kernel`` and below ``mill_services``.
    The kernel MUST NEVER import from ``mill_config``.

Audit relevance:
    Every load emits a ``MILL_CONFIG_TRACE`` log entry carrying the
    config_id, version and checksum, tying each ledger computation to the
    rules that governed it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from mill_config.loader import compute_checksum, load_yaml_file, parse_rules
from mill_config.schema import MillingRules

_logger = logging.getLogger("mill_kernel.config")

_DEFAULT_RULES_PATH = Path(__file__).parent / "rules.yaml"


def get_active_rules(config_path: Path | None = None) -> MillingRules:
    """
    Load the milling rules.

    Args:
        config_path: Override path to a rules YAML file. Defaults to the
            ``rules.yaml`` shipped with this package.

    Raises:
        FileNotFoundError: If the file does not exist.
        KeyError: If a required key is missing.
        ValueError: If a value is invalid.
    """
    path = config_path or _DEFAULT_RULES_PATH
    rules = parse_rules(load_yaml_file(path))

    _logger.info(
        "MILL_CONFIG_TRACE",
        extra={
            "trace_type": "MILL_CONFIG_TRACE",
            "config_id": rules.config_id,
            "config_version": rules.version,
            "checksum": rules.checksum,
            "config_path": str(path),
        },
    )
    return rules


__all__ = ["MillingRules", "compute_checksum", "get_active_rules"]
