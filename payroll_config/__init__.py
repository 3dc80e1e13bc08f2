"""
payroll_config -- single public entrypoint for payroll configuration.

Responsibility:
    ``get_active_config()`` is the way to obtain configuration at runtime.
    It loads a YAML configuration set from ``payroll_config/sets/``, parses
    it into a frozen ``PayrollConfig`` and logs which set and checksum were
    used.

Architecture position:
    Configuration -- sits above ``payroll_kernel`` and ``payroll_engines``
    and below ``payroll_modules``.  The kernel and the engines never import
    from here; ``payroll_modules.payroll.helpers`` translates the config
    into engine inputs.

Failure modes:
    - ``FileNotFoundError`` when the requested set does not exist.
    - ``ValueError`` when the set fails schema validation.

Audit relevance:
    Every successful call emits a ``payroll_config_loaded`` log entry with
    the config id, version and content checksum, tying each run to the
    exact configuration that computed it.
"""

from __future__ import annotations

from pathlib import Path

from payroll_config.loader import compute_checksum, load_yaml_file, parse_config
from payroll_config.schema import PayrollConfig, StatutoryConfig, TaxSlabConfig
from payroll_kernel.logging_config import get_logger

logger = get_logger("config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"


def get_active_config(
    config_id: str = "default",
    config_dir: Path | None = None,
) -> PayrollConfig:
    """
    Load and validate configuration set ``config_id``.

    Args:
        config_id: Name of the set (``<config_dir>/<config_id>.yaml``).
        config_dir: Override path to the sets directory.

    Raises:
        FileNotFoundError: If the set does not exist.
        ValueError: If validation fails.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    path = sets_dir / f"{config_id}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"Payroll configuration set not found: {path}")

    data = load_yaml_file(path)
    config = parse_config(data)

    logger.info(
        "payroll_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": compute_checksum(data),
            "currency": config.currency,
            "ctc_basis": config.ctc_basis,
        },
    )
    return config


__all__ = [
    "get_active_config",
    "PayrollConfig",
    "StatutoryConfig",
    "TaxSlabConfig",
]
