"""
Payroll Configuration Schema.

Frozen dataclasses describing one payroll configuration set: currency,
CTC basis, overtime parameters and statutory deduction settings.  YAML
sets are parsed into these types by ``payroll_config.loader``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Self

from payroll_kernel.db.types import minor_units
from payroll_kernel.logging_config import get_logger

logger = get_logger("config.schema")

VALID_CTC_BASES = {"monthly", "annual"}


def _decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # YAML floats lose precision; go through repr to keep "0.0075" exact.
        return Decimal(repr(value))
    return Decimal(str(value))


def _optional_decimal(value: Any) -> Decimal | None:
    return None if value is None else _decimal(value)


@dataclass(frozen=True)
class TaxSlabConfig:
    """Annual income up to ``upper_bound`` taxed at ``rate``; None is the top slab."""

    upper_bound: Decimal | None
    rate: Decimal

    def __post_init__(self):
        if self.rate < 0 or self.rate > 1:
            raise ValueError(f"tax slab rate must be between 0 and 1, got {self.rate}")
        if self.upper_bound is not None and self.upper_bound <= 0:
            raise ValueError("tax slab upper_bound must be positive")


DEFAULT_SLABS: tuple[TaxSlabConfig, ...] = (
    TaxSlabConfig(Decimal("250000"), Decimal("0")),
    TaxSlabConfig(Decimal("500000"), Decimal("0.05")),
    TaxSlabConfig(Decimal("1000000"), Decimal("0.20")),
    TaxSlabConfig(None, Decimal("0.30")),
)


@dataclass(frozen=True)
class StatutoryConfig:
    """Rates and limits for PF, ESI, TDS and PT."""

    pf_enabled: bool = True
    pf_rate: Decimal = Decimal("0.12")
    pf_monthly_cap: Decimal | None = Decimal("1800")

    esi_enabled: bool = True
    esi_rate: Decimal = Decimal("0.0075")
    esi_gross_ceiling: Decimal = Decimal("25000")

    tds_enabled: bool = True
    tds_slabs: tuple[TaxSlabConfig, ...] = DEFAULT_SLABS

    pt_enabled: bool = True
    pt_monthly_amount: Decimal = Decimal("200")

    def __post_init__(self):
        for name in ("pf_rate", "esi_rate"):
            rate = getattr(self, name)
            if rate < 0 or rate > 1:
                raise ValueError(f"{name} must be between 0 and 1, got {rate}")
        if self.pf_monthly_cap is not None and self.pf_monthly_cap < 0:
            raise ValueError("pf_monthly_cap cannot be negative")
        if self.esi_gross_ceiling < 0:
            raise ValueError("esi_gross_ceiling cannot be negative")
        if self.pt_monthly_amount < 0:
            raise ValueError("pt_monthly_amount cannot be negative")
        if self.tds_enabled:
            if not self.tds_slabs:
                raise ValueError("tds_slabs required when TDS is enabled")
            if self.tds_slabs[-1].upper_bound is not None:
                raise ValueError("the last tds slab must be open-ended")
            bounds = [s.upper_bound for s in self.tds_slabs[:-1]]
            if None in bounds or bounds != sorted(bounds):
                raise ValueError("tds_slabs must be sorted by upper_bound ascending")

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        data = dict(data)
        if "tds_slabs" in data:
            data["tds_slabs"] = tuple(
                TaxSlabConfig(
                    upper_bound=_optional_decimal(slab.get("upper_bound")),
                    rate=_decimal(slab["rate"]),
                )
                if isinstance(slab, dict) else slab
                for slab in data["tds_slabs"]
            )
        for name in ("pf_rate", "esi_rate", "esi_gross_ceiling", "pt_monthly_amount"):
            if name in data:
                data[name] = _decimal(data[name])
        if "pf_monthly_cap" in data:
            data["pf_monthly_cap"] = _optional_decimal(data["pf_monthly_cap"])
        return cls(**data)


@dataclass(frozen=True)
class PayrollConfig:
    """
    Configuration for the payroll packages.

    Field defaults describe an INR monthly payroll.  Override with a YAML
    configuration set or at instantiation:

        config = PayrollConfig(currency="INR", ctc_basis="annual")
    """

    config_id: str = "default"
    version: int = 1
    currency: str = "INR"
    ctc_basis: str = "monthly"

    hours_per_day: Decimal = Decimal("8")
    overtime_multiplier: Decimal = Decimal("1.5")

    default_revision_reason: str = "STRUCTURE_UPDATE"
    archive_keep_versions: int = 5

    statutory: StatutoryConfig = field(default_factory=StatutoryConfig)

    def __post_init__(self):
        # Raises ValueError for an unknown currency.
        minor_units(self.currency)
        if self.ctc_basis not in VALID_CTC_BASES:
            raise ValueError(
                f"ctc_basis must be one of {VALID_CTC_BASES}, got '{self.ctc_basis}'"
            )
        if self.hours_per_day <= 0 or self.hours_per_day > 24:
            raise ValueError("hours_per_day must be in (0, 24]")
        if self.overtime_multiplier <= 0:
            raise ValueError("overtime_multiplier must be positive")
        if self.archive_keep_versions < 1:
            raise ValueError("archive_keep_versions must be at least 1")

        logger.debug(
            "payroll_config_initialized",
            extra={
                "config_id": self.config_id,
                "currency": self.currency,
                "ctc_basis": self.ctc_basis,
            },
        )

    @property
    def decimal_places(self) -> int:
        return minor_units(self.currency)

    def monthly_ctc(self, ctc: Decimal) -> Decimal:
        """The monthly CTC a structure scales against."""
        if self.ctc_basis == "annual":
            return ctc / Decimal("12")
        return ctc

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the built-in defaults."""
        logger.info("payroll_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from a dictionary (e.g. a parsed YAML set)."""
        logger.info(
            "payroll_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        data = dict(data)
        if "statutory" in data and isinstance(data["statutory"], dict):
            data["statutory"] = StatutoryConfig.from_dict(data["statutory"])
        for name in ("hours_per_day", "overtime_multiplier"):
            if name in data:
                data[name] = _decimal(data[name])
        return cls(**data)
