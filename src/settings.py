"""Runtime settings for the payments ledger."""

import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Mapping, Optional

from exceptions import ConfigurationError

DEFAULT_PRECISION = 4
MAX_PRECISION = 18
LOG_FORMATS = ("standard", "json")


class ChargebackPolicy(Enum):
    """How a chargeback treats the funds frozen by its dispute."""

    TRUST = "trust"
    REVALIDATE = "revalidate"


def quantum_for(precision: int) -> Decimal:
    """Smallest representable amount at the given number of fractional digits."""
    return Decimal(1).scaleb(-precision)


@dataclass
class LedgerSettings:
    """Settings for a single ledger run."""

    precision: int = DEFAULT_PRECISION
    chargeback_policy: ChargebackPolicy = ChargebackPolicy.TRUST
    shards: int = 1
    log_level: str = "WARNING"
    log_format: str = "standard"

    def __post_init__(self) -> None:
        if not 0 <= self.precision <= MAX_PRECISION:
            raise ConfigurationError(f"precision must be between 0 and {MAX_PRECISION}, got {self.precision}")
        if self.shards < 1:
            raise ConfigurationError(f"shards must be at least 1, got {self.shards}")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigurationError(f"unknown log level {self.log_level!r}")
        if self.log_format not in LOG_FORMATS:
            raise ConfigurationError(f"log format must be one of {', '.join(LOG_FORMATS)}, got {self.log_format!r}")

    @property
    def quantum(self) -> Decimal:
        return quantum_for(self.precision)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "LedgerSettings":
        """Create settings from LEDGER_* environment variables."""
        env = os.environ if environ is None else environ

        try:
            precision = int(env.get("LEDGER_PRECISION", str(DEFAULT_PRECISION)))
            shards = int(env.get("LEDGER_SHARDS", "1"))
        except ValueError as e:
            raise ConfigurationError(f"invalid integer setting: {e}") from e

        return cls(
            precision=precision,
            chargeback_policy=parse_chargeback_policy(env.get("LEDGER_CHARGEBACK_POLICY", "trust")),
            shards=shards,
            log_level=env.get("LEDGER_LOG_LEVEL", "WARNING"),
            log_format=env.get("LEDGER_LOG_FORMAT", "standard"),
        )


def parse_chargeback_policy(value: str) -> ChargebackPolicy:
    try:
        return ChargebackPolicy(value.strip().lower())
    except ValueError:
        choices = ", ".join(policy.value for policy in ChargebackPolicy)
        raise ConfigurationError(f"chargeback policy must be one of {choices}, got {value!r}") from None
