from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Tuple


def _money(value) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))


@dataclass(frozen=True)
class GracePeriodPolicy:
    grace_period_days: int = 3
    base_late_fee: Decimal = Decimal("1.00")
    daily_late_fee: Decimal = Decimal("0.50")
    max_late_fee: Decimal = Decimal("25.00")
    notification_offsets: Tuple[int, ...] = (1, 7, 14, 30)
    auto_suspend_days: int = 60

    def __post_init__(self):
        # accept floats/strings from config or callers, store exact money
        object.__setattr__(self, "base_late_fee", _money(self.base_late_fee))
        object.__setattr__(self, "daily_late_fee", _money(self.daily_late_fee))
        object.__setattr__(self, "max_late_fee", _money(self.max_late_fee))
        object.__setattr__(self, "notification_offsets", tuple(sorted(int(x) for x in self.notification_offsets)))
        if self.grace_period_days < 0:
            raise ValueError("grace_period_days must be >= 0")

    @classmethod
    def from_config(cls, config) -> "GracePeriodPolicy":
        return cls(
            grace_period_days=int(config.get("GRACE_PERIOD_DAYS", 3)),
            base_late_fee=config.get("BASE_LATE_FEE", "1.00"),
            daily_late_fee=config.get("DAILY_LATE_FEE", "0.50"),
            max_late_fee=config.get("MAX_LATE_FEE", "25.00"),
            notification_offsets=config.get("NOTIFICATION_OFFSETS", (1, 7, 14, 30)),
            auto_suspend_days=int(config.get("AUTO_SUSPEND_DAYS", 60)),
        )

    def override(self, **changes) -> "GracePeriodPolicy":
        return replace(self, **changes)


@dataclass(frozen=True)
class LoanPolicy:
    loan_period_days: int = 14
    max_loan_period_days: int = 60
    max_active_loans: int = 3

    @classmethod
    def from_config(cls, config) -> "LoanPolicy":
        return cls(
            loan_period_days=int(config.get("LOAN_PERIOD_DAYS", 14)),
            max_loan_period_days=int(config.get("MAX_LOAN_PERIOD_DAYS", 60)),
            max_active_loans=int(config.get("MAX_ACTIVE_LOANS", 3)),
        )
