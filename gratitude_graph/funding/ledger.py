"""
gratitude_graph/funding/ledger.py — Community funding pool for story generation.

The pool is an append-only ledger of two entry types:
    Contribution — money paid in (e.g. from a payment webhook).
    UsageEntry   — cost of one generated story (tokens in/out, USD).

The balance is never stored; it is folded from the entries every time:
    balance = Σ contribution.amount − Σ usage.cost_usd
so concurrent writers can only append, never overwrite each other's totals.
Amounts are Decimal to keep cent arithmetic exact.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional, Union

from gratitude_graph.config import DEFAULT_CONFIG, GraphConfig

logger = logging.getLogger(__name__)

Number = Union[int, float, str, Decimal]


class LedgerError(ValueError):
    """Rejected ledger entry (non-positive contribution, negative cost)."""


def _money(value: Number) -> Decimal:
    # str() first so binary floats like 0.1 become Decimal('0.1').
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass(frozen=True)
class Contribution:
    amount: Decimal
    currency: str = "USD"
    user_id: Optional[int] = None
    payment_id: Optional[str] = None
    created_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class UsageEntry:
    package_name: str
    package_slug: str
    tokens_in: int
    tokens_out: int
    cost_usd: Decimal
    model: str = "unknown"
    created_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class FundingStats:
    """
    Transparency widget numbers (GET /api/funding).

    Fields:
        balance:            Pool balance, clamped at zero for display.
        stories_generated:  Number of usage entries.
        avg_cost_per_story: Mean usage cost, or the configured estimate if none.
        total_funded:       Σ contributions.
        total_spent:        Σ usage.
        stories_per_dollar: floor(1 / avg_cost_per_story).
    """

    balance: Decimal
    stories_generated: int
    avg_cost_per_story: Decimal
    total_funded: Decimal
    total_spent: Decimal
    stories_per_dollar: int

    def as_dict(self) -> dict:
        return {
            "balance": float(self.balance),
            "storiesGenerated": self.stories_generated,
            "avgCostPerStory": float(self.avg_cost_per_story),
            "totalFunded": float(self.total_funded),
            "totalSpent": float(self.total_spent),
            "storiesPerDollar": self.stories_per_dollar,
        }


class FundingLedger:
    """Append-only funding/usage ledger. Entries are immutable once recorded."""

    def __init__(
        self,
        contributions: Iterable[Contribution] = (),
        usage: Iterable[UsageEntry] = (),
        config: GraphConfig = DEFAULT_CONFIG,
    ):
        self.config = config
        self._contributions: list[Contribution] = list(contributions)
        self._usage: list[UsageEntry] = list(usage)

    @property
    def contributions(self) -> tuple[Contribution, ...]:
        return tuple(self._contributions)

    @property
    def usage(self) -> tuple[UsageEntry, ...]:
        return tuple(self._usage)

    # ── Appends ───────────────────────────────────────────────────────────────

    def record_contribution(
        self,
        amount: Number,
        currency: str = "USD",
        user_id: Optional[int] = None,
        payment_id: Optional[str] = None,
    ) -> Contribution:
        value = _money(amount)
        if value <= 0:
            raise LedgerError(f"Contribution must be positive, got {value}")
        entry = Contribution(amount=value, currency=currency, user_id=user_id, payment_id=payment_id)
        self._contributions.append(entry)
        logger.info("Recorded contribution of %s %s.", value, currency)
        return entry

    def record_usage(
        self,
        package_name: str,
        package_slug: str,
        tokens_in: int,
        tokens_out: int,
        cost_usd: Number,
        model: str = "unknown",
    ) -> UsageEntry:
        cost = _money(cost_usd)
        if cost < 0:
            raise LedgerError(f"Usage cost cannot be negative, got {cost}")
        entry = UsageEntry(
            package_name=package_name,
            package_slug=package_slug,
            tokens_in=int(tokens_in),
            tokens_out=int(tokens_out),
            cost_usd=cost,
            model=model,
        )
        self._usage.append(entry)
        logger.info("Recorded story usage for '%s': $%s.", package_slug, cost)
        return entry

    # ── Folds ─────────────────────────────────────────────────────────────────

    def total_funded(self) -> Decimal:
        return sum((c.amount for c in self._contributions), Decimal("0"))

    def total_spent(self) -> Decimal:
        return sum((u.cost_usd for u in self._usage), Decimal("0"))

    def balance(self) -> Decimal:
        """Raw balance; may be negative if usage outran funding."""
        return self.total_funded() - self.total_spent()

    def can_generate(self) -> bool:
        """True if the pool holds more than the minimum needed for one story."""
        return self.balance() > _money(self.config.min_generation_balance)

    def stats(self) -> FundingStats:
        spent = self.total_spent()
        stories = len(self._usage)
        default_cost = _money(self.config.default_story_cost)
        avg = spent / stories if stories else default_cost
        # Free stories would divide by zero; quote the default rate instead.
        per_dollar = Decimal("1") / (avg if avg > 0 else default_cost)
        return FundingStats(
            balance=max(self.balance(), Decimal("0")),
            stories_generated=stories,
            avg_cost_per_story=avg,
            total_funded=self.total_funded(),
            total_spent=spent,
            stories_per_dollar=int(per_dollar),
        )
