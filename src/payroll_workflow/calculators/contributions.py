"""Statutory contribution lookup (SSS, PhilHealth, Pag-IBIG)."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal

from payroll_workflow.calculators.types import (
    ZERO,
    ContributionBracket,
    StatutoryContributions,
    to_money,
)

CONTRIBUTION_KINDS = ("sss", "philhealth", "pagibig")


def _bracket(min_amount: str, max_amount: str | None, share: str = "0", rate: str = "0") -> ContributionBracket:
    return ContributionBracket(
        min_amount=Decimal(min_amount),
        max_amount=Decimal(max_amount) if max_amount is not None else None,
        employee_share=Decimal(share),
        rate=Decimal(rate),
    )


# Employee shares, keyed by gross pay
DEFAULT_BRACKETS: dict[str, tuple[ContributionBracket, ...]] = {
    "sss": (
        _bracket("0", "4249.99", share="180.00"),
        _bracket("4250.00", "29749.99", rate="0.045"),
        _bracket("29750.00", None, share="1350.00"),
    ),
    "philhealth": (
        _bracket("0", "9999.99"),
        _bracket("10000.00", "39999.99", rate="0.025"),
        _bracket("40000.00", None, share="1000.00"),
    ),
    "pagibig": (
        _bracket("0", "1499.99"),
        _bracket("1500.00", "4999.99", rate="0.01"),
        _bracket("5000.00", "9999.99", rate="0.02"),
        _bracket("10000.00", None, share="200.00"),
    ),
}


class ContributionTable:
    """Pure function ``contributions(gross_pay) -> StatutoryContributions``.

    Each kind is looked up independently: the first bracket with
    ``min_amount <= gross <= max_amount`` yields
    ``employee_share + rate * gross``. No matching bracket yields zero.
    """

    def __init__(
        self,
        sss: Sequence[ContributionBracket] = (),
        philhealth: Sequence[ContributionBracket] = (),
        pagibig: Sequence[ContributionBracket] = (),
    ):
        self.brackets = {
            "sss": tuple(sorted(sss, key=lambda b: b.min_amount)),
            "philhealth": tuple(sorted(philhealth, key=lambda b: b.min_amount)),
            "pagibig": tuple(sorted(pagibig, key=lambda b: b.min_amount)),
        }

    @classmethod
    def defaults(cls) -> ContributionTable:
        return cls(**DEFAULT_BRACKETS)

    @classmethod
    def from_rows(cls, rows: Iterable[tuple[str, ContributionBracket]]) -> ContributionTable:
        """Build from ``(kind, bracket)`` pairs, e.g. loaded from the database."""
        grouped: dict[str, list[ContributionBracket]] = {k: [] for k in CONTRIBUTION_KINDS}
        for kind, bracket in rows:
            if kind not in grouped:
                raise ValueError(f"Unknown contribution kind: {kind}")
            grouped[kind].append(bracket)
        return cls(**grouped)

    def __call__(self, gross_pay: Decimal) -> StatutoryContributions:
        return StatutoryContributions(
            sss=self.lookup(self.brackets["sss"], gross_pay),
            philhealth=self.lookup(self.brackets["philhealth"], gross_pay),
            pagibig=self.lookup(self.brackets["pagibig"], gross_pay),
        )

    @staticmethod
    def lookup(brackets: Sequence[ContributionBracket], amount: Decimal) -> Decimal:
        if amount <= 0:
            return ZERO
        for bracket in brackets:
            if amount < bracket.min_amount:
                continue
            if bracket.max_amount is not None and amount > bracket.max_amount:
                continue
            return to_money(bracket.employee_share + bracket.rate * amount)
        return ZERO

    def to_canonical_dict(self) -> dict[str, list[list[str | None]]]:
        return {
            kind: [
                [str(b.min_amount), str(b.max_amount) if b.max_amount is not None else None,
                 str(b.employee_share), str(b.rate)]
                for b in brackets
            ]
            for kind, brackets in self.brackets.items()
        }
