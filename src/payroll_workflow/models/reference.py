"""Tax settings and statutory reference tables."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_workflow.calculators.types import ContributionBracket as ContributionBracketValue
from payroll_workflow.calculators.types import TaxBracket, TaxSettingsSnapshot
from payroll_workflow.models.base import Base, TimestampMixin, utcnow

TAX_SETTINGS_SINGLETON_ID = 1


class TaxSettings(Base):
    """Process-wide tax settings; a single row updated in place."""

    __tablename__ = "tax_settings"

    tax_settings_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, default=TAX_SETTINGS_SINGLETON_ID
    )
    minimum_taxable_income: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("250000")
    )
    tax_exemption_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    auto_apply_exemption: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)
    updated_by: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint("tax_settings_id = 1", name="tax_settings_singleton_check"),
        CheckConstraint("minimum_taxable_income >= 0", name="tax_settings_minimum_check"),
    )

    def snapshot(self) -> TaxSettingsSnapshot:
        return TaxSettingsSnapshot(
            minimum_taxable_income=self.minimum_taxable_income,
            tax_exemption_enabled=self.tax_exemption_enabled,
            auto_apply_exemption=self.auto_apply_exemption,
        )


class ContributionBracket(Base, TimestampMixin):
    """SSS / PhilHealth / Pag-IBIG employee-share bracket."""

    __tablename__ = "contribution_bracket"

    contribution_bracket_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    kind: Mapped[str] = mapped_column(String, nullable=False)
    min_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    max_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    employee_share: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    rate: Mapped[Decimal] = mapped_column(Numeric(8, 6), nullable=False, default=Decimal("0"))

    __table_args__ = (
        CheckConstraint(
            "kind IN ('sss', 'philhealth', 'pagibig')",
            name="contribution_bracket_kind_check",
        ),
    )

    def to_value(self) -> ContributionBracketValue:
        return ContributionBracketValue(
            min_amount=self.min_amount,
            max_amount=self.max_amount,
            employee_share=self.employee_share,
            rate=self.rate,
        )


class WithholdingBracket(Base, TimestampMixin):
    """Annual withholding schedule bracket, applied to the taxable excess."""

    __tablename__ = "withholding_bracket"

    withholding_bracket_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    min_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    max_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    rate: Mapped[Decimal] = mapped_column(Numeric(8, 6), nullable=False)
    flat_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    description: Mapped[str | None] = mapped_column(String, nullable=True)

    def to_value(self) -> TaxBracket:
        return TaxBracket(
            min_amount=self.min_amount,
            max_amount=self.max_amount,
            rate=self.rate,
            flat_amount=self.flat_amount,
        )
