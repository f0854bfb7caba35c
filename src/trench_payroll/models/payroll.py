"""Pay rate, work log, and payment period models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from trench_payroll.models.base import Base, JSONType, TimestampMixin, utcnow


# ===== Pay Rates =====


class PayRate(Base, TimestampMixin):
    """Time-effective price for a (project, employee type, category)."""

    __tablename__ = "pay_rate"

    pay_rate_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("project.project_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_type_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee_type.employee_type_id"),
        nullable=False,
    )
    category: Mapped[str] = mapped_column(String, nullable=False)
    category_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    unit: Mapped[str] = mapped_column(String, nullable=False, default="per_meter")
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_by: Mapped[UUID] = mapped_column(nullable=False)

    __table_args__ = (
        CheckConstraint(
            "category IN ('open_trenching', 'close_trenching', 'custom')",
            name="pay_rate_category_check",
        ),
        CheckConstraint(
            "unit IN ('per_meter', 'per_day', 'fixed')",
            name="pay_rate_unit_check",
        ),
        CheckConstraint("amount >= 0", name="pay_rate_amount_non_negative"),
        Index(
            "idx_pay_rate_lookup",
            "project_id",
            "employee_type_id",
            "category",
            "effective_date",
        ),
    )

    def is_effective_on(self, as_of_date: date) -> bool:
        """Check if the rate applies on a given date."""
        return self.effective_date <= as_of_date


# ===== Work Logs =====


class WorkLog(Base):
    """One labourer's trenching output for one calendar day.

    ``total_earnings`` is captured at write time from the rates effective on
    ``work_date`` for the labourer's employee type at that moment. The type
    is stored with the entry so recomputation prices it the same way after the
    labourer is reclassified; later rate changes never alter it.
    """

    __tablename__ = "work_log"

    work_log_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("project.project_id", ondelete="CASCADE"),
        nullable=False,
    )
    labourer_id: Mapped[UUID] = mapped_column(
        ForeignKey("labourer.labourer_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_type_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee_type.employee_type_id"),
        nullable=False,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    open_meters: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    close_meters: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    additional_items: Mapped[list[dict[str, Any]] | None] = mapped_column(
        JSONType, nullable=True
    )
    total_earnings: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    recorded_by: Mapped[UUID] = mapped_column(nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("labourer_id", "work_date", name="work_log_labourer_date_unique"),
        CheckConstraint("open_meters >= 0", name="work_log_open_meters_check"),
        CheckConstraint("close_meters >= 0", name="work_log_close_meters_check"),
        Index("idx_work_log_project_date", "project_id", "work_date"),
        Index("idx_work_log_labourer", "labourer_id"),
    )

    @property
    def has_output(self) -> bool:
        """True when any trenching was done on this day."""
        return self.open_meters > 0 or self.close_meters > 0


# ===== Payment Periods =====


class PaymentPeriod(Base, TimestampMixin):
    """Date-bounded payroll batch for one project."""

    __tablename__ = "payment_period"

    payment_period_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("project.project_id", ondelete="CASCADE"),
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="open")
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )

    submitted_by: Mapped[UUID | None] = mapped_column(nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_by: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_by: Mapped[UUID | None] = mapped_column(nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    paid_by: Mapped[UUID | None] = mapped_column(nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    aggregated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reopen_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint(
            "status IN ('open', 'submitted', 'approved', 'rejected', 'paid')",
            name="payment_period_status_check",
        ),
        CheckConstraint("end_date >= start_date", name="payment_period_dates_check"),
        Index("idx_payment_period_dates", "project_id", "start_date", "end_date"),
    )

    def covers(self, work_date: date) -> bool:
        """Check if a work date falls inside the period."""
        return self.start_date <= work_date <= self.end_date


class PaymentPeriodEntry(Base):
    """Per-labourer aggregate for a payment period.

    Derived data: every aggregation run replaces the whole set.
    """

    __tablename__ = "payment_period_entry"

    entry_id: Mapped[UUID] = mapped_column(primary_key=True)
    payment_period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payment_period.payment_period_id", ondelete="CASCADE"),
        nullable=False,
    )
    labourer_id: Mapped[UUID] = mapped_column(
        ForeignKey("labourer.labourer_id", ondelete="CASCADE"),
        nullable=False,
    )
    days_worked: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    open_meters: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    close_meters: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_meters: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_earnings: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "payment_period_id", "labourer_id", name="payment_period_entry_unique"
        ),
    )

    def to_canonical_dict(self) -> dict[str, Any]:
        """Return canonical dict for comparison (deterministic ordering)."""
        return {
            "entry_id": str(self.entry_id),
            "payment_period_id": str(self.payment_period_id),
            "labourer_id": str(self.labourer_id),
            "days_worked": self.days_worked,
            "open_meters": str(self.open_meters),
            "close_meters": str(self.close_meters),
            "total_meters": str(self.total_meters),
            "total_earnings": str(self.total_earnings),
        }
