"""Employee type, project, and labourer models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from trench_payroll.models.base import Base, TimestampMixin, utcnow

# Labourer fields that become correction-only once payment history exists
IDENTITY_FIELDS = frozenset({"first_name", "surname", "id_number", "date_of_birth"})
BANKING_FIELDS = frozenset({"bank_name", "account_number", "account_type", "branch_code"})


class EmployeeType(Base, TimestampMixin):
    """Labourer classification that pay rates are keyed on.

    Never hard-deleted: historical rates reference it, so it is retired by
    clearing ``is_active``.
    """

    __tablename__ = "employee_type"

    employee_type_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)


class Project(Base, TimestampMixin):
    """Fibre-deployment project."""

    __tablename__ = "project"

    project_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str | None] = mapped_column(String(500), nullable=True)
    budget: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    payment_frequency: Mapped[str] = mapped_column(
        String, nullable=False, default="fortnightly"
    )
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_by: Mapped[UUID] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'completed', 'on_hold')",
            name="project_status_check",
        ),
        CheckConstraint(
            "payment_frequency IN ('fortnightly', 'monthly')",
            name="project_payment_frequency_check",
        ),
    )

    @property
    def is_closed(self) -> bool:
        """Completed projects only change through correction requests."""
        return self.status == "completed"


class Labourer(Base, TimestampMixin):
    """Field worker whose output is logged daily."""

    __tablename__ = "labourer"

    labourer_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    project_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("project.project_id", ondelete="SET NULL"),
        nullable=True,
    )
    employee_type_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee_type.employee_type_id"),
        nullable=False,
    )

    # Identity
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    surname: Mapped[str] = mapped_column(String(100), nullable=False)
    id_number: Mapped[str] = mapped_column(String(50), nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    gender: Mapped[str | None] = mapped_column(String(20), nullable=True)
    contact_number: Mapped[str] = mapped_column(String(20), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    physical_address: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Banking
    bank_name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_number: Mapped[str] = mapped_column(String(50), nullable=False)
    account_type: Mapped[str] = mapped_column(String, nullable=False)
    branch_code: Mapped[str] = mapped_column(String(20), nullable=False)

    # Opaque object-storage paths
    profile_photo_path: Mapped[str | None] = mapped_column(String, nullable=True)
    id_document_path: Mapped[str | None] = mapped_column(String, nullable=True)
    banking_proof_path: Mapped[str | None] = mapped_column(String, nullable=True)

    created_by: Mapped[UUID] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint(
            "account_type IN ('cheque', 'savings')",
            name="labourer_account_type_check",
        ),
    )

    @property
    def full_name(self) -> str:
        """Get full name."""
        return f"{self.first_name} {self.surname}"
