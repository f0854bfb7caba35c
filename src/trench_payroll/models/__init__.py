"""SQLAlchemy ORM models."""

from trench_payroll.models.audit import AuditEvent, CorrectionRequest
from trench_payroll.models.base import Base, TimestampMixin
from trench_payroll.models.payroll import PaymentPeriod, PaymentPeriodEntry, PayRate, WorkLog
from trench_payroll.models.workforce import (
    BANKING_FIELDS,
    IDENTITY_FIELDS,
    EmployeeType,
    Labourer,
    Project,
)

__all__ = [
    "AuditEvent",
    "BANKING_FIELDS",
    "Base",
    "CorrectionRequest",
    "EmployeeType",
    "IDENTITY_FIELDS",
    "Labourer",
    "PayRate",
    "PaymentPeriod",
    "PaymentPeriodEntry",
    "Project",
    "TimestampMixin",
    "WorkLog",
]
