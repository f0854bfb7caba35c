"""Trench payroll services."""

from trench_payroll.services.aggregator import PaymentPeriodAggregator, summarize_work_logs
from trench_payroll.services.audit_service import AuditAction, AuditService
from trench_payroll.services.authorization import Action, Actor, ResourceKind, Role, authorize
from trench_payroll.services.correction_service import CorrectionService, CorrectionStatus
from trench_payroll.services.field_appliers import EntityType, get_applier
from trench_payroll.services.payment_period_service import PaymentPeriodService
from trench_payroll.services.report_service import PayrollReport, PayrollReportService
from trench_payroll.services.state_machine import PaymentPeriodStateMachine, PaymentPeriodStatus
from trench_payroll.services.work_log_service import WorkLogRecording, WorkLogService
from trench_payroll.services.workforce_service import WorkforceService

__all__ = [
    "Action",
    "Actor",
    "AuditAction",
    "AuditService",
    "CorrectionService",
    "CorrectionStatus",
    "EntityType",
    "PaymentPeriodAggregator",
    "PaymentPeriodService",
    "PaymentPeriodStateMachine",
    "PaymentPeriodStatus",
    "PayrollReport",
    "PayrollReportService",
    "ResourceKind",
    "Role",
    "WorkLogRecording",
    "WorkLogService",
    "WorkforceService",
    "authorize",
    "get_applier",
    "summarize_work_logs",
]
