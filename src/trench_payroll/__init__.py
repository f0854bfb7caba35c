"""Work-log and payment-period reconciliation engine for trenching crews."""

__version__ = "0.1.0"
