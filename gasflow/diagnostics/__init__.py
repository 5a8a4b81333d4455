# gasflow/diagnostics/__init__.py

from .diagnostics import DiagnosticTracker, check_flow_consistency
from .alert import alert

__all__ = [
    "DiagnosticTracker",
    "check_flow_consistency",
    "alert"
]
