"""
Index feature - media discovery, incremental scans and query views.
"""
from .scan_orchestrator import ScanOrchestrator, run_scan
from .service import MediaIndexService, ScanStatus

__all__ = ["MediaIndexService", "ScanOrchestrator", "ScanStatus", "run_scan"]
