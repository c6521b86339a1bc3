"""Client-side pipelines: image preparation, receipt scanning, reactive views and export."""

from .dashboard import CashDashboard
from .export import csv_filename, fold_summary, render_table, report_rows, to_csv, write_csv
from .query import DebounceTimer, QueryEngine
from .report import ReportView
from .resize import resize_image, target_size
from .scan import ReceiptScanner, ScanOutcome, ScanState, is_image_like

__all__ = [
    "CashDashboard",
    "DebounceTimer",
    "QueryEngine",
    "ReceiptScanner",
    "ReportView",
    "ScanOutcome",
    "ScanState",
    "csv_filename",
    "fold_summary",
    "is_image_like",
    "render_table",
    "report_rows",
    "resize_image",
    "target_size",
    "to_csv",
    "write_csv",
]
