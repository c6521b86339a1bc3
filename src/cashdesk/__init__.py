"""
Cashdesk – client for the cash-ledger service.

Shared foundations (config, logging, paths) plus the ledger client, the
receipt-scanning pipeline and the reactive dashboard/report views.
"""

__version__ = "0.1.0"

__all__ = [
    "config",
    "logging",
    "paths",
]
