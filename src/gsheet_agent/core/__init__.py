"""Core module - Sheets access, retry and cell conversion."""

from .cells import Cell, CellKind
from .retry import RetryConfig, with_retry
from .sheet_client import SheetClient, SheetInfo

__all__ = [
	"Cell",
	"CellKind",
	"RetryConfig",
	"SheetClient",
	"SheetInfo",
	"with_retry",
]
