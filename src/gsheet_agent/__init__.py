"""gsheet-agent - A Google spreadsheet as a file store and task tracker for agents."""

from .agent import BatchReadQuery, SearchResult, SheetAgent, SheetData, WriteResult
from .core.retry import RetryConfig
from .core.sheet_client import ServiceAccountInfo, SheetClient
from .errors import (
	AuthError,
	NetworkError,
	PlanError,
	SheetAgentError,
	SheetPermissionError,
	ValidationError,
	format_error,
)
from .plans import PhaseInput, Plan, PlanManager, Task, TaskStatus, TaskUpdate
from .store import FileStatus, FileStore, StoredFile

__version__ = "0.1.0"

__all__ = [
	"SheetAgent",
	"SheetClient",
	"ServiceAccountInfo",
	"RetryConfig",
	"SheetData",
	"BatchReadQuery",
	"WriteResult",
	"SearchResult",
	"FileStore",
	"StoredFile",
	"FileStatus",
	"PlanManager",
	"Plan",
	"Task",
	"TaskStatus",
	"TaskUpdate",
	"PhaseInput",
	"SheetAgentError",
	"AuthError",
	"SheetPermissionError",
	"ValidationError",
	"NetworkError",
	"PlanError",
	"format_error",
]
