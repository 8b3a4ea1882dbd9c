"""Store module - Files kept in the AGENTSCAPE tab."""

from .file_store import FileStore
from .layout import LayoutGeneration, StoreLayout, detect_layout
from .migration import migrate_legacy
from .models import FileStatus, InitAction, InitResult, MigrationResult, StoredFile, ValidationReport

__all__ = [
	"FileStore",
	"StoredFile",
	"FileStatus",
	"InitAction",
	"InitResult",
	"ValidationReport",
	"MigrationResult",
	"LayoutGeneration",
	"StoreLayout",
	"detect_layout",
	"migrate_legacy",
]
