"""
Store Models - Pydantic schemas for files kept in the AGENTSCAPE tab.

Each file occupies one column; rows 1-12 hold the fixed metadata fields.
"""

import hashlib
from datetime import datetime, timezone
from enum import Enum
from typing import Union

from pydantic import BaseModel, Field

AGENTSCAPE_SHEET = "AGENTSCAPE"
FIELD_LABELS = (
	"FILE", "DESC", "TAGS", "Path", "CreatedTS", "UpdatedTS",
	"Status", "DependsOn", "ContextLen", "MaxCtxLen", "Hash", "MDContent",
)
METADATA_ROWS = len(FIELD_LABELS)

PLAN_FILE = "PLAN.md"
AGENTS_FILE = "AGENTS.md"
PROTECTED_FILES = frozenset({PLAN_FILE})
DEFAULT_PATH_PREFIX = "/opt/agentscape/"


def now_iso() -> str:
	return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def estimate_context_len(content: str) -> int:
	"""Rough token estimate used by the ContextLen formula."""
	return len(content) // 4


def content_hash(content: str) -> str:
	"""SHA-256 fingerprint used by the Hash formula; empty for empty content."""
	if not content:
		return ""
	return hashlib.sha256(content.encode("utf-8")).hexdigest()


class FileStatus(str, Enum):
	"""Lifecycle state of a stored file."""
	ACTIVE = "active"
	ARCHIVED = "archived"
	DEPRECATED = "deprecated"


class StoredFile(BaseModel):
	"""A named markdown file with metadata, stored in one column."""
	name: str = Field(description="Unique file name (row 1)")
	description: str = Field(default="", description="Short summary (row 2)")
	tags: str = Field(default="", description="Comma-separated tags (row 3)")
	path: str = Field(default="", description="Virtual path (row 4)")
	created_ts: str = Field(default="", description="Creation timestamp, set once (row 5)")
	updated_ts: str = Field(default="", description="Last modification timestamp (row 6)")
	status: Union[FileStatus, str] = Field(default=FileStatus.ACTIVE, description="Lifecycle state (row 7)")
	depends_on: str = Field(default="", description="Name of another file, or empty (row 8)")
	context_len: str = Field(default="", description="Derived token estimate (row 9)")
	max_ctx_len: str = Field(default="", description="Optional token budget (row 10)")
	hash: str = Field(default="", description="Derived content fingerprint (row 11)")
	content: str = Field(default="", description="Markdown content (row 12)")

	def model_post_init(self, __context) -> None:
		if not self.path and self.name:
			self.path = f"{DEFAULT_PATH_PREFIX}{self.name}"

	@property
	def status_value(self) -> str:
		return self.status.value if isinstance(self.status, FileStatus) else str(self.status)

	@property
	def is_protected(self) -> bool:
		return self.name in PROTECTED_FILES

	def header(self) -> "StoredFile":
		"""Copy without content, as returned by list_files."""
		return self.model_copy(update={"content": ""})

	def with_derived_fields(self) -> "StoredFile":
		"""Copy with context_len and hash computed from the content."""
		return self.model_copy(update={
			"context_len": str(estimate_context_len(self.content)),
			"hash": content_hash(self.content),
		})


def parse_status(value: str) -> Union[FileStatus, str]:
	"""Known statuses become FileStatus; anything else is kept verbatim."""
	text = (value or "").strip().lower()
	if not text:
		return FileStatus.ACTIVE
	try:
		return FileStatus(text)
	except ValueError:
		return value.strip()


class InitAction(str, Enum):
	"""Outcome of store initialization."""
	CREATED = "created"
	FIXED = "fixed"
	ALREADY_VALID = "already_valid"


class InitResult(BaseModel):
	"""Report returned by FileStore.init()."""
	success: bool = False
	action: InitAction = InitAction.CREATED
	files_found: int = 0
	file_names: list[str] = Field(default_factory=list)
	errors: list[str] = Field(default_factory=list)
	warnings: list[str] = Field(default_factory=list)

	def to_text(self) -> str:
		lines = ["=" * 60, "AGENTSCAPE Initialization", "=" * 60, ""]
		if not self.success:
			lines.append("Status: Failed to initialize AGENTSCAPE")
		elif self.action == InitAction.ALREADY_VALID:
			lines.append("Status: AGENTSCAPE already has valid structure")
		elif self.action == InitAction.CREATED:
			lines.append("Status: AGENTSCAPE sheet created successfully")
		else:
			lines.append("Status: AGENTSCAPE structure fixed successfully")
		lines.append("")
		lines.append(f"Action: {self.action.value}")
		lines.append(f"Files found/created: {self.files_found}")
		for title, items in (("Files", self.file_names), ("Errors", self.errors), ("Warnings", self.warnings)):
			if items:
				lines.extend(["", f"{title}:", "-" * 60])
				lines.extend(f"  {item}" for item in items)
		lines.extend(["", "=" * 60])
		return "\n".join(lines)


class SlotReport(BaseModel):
	"""One file column as seen by validate()."""
	column: str
	name: str
	description: str = ""
	content_length: int = 0


class ValidationReport(BaseModel):
	"""Report returned by FileStore.validate()."""
	valid: bool = True
	errors: list[str] = Field(default_factory=list)
	warnings: list[str] = Field(default_factory=list)
	labels: list[str] = Field(default_factory=list)
	files: list[SlotReport] = Field(default_factory=list)


class MigrationResult(BaseModel):
	"""Report returned by migrate_legacy()."""
	migrated: bool = False
	agents_length: int = 0
	plan_length: int = 0
	message: str = ""
