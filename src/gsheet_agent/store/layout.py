"""
Layout of the AGENTSCAPE tab and conversion between cells and StoredFile.

Three historical layouts exist. The generation is detected once, when the
store initializes; the read/write paths only ever handle the current one.

* COLUMNS - labels in column A rows 1-12, one file per column from B (current)
* ROWS    - labels in row 1 columns A-L, one file per row (older)
* LEGACY  - an AGENT_BASE tab with the identity text in A2 and the plan in B2
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence

from ..core.cells import Cell, CellKind, cell_text, column_index_to_letter, quote_sheet_name
from ..core.sheet_client import SheetInfo
from .models import (
	AGENTS_FILE,
	AGENTSCAPE_SHEET,
	DEFAULT_PATH_PREFIX,
	FIELD_LABELS,
	METADATA_ROWS,
	PLAN_FILE,
	FileStatus,
	StoredFile,
	content_hash,
	estimate_context_len,
	parse_status,
)

LEGACY_SHEET = "AGENT_BASE"
LEGACY_AGENTS_MARKER = "AGENT.md Contents"
LEGACY_PLAN_MARKER = "PLAN.md Contents"

# Row 1 names that look like documents worth salvaging
SALVAGE_KEYWORDS = ("PLAN", "WORKFLOW", "AGENTS", "HISTORY", "COORDINATOR")

CONTENT_ROW = METADATA_ROWS  # 1-based row of MDContent

# Values Sheets shows when a formula fails to evaluate
SHEET_ERRORS = frozenset({"#NULL!", "#DIV/0!", "#VALUE!", "#REF!", "#NAME?", "#NUM!", "#N/A", "#ERROR!"})


class LayoutGeneration(str, Enum):
	COLUMNS = "columns"
	ROWS = "rows"
	LEGACY = "legacy"
	MISSING = "missing"
	UNKNOWN = "unknown"


@dataclass(frozen=True)
class StoreLayout:
	"""The layout found in a spreadsheet, resolved once at init."""
	generation: LayoutGeneration
	sheet: Optional[SheetInfo] = None
	legacy_sheet: Optional[SheetInfo] = None

	@property
	def is_valid(self) -> bool:
		return self.generation == LayoutGeneration.COLUMNS


def column_labels_match(block: Sequence[Sequence[Any]]) -> bool:
	"""True when column A rows 1-12 hold exactly the expected labels."""
	if len(block) < METADATA_ROWS:
		return False
	return all(cell_text(block[i], 0).strip() == FIELD_LABELS[i] for i in range(METADATA_ROWS))


def row_labels_match(block: Sequence[Sequence[Any]]) -> bool:
	"""True when row 1 holds the labels across columns A-L."""
	if not block:
		return False
	header = block[0]
	return all(cell_text(header, i).strip() == FIELD_LABELS[i] for i in range(METADATA_ROWS))


def detect_layout(
	sheets: Sequence[SheetInfo],
	block: Sequence[Sequence[Any]],
	sheet_name: str = AGENTSCAPE_SHEET,
) -> StoreLayout:
	"""
	Classify the spreadsheet's store layout.

	Args:
		sheets: All tabs in the spreadsheet
		block: Values of the store tab (empty when the tab is absent)
		sheet_name: Name of the store tab
	"""
	by_name = {s.title.lower(): s for s in sheets}
	store_sheet = by_name.get(sheet_name.lower())
	legacy_sheet = by_name.get(LEGACY_SHEET.lower())

	if store_sheet is None:
		if legacy_sheet is not None:
			return StoreLayout(LayoutGeneration.LEGACY, legacy_sheet=legacy_sheet)
		return StoreLayout(LayoutGeneration.MISSING)
	if column_labels_match(block):
		return StoreLayout(LayoutGeneration.COLUMNS, store_sheet)
	if row_labels_match(block):
		return StoreLayout(LayoutGeneration.ROWS, store_sheet)
	return StoreLayout(LayoutGeneration.UNKNOWN, store_sheet)


# -- ranges --

def column_slot_range(sheet_name: str, column_index: int) -> str:
	"""A1 range covering one file column, e.g. AGENTSCAPE!C1:C12."""
	letter = column_index_to_letter(column_index)
	return f"{quote_sheet_name(sheet_name)}!{letter}1:{letter}{METADATA_ROWS}"


def context_len_formula(column_index: int) -> str:
	return f"=INT(LEN({column_index_to_letter(column_index)}{CONTENT_ROW})/4)"


def hash_formula(column_index: int) -> str:
	cell = f"{column_index_to_letter(column_index)}{CONTENT_ROW}"
	return f'=IF({cell}="","",SHA256({cell}))'


# -- decoding --

def _derived(raw: str, computed: str, content: str) -> str:
	"""Use the sheet's computed value unless it came back unevaluated or as an error."""
	cell = Cell.from_raw(raw)
	if cell.kind == CellKind.FORMULA or (cell.is_empty and content):
		return computed
	if cell.kind == CellKind.TEXT and cell.value.strip() in SHEET_ERRORS:
		return computed
	return cell.as_text()


def file_from_values(values: Sequence[Any]) -> StoredFile:
	"""Build a StoredFile from the 12 field values in label order."""
	text = [cell_text(values, i) for i in range(METADATA_ROWS)]
	content = text[11]
	return StoredFile(
		name=text[0].strip(),
		description=text[1],
		tags=text[2],
		path=text[3],
		created_ts=text[4],
		updated_ts=text[5],
		status=parse_status(text[6]),
		depends_on=text[7],
		context_len=_derived(values[8] if len(values) > 8 else "", str(estimate_context_len(content)), content),
		max_ctx_len=text[9],
		hash=_derived(values[10] if len(values) > 10 else "", content_hash(content), content),
		content=content,
	)


def column_values(block: Sequence[Sequence[Any]], column_index: int) -> list[Any]:
	"""The 12 metadata cells of one column (missing cells become '')."""
	values = []
	for row_index in range(METADATA_ROWS):
		row = block[row_index] if row_index < len(block) else []
		values.append(row[column_index] if column_index < len(row) else "")
	return values


def slot_names(block: Sequence[Sequence[Any]]) -> list[tuple[int, str]]:
	"""(column index, file name) for every populated slot after column A."""
	if not block:
		return []
	first = block[0]
	names = []
	for col in range(1, len(first)):
		name = cell_text(first, col).strip()
		if name:
			names.append((col, name))
	return names


def find_slot(block: Sequence[Sequence[Any]], name: str) -> Optional[int]:
	for col, slot_name in slot_names(block):
		if slot_name == name:
			return col
	return None


def next_free_column(block: Sequence[Sequence[Any]]) -> int:
	"""Index of the first column after the last used one in row 1."""
	if not block or not block[0]:
		return 1
	last = 0
	for col, _ in slot_names(block):
		last = max(last, col)
	return last + 1


# -- encoding --

def as_literal(value: Any) -> Any:
	"""
	Force text to stay text under USER_ENTERED.

	Sheets drops a leading apostrophe and stores the rest verbatim, so "0012",
	"=x" or "2024-06-01" are not turned into numbers, formulas or dates.
	"""
	if isinstance(value, str) and value:
		return f"'{value}"
	return value


def encode_slot(file: StoredFile, column_index: int, literal: bool = True) -> list[list[Any]]:
	"""
	Column values for a file; derived fields become live formulas.

	With ``literal`` the user fields are escaped for a USER_ENTERED write.
	RAW writes pass ``literal=False``.
	"""
	text = as_literal if literal else (lambda value: value)
	values = [
		text(file.name),
		text(file.description),
		text(file.tags),
		text(file.path or f"{DEFAULT_PATH_PREFIX}{file.name}"),
		text(file.created_ts),
		text(file.updated_ts),
		text(file.status_value),
		text(file.depends_on),
		context_len_formula(column_index),
		text(file.max_ctx_len),
		hash_formula(column_index),
		text(file.content),
	]
	return [[value] for value in values]


def encode_block(files: Sequence[StoredFile]) -> list[list[Any]]:
	"""The full canonical block for a RAW write: labels in column A, files from column B."""
	rows: list[list[Any]] = [[label] for label in FIELD_LABELS]
	for offset, file in enumerate(files):
		for row_index, (value,) in enumerate(encode_slot(file, offset + 1, literal=False)):
			rows[row_index].append(value)
	return rows


# -- salvage --

def looks_like_document(name: str) -> bool:
	return name.endswith(".md") or any(keyword in name for keyword in SALVAGE_KEYWORDS)


def _salvaged(values: Sequence[Any], now: str, any_name: bool = False) -> Optional[StoredFile]:
	raw_name = values[0] if values else None
	if not isinstance(raw_name, str) or not raw_name.strip():
		return None
	name = raw_name.strip()
	if name in FIELD_LABELS or not (any_name or looks_like_document(name)):
		return None
	if not any_name and not name.endswith(".md"):
		name = f"{name}.md"

	file = file_from_values(values)
	if any_name:
		# Valid column slots are carried over untouched apart from blank stamps
		return file.model_copy(update={
			"path": file.path or f"{DEFAULT_PATH_PREFIX}{name}",
			"created_ts": file.created_ts or now,
			"updated_ts": file.updated_ts or now,
		})
	return file.model_copy(update={
		"name": name,
		"path": cell_text(values, 3).strip() or f"{DEFAULT_PATH_PREFIX}{name}",
		"created_ts": file.created_ts.strip() or now,
		"updated_ts": file.updated_ts.strip() or now,
		"content": file.content.strip(),
	})


def salvage_files(
	block: Sequence[Sequence[Any]],
	generation: LayoutGeneration,
	now: str,
) -> list[StoredFile]:
	"""
	Recover files from a block with a broken or older layout.

	Row-generation blocks are read one file per row; anything else is read
	one file per column.
	"""
	files: list[StoredFile] = []
	seen: set[str] = set()

	if generation == LayoutGeneration.ROWS:
		candidates = [list(row) for row in block[1:]]
	else:
		width = max((len(row) for row in block), default=0)
		candidates = [column_values(block, col) for col in range(1, width)]

	for values in candidates:
		file = _salvaged(values, now, any_name=generation == LayoutGeneration.COLUMNS)
		if file and file.name not in seen:
			seen.add(file.name)
			files.append(file)
	return files


DEFAULT_AGENTS_CONTENT = """# Agent Context

You are an AI agent with access to a Google Sheets workspace.

## Core Tools
- read, write, append, search operations
- Planning system (get_plan, create_plan, task management)
- Working memory in the plan's Notes section

See documentation for full details."""

STARTER_PLAN_CONTENT = """# Plan: Getting Started

Goal: Learn the sheet agent system and complete first task

## Analysis

- Spreadsheet: [Your spreadsheet]
- Key sheets: [To be determined]
- Target ranges:
  - Read: [Ranges to be determined]
  - Write: [Ranges to be determined]
- Current state: Agent initialized, ready for first task

## Questions for User

- What spreadsheet task would you like to accomplish?
- Which sheets contain the data you want to work with?

### Phase 1: Orientation
- [ ] 1.1 List all sheets in the spreadsheet
- [ ] 1.2 Read headers from main sheet to understand structure
- [ ] 1.3 Confirm user's goal and create detailed plan

### Phase 2: Execution
- [ ] 2.1 Execute the planned task
- [ ] 2.2 Verify results with user
- [ ] 2.3 Complete and log the work

## Notes

This is a starter plan. Once the goal is confirmed, replace it with a detailed plan."""


def default_files(now: str) -> list[StoredFile]:
	"""The identity document and starter plan for an empty store."""
	return [
		StoredFile(
			name=AGENTS_FILE,
			description="Core agent identity and capabilities.",
			tags="system,context",
			created_ts=now,
			updated_ts=now,
			status=FileStatus.ACTIVE,
			content=DEFAULT_AGENTS_CONTENT,
		),
		StoredFile(
			name=PLAN_FILE,
			description="Active execution plan with phased tasks.",
			tags="agent,plan",
			created_ts=now,
			updated_ts=now,
			status=FileStatus.ACTIVE,
			depends_on=AGENTS_FILE,
			content=STARTER_PLAN_CONTENT,
		),
	]
