"""
File Store - named markdown files kept in the AGENTSCAPE tab.

Features:
- One column per file, metadata in rows 1-12
- Single-range writes per file (one values.update call)
- Repair of broken or older layouts (init)
- Structure checks (validate)
"""

import logging
from typing import Any, Optional

from ..core.cells import cell_text, column_index_to_letter, quote_sheet_name
from ..core.sheet_client import SheetClient, SheetInfo
from ..errors import ValidationError
from .layout import (
	LayoutGeneration,
	StoreLayout,
	column_labels_match,
	column_slot_range,
	column_values,
	default_files,
	detect_layout,
	encode_block,
	encode_slot,
	file_from_values,
	find_slot,
	next_free_column,
	salvage_files,
	slot_names,
)
from .migration import migrate_legacy
from .models import (
	AGENTS_FILE,
	AGENTSCAPE_SHEET,
	FIELD_LABELS,
	METADATA_ROWS,
	PLAN_FILE,
	PROTECTED_FILES,
	InitAction,
	InitResult,
	MigrationResult,
	SlotReport,
	StoredFile,
	ValidationReport,
	now_iso,
)

logger = logging.getLogger(__name__)

DEFAULT_GRID_ROWS = 1000
DEFAULT_GRID_COLUMNS = 26


class FileStore:
	"""
	Virtual file system over one spreadsheet tab.

	Usage:
		store = FileStore(client)
		await store.connect()

		await store.write_file(StoredFile(name="NOTES.md", content="# Notes"))
		notes = await store.read_file("NOTES.md")
	"""

	def __init__(
		self,
		client: SheetClient,
		sheet_name: str = AGENTSCAPE_SHEET,
		protected: frozenset[str] = PROTECTED_FILES,
	):
		self.client = client
		self.sheet_name = sheet_name
		self.protected = frozenset(protected)
		self.layout: Optional[StoreLayout] = None
		self.migration: Optional[MigrationResult] = None

	async def connect(self) -> InitResult:
		"""Migrate a legacy layout if one exists, then make sure the tab is valid."""
		self.migration = await migrate_legacy(self.client, self)
		return await self.init()

	# -- reading --

	async def _load(self) -> tuple[list[SheetInfo], Optional[SheetInfo], list[list[Any]]]:
		"""All tabs, the store tab (if present), and the store tab's values."""
		sheets = await self.client.list_sheets()
		sheet = next((s for s in sheets if s.title.lower() == self.sheet_name.lower()), None)
		if sheet is None:
			return sheets, None, []
		block = await self.client.get_values(quote_sheet_name(sheet.title))
		return sheets, sheet, block

	async def list_files(self) -> list[StoredFile]:
		"""Metadata for every file, without content."""
		_, sheet, block = await self._load()
		if sheet is None or not column_labels_match(block):
			return []
		return [
			file_from_values(column_values(block, col)).header()
			for col, _ in slot_names(block)
		]

	async def read_file(self, name: str) -> Optional[StoredFile]:
		"""Read one file with its content, or None when it does not exist."""
		name = self._require_name(name)
		_, sheet, block = await self._load()
		if sheet is None:
			return None
		col = find_slot(block, name)
		if col is None:
			return None
		return file_from_values(column_values(block, col))

	# -- writing --

	async def write_file(self, file: StoredFile) -> StoredFile:
		"""
		Create or replace a file.

		An existing file keeps its CreatedTS; UpdatedTS is always set to now.
		New files go into the first free column, growing the grid if needed.

		Returns:
			The file as written, with derived fields computed
		"""
		name = self._require_name(file.name)
		_, sheet, block = await self._load()
		if sheet is None or not column_labels_match(block):
			await self.init()
			_, sheet, block = await self._load()

		now = now_iso()
		col = find_slot(block, name)
		if col is not None:
			existing = file_from_values(column_values(block, col))
			created = existing.created_ts or now
		else:
			created = file.created_ts or now
			col = next_free_column(block)
			await self._ensure_columns(sheet, col + 1)

		stored = file.model_copy(update={
			"name": name,
			"created_ts": created,
			"updated_ts": now,
		}).with_derived_fields()

		await self.client.update_values(
			column_slot_range(self.sheet_name, col),
			encode_slot(stored, col),
			value_input_option="USER_ENTERED",
		)
		logger.info(f"Wrote {name} to {self.sheet_name} column {column_index_to_letter(col)}")
		return stored

	async def delete_file(self, name: str) -> bool:
		"""
		Remove a file's column.

		Returns:
			True when a file was removed, False when it did not exist

		Raises:
			ValidationError: If the file is protected
		"""
		name = self._require_name(name)
		if name in self.protected:
			raise ValidationError(
				f"Cannot delete protected file '{name}'",
				fix=f"{name} is required by the agent. Overwrite it with write_file() instead.",
			)

		_, sheet, block = await self._load()
		if sheet is None:
			return False
		col = find_slot(block, name)
		if col is None:
			return False

		await self.client.batch_update([{
			"deleteDimension": {
				"range": {
					"sheetId": sheet.sheet_id,
					"dimension": "COLUMNS",
					"startIndex": col,
					"endIndex": col + 1,
				}
			}
		}])
		logger.info(f"Deleted {name} from {self.sheet_name}")
		return True

	async def _ensure_columns(self, sheet: SheetInfo, needed: int) -> None:
		if sheet.column_count >= needed:
			return
		await self.client.batch_update([{
			"appendDimension": {
				"sheetId": sheet.sheet_id,
				"dimension": "COLUMNS",
				"length": needed - sheet.column_count,
			}
		}])
		sheet.column_count = needed

	def _require_name(self, name: str) -> str:
		if not isinstance(name, str) or not name.strip():
			raise ValidationError(
				"File name is required",
				details=["name must be a non-empty string"],
				fix="Pass a file name such as 'NOTES.md'.",
			)
		return name.strip()

	# -- structure --

	async def init(self, force: bool = False, dry_run: bool = False) -> InitResult:
		"""
		Create the store tab or repair its layout.

		Args:
			force: Rewrite the block even when the layout is already valid
			dry_run: Report what would happen without writing

		Returns:
			InitResult describing the action taken
		"""
		result = InitResult()
		sheets, sheet, block = await self._load()
		self.layout = detect_layout(sheets, block, self.sheet_name)

		if self.layout.is_valid and not force:
			names = [name for _, name in slot_names(block)]
			result.success = True
			result.action = InitAction.ALREADY_VALID
			result.files_found = len(names)
			result.file_names = names
			return result

		result.action = InitAction.CREATED if sheet is None else InitAction.FIXED
		if self.layout.generation == LayoutGeneration.UNKNOWN:
			result.warnings.append(f"{self.sheet_name} labels did not match; salvaging what looks like files")

		now = now_iso()
		files = salvage_files(block, self.layout.generation, now)
		if not files:
			result.warnings.append("No salvageable files found; creating default AGENTS.md and PLAN.md")
		files = self._with_required_files(files, now)

		result.files_found = len(files)
		result.file_names = [f"{f.name} ({len(f.content)} chars)" for f in files]

		if dry_run:
			result.success = True
			result.warnings.append("Dry run: no changes written")
			return result

		if sheet is None:
			sheet = await self._create_sheet(len(files) + 1)
		else:
			await self._ensure_columns(sheet, len(files) + 1)
			await self.client.clear_values(quote_sheet_name(sheet.title))

		await self.client.update_values(
			f"{quote_sheet_name(self.sheet_name)}!A1",
			encode_block(files),
			value_input_option="RAW",
		)
		self.layout = StoreLayout(LayoutGeneration.COLUMNS, sheet)
		result.success = True
		logger.info(f"{self.sheet_name} {result.action.value} with {len(files)} files")
		return result

	def _with_required_files(self, files: list[StoredFile], now: str) -> list[StoredFile]:
		"""AGENTS.md first, PLAN.md second, then the rest in salvage order."""
		defaults = {f.name: f for f in default_files(now)}
		by_name = {f.name: f for f in files}
		ordered = [by_name.get(AGENTS_FILE) or defaults[AGENTS_FILE], by_name.get(PLAN_FILE) or defaults[PLAN_FILE]]
		ordered.extend(f for f in files if f.name not in (AGENTS_FILE, PLAN_FILE))
		return ordered

	async def _create_sheet(self, columns: int) -> SheetInfo:
		response = await self.client.batch_update([{
			"addSheet": {
				"properties": {
					"title": self.sheet_name,
					"gridProperties": {
						"rowCount": DEFAULT_GRID_ROWS,
						"columnCount": max(DEFAULT_GRID_COLUMNS, columns),
					},
				}
			}
		}])
		props = response.get("replies", [{}])[0].get("addSheet", {}).get("properties", {})
		grid = props.get("gridProperties", {})
		logger.info(f"Created sheet {self.sheet_name}")
		return SheetInfo(
			title=props.get("title", self.sheet_name),
			sheet_id=props.get("sheetId", 0),
			row_count=grid.get("rowCount", DEFAULT_GRID_ROWS),
			column_count=grid.get("columnCount", max(DEFAULT_GRID_COLUMNS, columns)),
		)

	async def validate(self) -> ValidationReport:
		"""Check the tab against the column layout and report problems."""
		report = ValidationReport()
		_, sheet, block = await self._load()

		if sheet is None:
			report.valid = False
			report.errors.append(f"{self.sheet_name} sheet does not exist")
			return report
		if not block:
			report.valid = False
			report.errors.append(f"{self.sheet_name} sheet is empty")
			return report

		labels = [cell_text(block[i], 0).strip() if i < len(block) else "" for i in range(METADATA_ROWS)]
		report.labels = labels
		for i, expected in enumerate(FIELD_LABELS):
			if labels[i] != expected:
				report.valid = False
				report.errors.append(
					f'Column A row {i + 1}: Expected "{expected}", got "{labels[i] or "(empty)"}"'
				)

		for row_index in range(METADATA_ROWS, len(block)):
			row = block[row_index]
			if row and str(row[0]).strip():
				report.warnings.append(
					f'Column A row {row_index + 1}: Unexpected data "{str(row[0]).strip()}". '
					f"Labels belong in rows 1-{METADATA_ROWS}."
				)

		for col, name in slot_names(block):
			letter = column_index_to_letter(col)
			if name in FIELD_LABELS:
				report.warnings.append(f'Column {letter}: Row 1 contains label "{name}". Files should have filenames here.')
				continue

			file = file_from_values(column_values(block, col))
			report.files.append(SlotReport(
				column=letter,
				name=name,
				description=file.description.strip(),
				content_length=len(file.content.strip()),
			))

			if not name.endswith(".md"):
				report.warnings.append(f'Column {letter}: Filename "{name}" doesn\'t end with .md')
			if not file.description.strip():
				report.warnings.append(f"Column {letter} ({name}): Missing description (row 2)")
			if not file.content.strip():
				report.warnings.append(f"Column {letter} ({name}): Missing content (row {METADATA_ROWS})")
			if any(
				col < len(block[row_index]) and str(block[row_index][col]).strip()
				for row_index in range(METADATA_ROWS, len(block))
			):
				report.warnings.append(
					f"Column {letter} ({name}): Unexpected data below row {METADATA_ROWS}."
				)

		self._check_required(report, AGENTS_FILE, "B")
		self._check_required(report, PLAN_FILE, "C")
		return report

	def _check_required(self, report: ValidationReport, name: str, expected_column: str) -> None:
		slot = next((f for f in report.files if f.name == name), None)
		if slot is None:
			report.valid = False
			report.errors.append(f"Missing required file: {name} (should be in column {expected_column})")
		elif slot.column != expected_column:
			report.warnings.append(f"{name} found in column {slot.column}, expected column {expected_column}")
