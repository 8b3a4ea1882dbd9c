"""
SheetAgent - library entry point.

Bundles a SheetClient, the AGENTSCAPE file store and the plan manager
behind one object, plus generic read/write access to any tab.

Usage:
	agent = await SheetAgent.connect("1AbC...", key_file="service-account.json")

	data = await agent.read("Roster", "A1:F50")
	await agent.write("Roster", [{"name": "Ada", "grade": 5}], range="A1")

	task = await agent.get_next_task()
"""

import logging
from pathlib import Path
from typing import Any, Literal, Optional, Sequence, Union

from pydantic import BaseModel, Field

from .config import Config
from .core.cells import (
	Grid,
	Matching,
	Operator,
	header_names,
	is_valid_a1_range,
	matches_query,
	prepare_write_data,
	rows_to_dicts,
	sheet_range,
)
from .core.retry import RetryConfig
from .core.sheet_client import ServiceAccountInfo, SheetClient
from .errors import ValidationError
from .logging_config import setup_logging
from .plans.manager import PlanManager
from .plans.models import PhaseInput, Plan, Task, TaskUpdate
from .store.file_store import FileStore
from .store.models import AGENTS_FILE, InitResult, MigrationResult, StoredFile

logger = logging.getLogger(__name__)

SheetRef = Union[str, int]
Format = Literal["object", "array"]


class SheetData(BaseModel):
	"""Result of a read."""
	rows: list[Any] = Field(default_factory=list)
	headers: list[str] = Field(default_factory=list)
	range: str = ""


class BatchReadQuery(BaseModel):
	"""One range in a batch read."""
	sheet: SheetRef
	range: Optional[str] = None
	format: Format = "object"


class WriteResult(BaseModel):
	updated_rows: int = 0
	updated_columns: int = 0
	updated_cells: int = 0
	updated_range: str = ""


class SearchResult(BaseModel):
	rows: list[dict[str, Any]] = Field(default_factory=list)
	matched_count: int = 0
	searched_count: int = 0


def _invalid(field: str, expected: str, received: Any) -> ValidationError:
	return ValidationError(
		f"{field} is required" if received is None else f"{field} is invalid",
		details=[f"{field}: Expected {expected}, received {received!r}"],
	)


class SheetAgent:
	"""Spreadsheet access, file store and plan tracking for one spreadsheet."""

	def __init__(self, client: SheetClient, store: Optional[FileStore] = None):
		self.client = client
		self.store = store or FileStore(client)
		self.plans = PlanManager(self.store)
		self.migration: Optional[MigrationResult] = None
		self.init_result: Optional[InitResult] = None
		self._system = ""

	@classmethod
	async def connect(
		cls,
		spreadsheet_id: Optional[str] = None,
		credentials: Union[ServiceAccountInfo, dict, None] = None,
		key_file: Union[str, Path, None] = None,
		retry: Optional[RetryConfig] = None,
		config: Optional[Config] = None,
		client: Optional[SheetClient] = None,
	) -> "SheetAgent":
		"""
		Authenticate, migrate any legacy layout, initialize the store and
		load the system prompt from AGENTS.md.

		Args:
			spreadsheet_id: Target spreadsheet; falls back to config
			credentials: In-memory service account key
			key_file: Path to a service account key file; falls back to config
			retry: Retry settings; falls back to config, then defaults
			config: Loaded configuration (optional); also sets up logging from its
				log_level and log_dir
			client: Pre-built client, used as-is
		"""
		if config is not None:
			setup_logging(level=config.log_level, log_dir=config.log_dir)

		if client is None:
			spreadsheet_id = spreadsheet_id or (config.spreadsheet_id if config else "")
			if not spreadsheet_id:
				raise _invalid("spreadsheet_id", "non-empty string", spreadsheet_id or None)
			client = SheetClient(
				spreadsheet_id,
				credentials=credentials,
				key_file=key_file or (config.credentials_file if config else None),
				retry=retry or (config.retry_config() if config else None),
				credentials_env=config.credentials_env if config else "CREDENTIALS_CONFIG",
			)

		agent = cls(client)
		await client.get_client()
		agent.init_result = await agent.store.connect()
		agent.migration = agent.store.migration
		await agent.reload_system()
		logger.info(f"Connected to spreadsheet {client.spreadsheet_id}")
		return agent

	@property
	def system(self) -> str:
		"""AGENTS.md content as of connect (or the last reload_system)."""
		return self._system

	async def reload_system(self) -> str:
		file = await self.store.read_file(AGENTS_FILE)
		self._system = file.content if file else ""
		return self._system

	# -- ranges --

	async def _sheet_name(self, sheet: SheetRef) -> str:
		if isinstance(sheet, bool) or sheet is None or sheet == "":
			raise _invalid("sheet", "string or number", sheet if sheet != "" else None)
		if isinstance(sheet, int):
			sheets = await self.client.list_sheets()
			if sheet < 0 or sheet >= len(sheets):
				raise ValidationError(f"Sheet index out of range: {sheet}", details=[f"spreadsheet has {len(sheets)} sheets"])
			return sheets[sheet].title
		return sheet

	async def _range(self, sheet: SheetRef, range_str: Optional[str] = None) -> str:
		name = await self._sheet_name(sheet)
		if range_str is not None and not is_valid_a1_range(range_str):
			raise ValidationError(
				f"Invalid range '{range_str}'",
				details=[f"range: Expected A1 notation such as 'A1:C10', received {range_str!r}"],
				fix="Use A1 notation such as 'A1:C10', 'A:C' or '2:5'.",
			)
		return sheet_range(name, range_str)

	@staticmethod
	def _shape(values: Grid, returned_range: str, format: Format, headers: Union[list[str], bool, None]) -> SheetData:
		if not values:
			return SheetData(range=returned_range)
		if format == "array":
			return SheetData(rows=values, range=returned_range)

		if isinstance(headers, list):
			names, data_rows = list(headers), values
		elif headers is False:
			names, data_rows = [f"col{i}" for i in range(len(values[0]))], values
		else:
			names, data_rows = header_names(values[0]), values[1:]
		return SheetData(rows=rows_to_dicts(data_rows, names), headers=names, range=returned_range)

	# -- generic tab access --

	async def read(
		self,
		sheet: SheetRef,
		range: Optional[str] = None,
		format: Format = "object",
		headers: Union[list[str], bool, None] = True,
	) -> SheetData:
		"""
		Read a tab or a range of it.

		Args:
			sheet: Tab name, or 0-based tab index
			range: A1 range without the sheet prefix; whole tab when omitted
			format: "object" for header-keyed dicts, "array" for raw rows
			headers: True to use the first row, a list to supply names,
				False for col0, col1, ... keys
		"""
		target = await self._range(sheet, range)
		values = await self.client.get_values(target)
		return self._shape(values, target, format, headers)

	async def batch_read(self, queries: Sequence[BatchReadQuery]) -> list[SheetData]:
		"""Read several ranges in one call. Results keep the query order."""
		if not queries:
			raise ValidationError(
				"queries is required and must not be empty",
				details=["queries: Expected non-empty list of read queries"],
			)
		ranges = [await self._range(q.sheet, q.range) for q in queries]
		value_ranges = await self.client.batch_get_values(ranges)

		results = []
		for index, query in enumerate(queries):
			value_range = value_ranges[index] if index < len(value_ranges) else {}
			results.append(self._shape(
				value_range.get("values", []),
				value_range.get("range", ranges[index]),
				query.format,
				True,
			))
		return results

	async def write(
		self,
		sheet: SheetRef,
		data: Union[Grid, list[dict[str, Any]]],
		range: Optional[str] = None,
		headers: Union[list[str], bool, None] = None,
	) -> WriteResult:
		"""Write rows or records. Records get a header row unless headers=False."""
		if data is None or not isinstance(data, list):
			raise _invalid("data", "list of rows or records", data)
		target = await self._range(sheet, range)
		values = prepare_write_data(data, headers)
		response = await self.client.update_values(target, values)
		return WriteResult(
			updated_rows=response.get("updatedRows", 0),
			updated_columns=response.get("updatedColumns", 0),
			updated_cells=response.get("updatedCells", 0),
			updated_range=response.get("updatedRange", target),
		)

	async def search(
		self,
		sheet: SheetRef,
		query: dict[str, Any],
		operator: Operator = "and",
		matching: Matching = "strict",
	) -> SearchResult:
		"""Rows of a tab (first row as headers) that match every/any condition."""
		if not query or not isinstance(query, dict):
			raise _invalid("query", "object with search criteria", query or None)
		if operator not in ("and", "or"):
			raise _invalid("operator", "'and' or 'or'", operator)
		if matching not in ("strict", "loose"):
			raise _invalid("matching", "'strict' or 'loose'", matching)

		data = await self.read(sheet)
		matched = [row for row in data.rows if matches_query(row, query, operator, matching)]
		return SearchResult(rows=matched, matched_count=len(matched), searched_count=len(data.rows))

	async def clear(self, sheet: SheetRef, range: str) -> str:
		"""Clear values in a range. Returns the cleared range."""
		if not range:
			raise _invalid("range", "A1 range", None)
		target = await self._range(sheet, range)
		response = await self.client.clear_values(target)
		return response.get("clearedRange", target)

	async def delete_rows(self, sheet: SheetRef, start_row: int, end_row: Optional[int] = None) -> int:
		"""
		Delete rows start_row..end_row (1-based, inclusive).

		Returns:
			Number of rows deleted
		"""
		if isinstance(start_row, bool) or not isinstance(start_row, int) or start_row < 1:
			raise _invalid("start_row", "positive number (1-indexed)", start_row)
		if end_row is not None and (not isinstance(end_row, int) or end_row < start_row):
			raise _invalid("end_row", f"number >= {start_row}", end_row)

		name = await self._sheet_name(sheet)
		info = await self.client.find_sheet(name)
		if info is None:
			raise ValidationError(f"Sheet not found: {name}", fix="Check the tab name with list_sheets().")

		start_index = start_row - 1
		end_index = end_row if end_row is not None else start_row
		await self.client.batch_update([{
			"deleteDimension": {
				"range": {
					"sheetId": info.sheet_id,
					"dimension": "ROWS",
					"startIndex": start_index,
					"endIndex": end_index,
				}
			}
		}])
		return end_index - start_index

	async def list_sheets(self) -> list[str]:
		return [sheet.title for sheet in await self.client.list_sheets()]

	async def create_sheet(self, title: str) -> dict:
		"""Add a tab. Returns its sheet_id and title."""
		if not isinstance(title, str) or not title.strip():
			raise _invalid("title", "non-empty string", title or None)
		response = await self.client.batch_update([{"addSheet": {"properties": {"title": title}}}])
		props = response.get("replies", [{}])[0].get("addSheet", {}).get("properties", {})
		if "sheetId" not in props:
			raise ValidationError("Failed to create sheet", details=["No sheet properties returned from API"])
		return {"sheet_id": props["sheetId"], "title": props.get("title", title)}

	# -- files --

	async def list_files(self) -> list[StoredFile]:
		return await self.store.list_files()

	async def read_file(self, name: str) -> Optional[StoredFile]:
		return await self.store.read_file(name)

	async def write_file(self, file: StoredFile) -> StoredFile:
		written = await self.store.write_file(file)
		if written.name == AGENTS_FILE:
			self._system = written.content
		return written

	async def delete_file(self, name: str) -> bool:
		return await self.store.delete_file(name)

	# -- plan --

	async def get_plan(self) -> Optional[Plan]:
		return await self.plans.get_plan()

	async def create_plan(self, title: str, goal: str, phases: Sequence[PhaseInput]) -> Plan:
		return await self.plans.create_plan(title, goal, phases)

	async def get_next_task(self) -> Optional[Task]:
		return await self.plans.get_next_task()

	async def get_review_tasks(self) -> list[Task]:
		return await self.plans.get_review_tasks()

	async def get_blocked_tasks(self) -> list[Task]:
		return await self.plans.get_blocked_tasks()

	async def update_task(self, step: str, update: TaskUpdate) -> Task:
		return await self.plans.update_task(step, update)

	async def append_notes(self, line: str) -> Plan:
		return await self.plans.append_notes(line)
