"""
Cell codec - pure conversions between sheet grids and Python values.

Nothing in this module performs I/O or raises on bad input; callers get
structurally valid (possibly empty) results.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, Optional, Sequence, Union

Matching = Literal["strict", "loose"]
Operator = Literal["and", "or"]

Grid = list[list[Any]]
Records = list[dict[str, Any]]


class CellKind(str, Enum):
	"""Tag for the value held by a cell."""
	EMPTY = "empty"
	TEXT = "text"
	NUMBER = "number"
	BOOLEAN = "boolean"
	FORMULA = "formula"


@dataclass(frozen=True)
class Cell:
	"""A sheet cell with an explicit kind."""

	kind: CellKind
	value: Union[str, int, float, bool, None] = None

	@classmethod
	def from_raw(cls, raw: Any) -> "Cell":
		if raw is None or raw == "":
			return cls(CellKind.EMPTY, None)
		# bool before numbers: bool is an int subclass
		if isinstance(raw, bool):
			return cls(CellKind.BOOLEAN, raw)
		if isinstance(raw, (int, float)):
			return cls(CellKind.NUMBER, raw)
		text = str(raw)
		if text.startswith("="):
			return cls(CellKind.FORMULA, text)
		return cls(CellKind.TEXT, text)

	@property
	def is_empty(self) -> bool:
		return self.kind == CellKind.EMPTY

	def to_raw(self) -> Any:
		"""Value to send to the API; empty cells become ''."""
		return "" if self.kind == CellKind.EMPTY else self.value

	def as_text(self) -> str:
		if self.kind == CellKind.EMPTY:
			return ""
		if self.kind == CellKind.BOOLEAN:
			return "TRUE" if self.value else "FALSE"
		if self.kind == CellKind.NUMBER and isinstance(self.value, float) and self.value.is_integer():
			return str(int(self.value))
		return str(self.value)


def cell_text(row: Sequence[Any], index: int) -> str:
	"""Text of row[index], '' when the cell is missing or empty."""
	if index < 0 or index >= len(row):
		return ""
	return Cell.from_raw(row[index]).as_text()


# -- rows <-> records --

def header_names(row: Sequence[Any]) -> list[str]:
	"""Header cells as strings; blank headers become col{i}."""
	names = []
	for i, value in enumerate(row):
		text = Cell.from_raw(value).as_text()
		names.append(text if text else f"col{i}")
	return names


def row_to_dict(row: Sequence[Any], headers: Sequence[str]) -> dict[str, Any]:
	"""Map a row onto headers. Missing cells become None rather than being omitted."""
	return {header: (row[i] if i < len(row) else None) for i, header in enumerate(headers)}


def rows_to_dicts(rows: Sequence[Sequence[Any]], headers: Sequence[str]) -> Records:
	return [row_to_dict(row, headers) for row in rows]


def prepare_write_data(
	data: Union[Grid, Records],
	headers: Union[list[str], bool, None] = None,
) -> Grid:
	"""
	Normalize write input to a grid of rows.

	Args:
		data: A grid of raw values, or a list of uniform records
		headers: For records - an explicit header list, True/None to derive
			from the first record's keys, or False to omit the header row

	Returns:
		Rows ready for values.update. A grid is returned unchanged.
	"""
	if not data:
		return []

	first = data[0]
	if isinstance(first, (list, tuple)):
		return [list(row) for row in data]

	if not isinstance(first, dict):
		return []

	if isinstance(headers, list):
		header_row = list(headers)
	else:
		header_row = list(first.keys())

	rows = [
		["" if record.get(key) is None else record.get(key) for key in header_row]
		for record in data
		if isinstance(record, dict)
	]

	if headers is False:
		return rows
	return [header_row, *rows]


# -- condition matching --

def _is_number(value: Any) -> bool:
	return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_number(value: Any) -> Optional[float]:
	if _is_number(value):
		return float(value)
	try:
		return float(str(value).strip())
	except ValueError:
		return None


def _loose_text(value: Any) -> str:
	if isinstance(value, bool):
		return "true" if value else "false"
	if isinstance(value, float) and value.is_integer():
		return str(int(value))
	return str(value).lower()


def matches_condition(cell_value: Any, query_value: Any, matching: Matching = "strict") -> bool:
	"""
	Check a cell value against a query value.

	strict: type-aware equality. None matches only None. Numbers are
	compared numerically when either side is a number and neither side is ''.
	loose: case-insensitive substring match, with '' and 0 treated as the
	same empty value.
	"""
	if matching == "strict":
		if cell_value is None or query_value is None:
			return cell_value is None and query_value is None

		if _is_number(cell_value) and _is_number(query_value):
			return cell_value == query_value
		if _is_number(cell_value) or _is_number(query_value):
			if cell_value == "" or query_value == "":
				return False
			left = _to_number(cell_value)
			right = _to_number(query_value)
			return left is not None and right is not None and left == right
		return cell_value == query_value

	cell_empty = cell_value == "" or (_is_number(cell_value) and cell_value == 0)
	query_empty = query_value == "" or (_is_number(query_value) and query_value == 0)
	if cell_empty and query_empty:
		return True

	return _loose_text(query_value) in _loose_text(cell_value)


def matches_query(
	row: dict[str, Any],
	query: dict[str, Any],
	operator: Operator = "and",
	matching: Matching = "strict",
) -> bool:
	"""Apply every (or any) query condition to a row record."""
	results = (matches_condition(row.get(key), value, matching) for key, value in query.items())
	return all(results) if operator == "and" else any(results)


# -- A1 notation --

_A1_CELL = r"\$?[A-Za-z]{1,3}\$?\d+"
_A1_COL = r"\$?[A-Za-z]{1,3}"
_A1_ROW = r"\$?\d+"
_A1_PART = rf"(?:{_A1_CELL}|{_A1_COL}|{_A1_ROW})"
_A1_RE = re.compile(rf"^{_A1_PART}(?::{_A1_PART})?$")


def column_index_to_letter(index: int) -> str:
	"""0 -> A, 25 -> Z, 26 -> AA."""
	letters = ""
	num = index
	while num >= 0:
		letters = chr(num % 26 + 65) + letters
		num = num // 26 - 1
	return letters


def column_letter_to_index(letters: str) -> int:
	"""A -> 0, Z -> 25, AA -> 26. Returns -1 for non-letters."""
	if not letters or not letters.isalpha():
		return -1
	index = 0
	for ch in letters.upper():
		index = index * 26 + (ord(ch) - 64)
	return index - 1


def is_valid_a1_range(range_str: str) -> bool:
	"""True for ranges like A1, B2:C10, A:C, 1:12 (without a sheet prefix)."""
	if not isinstance(range_str, str):
		return False
	return bool(_A1_RE.match(range_str.strip()))


def quote_sheet_name(name: str) -> str:
	"""Quote a sheet name for A1 notation when it needs it."""
	if re.fullmatch(r"[A-Za-z0-9_]+", name):
		return name
	return "'" + name.replace("'", "''") + "'"


def sheet_range(sheet: str, range_str: Optional[str] = None) -> str:
	"""Join a sheet name and an optional A1 range."""
	quoted = quote_sheet_name(sheet)
	return f"{quoted}!{range_str}" if range_str else quoted
