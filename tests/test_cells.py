"""Tests for the cell codec."""

import pytest

from gsheet_agent.core.cells import (
	Cell,
	CellKind,
	column_index_to_letter,
	column_letter_to_index,
	header_names,
	is_valid_a1_range,
	matches_condition,
	matches_query,
	prepare_write_data,
	quote_sheet_name,
	row_to_dict,
	sheet_range,
)


class TestCell:
	"""Tests for the tagged cell value."""

	@pytest.mark.parametrize("raw, kind", [
		(None, CellKind.EMPTY),
		("", CellKind.EMPTY),
		(True, CellKind.BOOLEAN),
		(0, CellKind.NUMBER),
		(2.5, CellKind.NUMBER),
		("=SUM(A1:A3)", CellKind.FORMULA),
		("hello", CellKind.TEXT),
	])
	def test_from_raw(self, raw, kind):
		assert Cell.from_raw(raw).kind == kind

	def test_as_text(self):
		assert Cell.from_raw(3.0).as_text() == "3"
		assert Cell.from_raw(False).as_text() == "FALSE"
		assert Cell.from_raw(None).as_text() == ""

	def test_to_raw_empty(self):
		assert Cell.from_raw(None).to_raw() == ""


class TestRecords:
	"""Tests for row/record conversion."""

	def test_missing_cells_become_none(self):
		assert row_to_dict(["Ada"], ["name", "grade"]) == {"name": "Ada", "grade": None}

	def test_blank_headers_get_positional_names(self):
		assert header_names(["name", "", 7]) == ["name", "col1", "7"]

	def test_grid_passes_through(self):
		grid = [["a", 1], ["b", 2]]
		assert prepare_write_data(grid) == grid

	def test_records_with_derived_headers(self):
		data = [{"name": "Ada", "grade": 5}, {"name": "Bo", "grade": None}]
		assert prepare_write_data(data) == [["name", "grade"], ["Ada", 5], ["Bo", ""]]

	def test_records_with_explicit_headers(self):
		data = [{"name": "Ada", "grade": 5}]
		assert prepare_write_data(data, headers=["grade", "name"]) == [["grade", "name"], [5, "Ada"]]

	def test_records_without_header_row(self):
		assert prepare_write_data([{"name": "Ada"}], headers=False) == [["Ada"]]

	def test_empty(self):
		assert prepare_write_data([]) == []


class TestMatching:
	"""Tests for strict and loose condition matching."""

	def test_strict_zero_does_not_match_empty(self):
		assert not matches_condition(0, "", "strict")
		assert not matches_condition("", 0, "strict")

	def test_loose_zero_matches_empty(self):
		assert matches_condition(0, "", "loose")
		assert matches_condition("", 0, "loose")

	def test_strict_numeric_coercion(self):
		assert matches_condition(5, "5", "strict")
		assert matches_condition("5.0", 5, "strict")
		assert not matches_condition("five", 5, "strict")

	def test_strict_none(self):
		assert matches_condition(None, None, "strict")
		assert not matches_condition(None, "", "strict")

	def test_booleans_are_not_numbers(self):
		assert not matches_condition(True, 1, "strict")

	def test_loose_substring_case_insensitive(self):
		assert matches_condition("Grace Hopper", "hopper", "loose")
		assert not matches_condition("Grace Hopper", "lovelace", "loose")

	def test_query_operators(self):
		row = {"name": "Ada", "grade": 5}
		assert matches_query(row, {"name": "Ada", "grade": 5}, "and")
		assert not matches_query(row, {"name": "Ada", "grade": 6}, "and")
		assert matches_query(row, {"name": "Ada", "grade": 6}, "or")


class TestA1:
	"""Tests for A1 notation helpers."""

	@pytest.mark.parametrize("index, letters", [(0, "A"), (25, "Z"), (26, "AA"), (701, "ZZ"), (702, "AAA")])
	def test_column_letters_both_ways(self, index, letters):
		assert column_index_to_letter(index) == letters
		assert column_letter_to_index(letters) == index

	def test_bad_letters(self):
		assert column_letter_to_index("A1") == -1
		assert column_letter_to_index("") == -1

	@pytest.mark.parametrize("range_str", ["A1", "B2:C10", "A:C", "1:12", "$A$1:$B$2"])
	def test_valid_ranges(self, range_str):
		assert is_valid_a1_range(range_str)

	@pytest.mark.parametrize("range_str", ["", "A1:", "1A", "Sheet1!A1", None, 42])
	def test_invalid_ranges(self, range_str):
		assert not is_valid_a1_range(range_str)

	def test_sheet_quoting(self):
		assert quote_sheet_name("Roster") == "Roster"
		assert quote_sheet_name("Class List") == "'Class List'"
		assert quote_sheet_name("Bob's") == "'Bob''s'"
		assert sheet_range("Class List", "A1:B2") == "'Class List'!A1:B2"
		assert sheet_range("Roster") == "Roster"
