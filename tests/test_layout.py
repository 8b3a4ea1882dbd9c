"""Tests for layout detection and the column codec."""

from gsheet_agent.core.sheet_client import SheetInfo
from gsheet_agent.store.layout import (
	LayoutGeneration,
	column_slot_range,
	detect_layout,
	encode_block,
	encode_slot,
	file_from_values,
	next_free_column,
	salvage_files,
)
from gsheet_agent.store.models import FIELD_LABELS, FileStatus, StoredFile, content_hash

NOW = "2024-06-01T12:00:00Z"


def _sheets(*titles):
	return [SheetInfo(title=title, sheet_id=i) for i, title in enumerate(titles)]


class TestDetectLayout:
	"""Tests for detect_layout."""

	def test_missing(self):
		assert detect_layout(_sheets("Sheet1"), []).generation == LayoutGeneration.MISSING

	def test_legacy_only_without_store_tab(self):
		layout = detect_layout(_sheets("AGENT_BASE"), [])
		assert layout.generation == LayoutGeneration.LEGACY
		assert layout.legacy_sheet.title == "AGENT_BASE"

		block = encode_block([])
		assert detect_layout(_sheets("AGENT_BASE", "AGENTSCAPE"), block).generation == LayoutGeneration.COLUMNS

	def test_columns(self):
		layout = detect_layout(_sheets("agentscape"), encode_block([StoredFile(name="A.md")]))
		assert layout.is_valid
		assert layout.sheet.title == "agentscape"

	def test_rows(self):
		block = [list(FIELD_LABELS), ["A.md"]]
		assert detect_layout(_sheets("AGENTSCAPE"), block).generation == LayoutGeneration.ROWS

	def test_unknown(self):
		layout = detect_layout(_sheets("AGENTSCAPE"), [["hello"]])
		assert layout.generation == LayoutGeneration.UNKNOWN
		assert not layout.is_valid


class TestCodec:
	"""Tests for encoding and decoding one file column."""

	def test_encode_slot_order(self):
		file = StoredFile(name="A.md", description="d", status=FileStatus.ARCHIVED, content="body")
		values = [row[0] for row in encode_slot(file, 2)]

		assert values[0] == "'A.md"
		assert values[3] == "'/opt/agentscape/A.md"
		assert values[6] == "'archived"
		assert values[8] == "=INT(LEN(C12)/4)"
		assert values[10] == '=IF(C12="","",SHA256(C12))'
		assert values[11] == "'body"

	def test_user_fields_are_written_as_literal_text(self):
		file = StoredFile(name="X.md", description="=HYPERLINK(\"x\")", tags="1,2", content="0012")
		values = [row[0] for row in encode_slot(file, 1)]

		assert values[1] == "'=HYPERLINK(\"x\")"
		assert values[2] == "'1,2"
		assert values[11] == "'0012"
		# empty cells stay empty
		assert values[7] == ""

	def test_raw_block_is_not_escaped(self):
		block = encode_block([StoredFile(name="X.md", content="0012")])

		assert block[0] == ["FILE", "X.md"]
		assert block[11][1] == "0012"
		assert block[8][1] == "=INT(LEN(B12)/4)"

	def test_evaluated_values_are_kept(self):
		values = ["A.md", "", "", "", "", "", "active", "", 7, "", "cafe", "body"]
		file = file_from_values(values)
		assert file.context_len == "7"
		assert file.hash == "cafe"

	def test_formula_errors_are_recomputed(self):
		values = ["A.md", "", "", "", "", "", "active", "", "#VALUE!", "", "#NAME?", "body"]
		file = file_from_values(values)
		assert file.context_len == "1"
		assert file.hash == content_hash("body")

	def test_empty_derived_cells_are_recomputed(self):
		values = ["A.md"] + [""] * 10 + ["abcd"]
		file = file_from_values(values)
		assert file.context_len == "1"
		assert file.hash == content_hash("abcd")

	def test_unknown_status_kept_verbatim(self):
		values = ["A.md", "", "", "", "", "", "Draft"]
		assert file_from_values(values).status == "Draft"

	def test_range_quotes_sheet_name(self):
		assert column_slot_range("My Files", 27) == "'My Files'!AB1:AB12"

	def test_next_free_column_skips_gaps(self):
		block = [["FILE", "A.md", "", "B.md"]]
		assert next_free_column(block) == 4
		assert next_free_column([]) == 1


class TestSalvage:
	"""Tests for salvage_files."""

	def test_keyword_columns_get_md_suffix(self):
		block = [["x", "HISTORY", "random", "notes.md", "HISTORY"]]
		names = [f.name for f in salvage_files(block, LayoutGeneration.UNKNOWN, NOW)]
		assert names == ["HISTORY.md", "notes.md"]

	def test_missing_timestamps_filled(self):
		files = salvage_files([["x", "PLAN"]], LayoutGeneration.UNKNOWN, NOW)
		assert files[0].created_ts == NOW
		assert files[0].updated_ts == NOW

	def test_labels_are_not_files(self):
		block = [list(FIELD_LABELS), ["FILE"], ["A.md"]]
		assert [f.name for f in salvage_files(block, LayoutGeneration.ROWS, NOW)] == ["A.md"]

	def test_valid_columns_are_kept_verbatim(self):
		block = encode_block([StoredFile(name="config", updated_ts="t1", content="line one\n\n")])

		files = salvage_files(block, LayoutGeneration.COLUMNS, NOW)

		assert files[0].name == "config"
		assert files[0].content == "line one\n\n"
		assert files[0].updated_ts == "t1"
		assert files[0].created_ts == NOW

	def test_broken_columns_are_trimmed(self):
		block = [["x", "notes.md"]] + [[""]] * 10 + [["", "  text \n"]]
		assert salvage_files(block, LayoutGeneration.UNKNOWN, NOW)[0].content == "text"
