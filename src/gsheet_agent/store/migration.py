"""One-shot migration from the two-cell AGENT_BASE tab to AGENTSCAPE."""

import logging
from typing import TYPE_CHECKING

from ..core.cells import cell_text, quote_sheet_name
from ..core.sheet_client import SheetClient
from .layout import LEGACY_AGENTS_MARKER, LEGACY_PLAN_MARKER, LEGACY_SHEET
from .models import AGENTS_FILE, PLAN_FILE, FileStatus, MigrationResult, StoredFile

if TYPE_CHECKING:
	from .file_store import FileStore

logger = logging.getLogger(__name__)


async def migrate_legacy(client: SheetClient, store: "FileStore") -> MigrationResult:
	"""
	Move AGENT_BASE content into AGENTSCAPE and delete the old tab.

	A1/A2 hold the identity marker and text, B1/B2 the plan marker and text.
	Nothing is written when the legacy tab is absent or does not carry the
	markers, so running this more than once is harmless.

	Args:
		client: Client for the spreadsheet
		store: File store that receives AGENTS.md and PLAN.md

	Returns:
		MigrationResult describing what was moved
	"""
	legacy = await client.find_sheet(LEGACY_SHEET, case_insensitive=False)
	if legacy is None:
		return MigrationResult(migrated=False, message=f"No {LEGACY_SHEET} sheet found")

	rows = await client.get_values(f"{quote_sheet_name(legacy.title)}!A1:B2")
	header = rows[0] if rows else []
	values = rows[1] if len(rows) > 1 else []

	if cell_text(header, 0).strip() != LEGACY_AGENTS_MARKER or cell_text(header, 1).strip() != LEGACY_PLAN_MARKER:
		logger.warning(f"{LEGACY_SHEET} exists but does not carry the expected markers; leaving it alone")
		return MigrationResult(
			migrated=False,
			message=f"{LEGACY_SHEET} does not look like a legacy agent tab",
		)

	agents_text = cell_text(values, 0)
	plan_text = cell_text(values, 1)

	await store.init()

	if agents_text.strip():
		await _overwrite(store, AGENTS_FILE, agents_text, "Core agent identity and capabilities.", "system,context")
	if plan_text.strip():
		await _overwrite(store, PLAN_FILE, plan_text, "Active execution plan with phased tasks.", "agent,plan")

	await client.batch_update([{"deleteSheet": {"sheetId": legacy.sheet_id}}])

	message = (
		f"Migrated {LEGACY_SHEET} to {store.sheet_name}: "
		f"{AGENTS_FILE} ({len(agents_text)} chars), {PLAN_FILE} ({len(plan_text)} chars)"
	)
	logger.info(message)
	return MigrationResult(
		migrated=True,
		agents_length=len(agents_text),
		plan_length=len(plan_text),
		message=message,
	)


async def _overwrite(store: "FileStore", name: str, content: str, description: str, tags: str) -> None:
	existing = await store.read_file(name)
	if existing is not None:
		file = existing.model_copy(update={"content": content})
	else:
		file = StoredFile(name=name, description=description, tags=tags, status=FileStatus.ACTIVE, content=content)
	await store.write_file(file)
