"""Shared fixtures: a fake Sheets service wired into a real SheetClient."""

import pytest

from gsheet_agent.core.retry import RetryConfig
from gsheet_agent.core.sheet_client import SheetClient
from gsheet_agent.store.file_store import FileStore

from .fakes import CREDS, FakeSheetsService


@pytest.fixture
def service():
	return FakeSheetsService()


@pytest.fixture
def client(service, monkeypatch):
	monkeypatch.delenv("CREDENTIALS_CONFIG", raising=False)
	return SheetClient(
		"sheet-123",
		credentials=CREDS,
		retry=RetryConfig(enabled=False),
		service_factory=lambda info: service,
	)


@pytest.fixture
def store(client):
	return FileStore(client)
