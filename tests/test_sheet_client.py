"""
Tests for SheetClient.

Tests:
- Credential resolution order and validation
- Single in-flight authentication
- HTTP error translation
- Retry wiring
"""

import asyncio
import base64
import json
from unittest.mock import patch

import pytest

from gsheet_agent.core.retry import RetryConfig
from gsheet_agent.core.sheet_client import SheetClient, ServiceAccountInfo, validate_credentials
from gsheet_agent.errors import AuthError, NetworkError, SheetPermissionError, ValidationError

from .fakes import CREDS, FakeSheetsService, http_error


def _encode(data: dict) -> str:
	return base64.b64encode(json.dumps(data).encode()).decode()


class TestCredentialResolution:
	"""Tests for resolve_credentials priority and validation."""

	def test_in_memory_wins_over_env_and_file(self, tmp_path, monkeypatch):
		key_file = tmp_path / "key.json"
		key_file.write_text(json.dumps({**CREDS, "client_email": "file@x.iam.gserviceaccount.com"}))
		monkeypatch.setenv("CREDENTIALS_CONFIG", _encode({**CREDS, "client_email": "env@x.iam.gserviceaccount.com"}))

		client = SheetClient("id", credentials=CREDS, key_file=key_file)

		assert client.resolve_credentials()["client_email"] == CREDS["client_email"]

	def test_env_wins_over_file(self, tmp_path, monkeypatch):
		key_file = tmp_path / "key.json"
		key_file.write_text(json.dumps({**CREDS, "client_email": "file@x.iam.gserviceaccount.com"}))
		monkeypatch.setenv("CREDENTIALS_CONFIG", _encode({**CREDS, "client_email": "env@x.iam.gserviceaccount.com"}))

		client = SheetClient("id", key_file=key_file)

		assert client.resolve_credentials()["client_email"] == "env@x.iam.gserviceaccount.com"

	def test_key_file(self, tmp_path, monkeypatch):
		monkeypatch.delenv("CREDENTIALS_CONFIG", raising=False)
		key_file = tmp_path / "key.json"
		key_file.write_text(json.dumps(CREDS))

		assert SheetClient("id", key_file=key_file).resolve_credentials()["project_id"] == "test-project"

	def test_pydantic_model_accepted(self, monkeypatch):
		monkeypatch.delenv("CREDENTIALS_CONFIG", raising=False)
		client = SheetClient("id", credentials=ServiceAccountInfo(**CREDS))
		assert client.resolve_credentials()["type"] == "service_account"

	def test_no_source(self, monkeypatch):
		monkeypatch.delenv("CREDENTIALS_CONFIG", raising=False)
		with pytest.raises(AuthError, match="No credentials found"):
			SheetClient("id").resolve_credentials()

	def test_bad_base64_names_env_var(self, monkeypatch):
		monkeypatch.setenv("CREDENTIALS_CONFIG", "not base64 json!!")
		with pytest.raises(AuthError, match="CREDENTIALS_CONFIG"):
			SheetClient("id").resolve_credentials()

	def test_unreadable_key_file(self, tmp_path, monkeypatch):
		monkeypatch.delenv("CREDENTIALS_CONFIG", raising=False)
		with pytest.raises(AuthError, match="key_file"):
			SheetClient("id", key_file=tmp_path / "missing.json").resolve_credentials()

	def test_missing_fields(self):
		with pytest.raises(AuthError, match="private_key"):
			validate_credentials({**CREDS, "private_key": ""})

	def test_wrong_type(self):
		with pytest.raises(AuthError, match="service_account"):
			validate_credentials({**CREDS, "type": "authorized_user"})


class TestGetClient:
	"""Tests for lazy, deduplicated authentication."""

	@pytest.mark.asyncio
	async def test_concurrent_calls_authenticate_once(self):
		service = FakeSheetsService()
		built = []

		def factory(info):
			built.append(info["client_email"])
			return service

		client = SheetClient("id", credentials=CREDS, service_factory=factory)
		results = await asyncio.gather(*(client.get_client() for _ in range(5)))

		assert built == [CREDS["client_email"]]
		assert all(r is service for r in results)
		assert client.service_account_email == CREDS["client_email"]

	@pytest.mark.asyncio
	async def test_failed_auth_can_be_retried(self, monkeypatch):
		monkeypatch.delenv("CREDENTIALS_CONFIG", raising=False)
		client = SheetClient("id")

		with pytest.raises(AuthError):
			await client.get_client()

		client._credentials = CREDS
		client._service_factory = lambda info: FakeSheetsService()
		assert await client.get_client() is not None

	@pytest.mark.asyncio
	async def test_default_factory_uses_service_account(self):
		client = SheetClient("id", credentials=CREDS)
		with patch("gsheet_agent.core.sheet_client.service_account.Credentials.from_service_account_info") as from_info, \
			patch("gsheet_agent.core.sheet_client.build") as build:
			build.return_value = "service"
			assert await client.get_client() == "service"

		from_info.assert_called_once()
		assert build.call_args.args[:2] == ("sheets", "v4")


class TestExecute:
	"""Tests for request execution and error translation."""

	@pytest.mark.asyncio
	async def test_get_values(self, client, service):
		service.add_sheet("Roster", [["name", "grade"], ["Ada", 5]])
		assert await client.get_values("Roster!A1:B2") == [["name", "grade"], ["Ada", 5]]

	@pytest.mark.asyncio
	async def test_forbidden_becomes_permission_error(self, client, service):
		service.add_sheet("Roster")
		service.failures.append(http_error(403, "The caller does not have permission"))

		with pytest.raises(SheetPermissionError) as exc_info:
			await client.get_values("Roster!A1")

		assert CREDS["client_email"] in exc_info.value.fix
		assert exc_info.value.code == "PERMISSION_ERROR"

	@pytest.mark.asyncio
	async def test_unparseable_range_becomes_validation_error(self, client):
		with pytest.raises(ValidationError) as exc_info:
			await client.get_values("Nope!A1")
		assert "A1 notation" in exc_info.value.fix

	@pytest.mark.asyncio
	async def test_unauthorized_becomes_auth_error(self, client, service):
		service.failures.append(http_error(401, "Request had invalid authentication credentials"))
		with pytest.raises(AuthError):
			await client.list_sheets()

	@pytest.mark.asyncio
	async def test_other_errors_propagate(self, client, service):
		error = http_error(409, "Conflict")
		service.failures.append(error)
		with pytest.raises(type(error)):
			await client.list_sheets()

	@pytest.mark.asyncio
	async def test_transient_failure_retried(self, service):
		client = SheetClient(
			"id",
			credentials=CREDS,
			retry=RetryConfig(base_delay_ms=1, max_delay_ms=2),
			service_factory=lambda info: service,
		)
		service.failures.append(http_error(503, "Service Unavailable"))

		assert await client.list_sheets() == []
		assert len(service.calls_to("get")) == 2

	@pytest.mark.asyncio
	async def test_retries_exhausted(self, service):
		client = SheetClient(
			"id",
			credentials=CREDS,
			retry=RetryConfig(max_attempts=2, base_delay_ms=1, max_delay_ms=2),
			service_factory=lambda info: service,
		)
		service.failures.extend([http_error(500, "Internal"), http_error(500, "Internal")])

		with pytest.raises(NetworkError):
			await client.list_sheets()

	@pytest.mark.asyncio
	async def test_find_sheet_case_insensitive(self, client, service):
		service.add_sheet("Roster")
		assert (await client.find_sheet("roster")).title == "Roster"
		assert await client.find_sheet("roster", case_insensitive=False) is None
