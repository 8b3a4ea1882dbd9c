"""
SheetClient - Google Sheets authentication and request execution.

Credentials are resolved once per session from (in priority order) an
in-memory service account object, a base64 JSON blob in an environment
variable, or a key file. Every API call goes through execute_with_retry,
the single retry boundary of the package.
"""

import asyncio
import base64
import binascii
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

import httplib2
from google.oauth2 import service_account
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from pydantic import BaseModel, ConfigDict

from ..errors import AuthError, SheetPermissionError, ValidationError
from .retry import RetryConfig, with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
DEFAULT_CREDENTIALS_ENV = "CREDENTIALS_CONFIG"
REQUIRED_FIELDS = ("type", "project_id", "private_key", "client_email")


class ServiceAccountInfo(BaseModel):
	"""Service account key as downloaded from Google Cloud Console."""
	model_config = ConfigDict(extra="allow")

	type: str = ""
	project_id: str = ""
	private_key: str = ""
	client_email: str = ""
	private_key_id: Optional[str] = None
	client_id: Optional[str] = None
	auth_uri: Optional[str] = None
	token_uri: Optional[str] = "https://oauth2.googleapis.com/token"
	auth_provider_x509_cert_url: Optional[str] = None
	client_x509_cert_url: Optional[str] = None


@dataclass
class SheetInfo:
	"""A tab in the spreadsheet."""
	title: str
	sheet_id: int
	row_count: int = 0
	column_count: int = 0


def validate_credentials(data: Any) -> dict:
	"""
	Check that a credential mapping is a usable service account key.

	Raises:
		AuthError: If required fields are missing or the type is wrong
	"""
	if isinstance(data, ServiceAccountInfo):
		data = data.model_dump(exclude_none=True)
	if not isinstance(data, dict):
		raise AuthError("Invalid credentials: expected a JSON object")

	missing = [name for name in REQUIRED_FIELDS if not data.get(name)]
	if missing:
		raise AuthError(f"Invalid credentials: missing required fields: {', '.join(missing)}")

	if data["type"] != "service_account":
		raise AuthError(f"Invalid credentials: type must be 'service_account', got '{data['type']}'")

	return data


class SheetClient:
	"""
	Authenticated access to one spreadsheet.

	Usage:
		client = SheetClient("1AbC...", key_file="service-account.json")
		rows = await client.get_values("Sheet1!A1:C10")
	"""

	def __init__(
		self,
		spreadsheet_id: str,
		credentials: Union[ServiceAccountInfo, dict, None] = None,
		key_file: Union[str, Path, None] = None,
		retry: Optional[RetryConfig] = None,
		credentials_env: str = DEFAULT_CREDENTIALS_ENV,
		service_factory: Optional[Callable[[dict], Any]] = None,
	):
		self.spreadsheet_id = spreadsheet_id
		self.retry = retry or RetryConfig()
		self._credentials = credentials
		self._key_file = Path(key_file) if key_file else None
		self._credentials_env = credentials_env
		self._service_factory = service_factory or self._build_service

		self._service: Any = None
		self._auth_task: Optional[asyncio.Task] = None
		self._google_credentials: Optional[service_account.Credentials] = None
		self.service_account_email: Optional[str] = None

	# -- authentication --

	def resolve_credentials(self) -> dict:
		"""
		Resolve service account credentials.

		Priority: in-memory credentials -> env var (base64 JSON) -> key file.
		Validation is eager and happens before any network call.
		"""
		if self._credentials is not None:
			return validate_credentials(self._credentials)

		encoded = os.getenv(self._credentials_env)
		if encoded:
			try:
				decoded = base64.b64decode(encoded, validate=False).decode("utf-8")
				parsed = json.loads(decoded)
			except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
				raise AuthError(f"Failed to parse {self._credentials_env}: {e}") from e
			return validate_credentials(parsed)

		if self._key_file is not None:
			try:
				parsed = json.loads(self._key_file.read_text())
			except (OSError, json.JSONDecodeError) as e:
				raise AuthError(f"Failed to read key_file '{self._key_file}': {e}") from e
			return validate_credentials(parsed)

		raise AuthError("No credentials found")

	def _build_service(self, info: dict) -> Any:
		self._google_credentials = service_account.Credentials.from_service_account_info(
			info, scopes=SCOPES
		)
		return build("sheets", "v4", credentials=self._google_credentials, cache_discovery=False)

	async def _authenticate(self) -> Any:
		info = self.resolve_credentials()
		self.service_account_email = info.get("client_email")
		service = await asyncio.to_thread(self._service_factory, info)
		logger.info(f"Authenticated as {self.service_account_email} for spreadsheet {self.spreadsheet_id}")
		return service

	async def get_client(self) -> Any:
		"""
		Get the authenticated Sheets service (lazy).

		Concurrent first calls share one in-flight authentication.
		"""
		if self._service is not None:
			return self._service

		if self._auth_task is None:
			self._auth_task = asyncio.ensure_future(self._authenticate())
		task = self._auth_task

		try:
			service = await asyncio.shield(task)
		except Exception:
			# Let a later call try again
			if self._auth_task is task:
				self._auth_task = None
			raise

		self._service = service
		self._auth_task = None
		return service

	# -- execution --

	async def execute_with_retry(self, operation: Callable[[], Awaitable[T]]) -> T:
		"""Run an operation with exponential-backoff retry (if enabled)."""
		if not self.retry.enabled:
			return await operation()
		return await with_retry(operation, self.retry)

	def _run_request(self, request: Any) -> Any:
		if self._google_credentials is None:
			return request.execute()
		# httplib2 is not thread safe; each worker thread gets its own transport
		http = AuthorizedHttp(self._google_credentials, http=httplib2.Http())
		return request.execute(http=http)

	async def execute(self, build_request: Callable[[Any], Any], target: str = "") -> dict:
		"""
		Build a request from the service and execute it with retry.

		Args:
			build_request: Receives the Sheets service, returns an HttpRequest
			target: Range or sheet the request addresses, for error messages

		Returns:
			The decoded JSON response
		"""
		service = await self.get_client()

		async def call():
			request = build_request(service)
			return await asyncio.to_thread(self._run_request, request)

		try:
			return await self.execute_with_retry(call) or {}
		except HttpError as e:
			translated = self._translate_http_error(e, target)
			if translated is e:
				raise
			raise translated from e

	def _translate_http_error(self, error: HttpError, target: str) -> Exception:
		status = getattr(error.resp, "status", None)
		reason = getattr(error, "reason", None) or str(error)
		target = target or self.spreadsheet_id

		if status == 403:
			return SheetPermissionError(target, self.service_account_email)
		if status == 401:
			return AuthError(f"Credentials rejected by Google: {reason}")
		if status == 400 and "Unable to parse range" in reason:
			return ValidationError(
				f"Invalid range '{target}'",
				details=[reason],
				fix="Use A1 notation such as 'Sheet1!A1:C10' and check that the sheet exists.",
			)
		if status == 404:
			return ValidationError(
				f"Spreadsheet not found: {self.spreadsheet_id}",
				details=[reason],
				fix="Check the spreadsheet ID or URL.",
			)
		return error

	# -- convenience wrappers --

	async def get_spreadsheet(self, fields: Optional[str] = None) -> dict:
		params = {"spreadsheetId": self.spreadsheet_id}
		if fields:
			params["fields"] = fields
		return await self.execute(lambda s: s.spreadsheets().get(**params))

	async def list_sheets(self) -> list[SheetInfo]:
		"""All tabs with their ids and grid sizes."""
		data = await self.get_spreadsheet(
			fields="sheets(properties(sheetId,title,gridProperties(rowCount,columnCount)))"
		)
		sheets = []
		for sheet in data.get("sheets", []):
			props = sheet.get("properties", {})
			grid = props.get("gridProperties", {})
			sheets.append(SheetInfo(
				title=props.get("title", ""),
				sheet_id=props.get("sheetId", 0),
				row_count=grid.get("rowCount", 0),
				column_count=grid.get("columnCount", 0),
			))
		return sheets

	async def find_sheet(self, title: str, case_insensitive: bool = True) -> Optional[SheetInfo]:
		for sheet in await self.list_sheets():
			if sheet.title == title:
				return sheet
			if case_insensitive and sheet.title.lower() == title.lower():
				return sheet
		return None

	async def get_values(
		self,
		range_str: str,
		value_render_option: str = "UNFORMATTED_VALUE",
	) -> list[list[Any]]:
		data = await self.execute(
			lambda s: s.spreadsheets().values().get(
				spreadsheetId=self.spreadsheet_id,
				range=range_str,
				valueRenderOption=value_render_option,
				dateTimeRenderOption="FORMATTED_STRING",
			),
			target=range_str,
		)
		return data.get("values", [])

	async def batch_get_values(
		self,
		ranges: list[str],
		value_render_option: str = "UNFORMATTED_VALUE",
	) -> list[dict]:
		data = await self.execute(
			lambda s: s.spreadsheets().values().batchGet(
				spreadsheetId=self.spreadsheet_id,
				ranges=ranges,
				valueRenderOption=value_render_option,
				dateTimeRenderOption="FORMATTED_STRING",
			),
			target=", ".join(ranges),
		)
		return data.get("valueRanges", [])

	async def update_values(
		self,
		range_str: str,
		values: list[list[Any]],
		value_input_option: str = "USER_ENTERED",
	) -> dict:
		return await self.execute(
			lambda s: s.spreadsheets().values().update(
				spreadsheetId=self.spreadsheet_id,
				range=range_str,
				valueInputOption=value_input_option,
				body={"values": values},
			),
			target=range_str,
		)

	async def append_values(
		self,
		range_str: str,
		values: list[list[Any]],
		value_input_option: str = "USER_ENTERED",
	) -> dict:
		return await self.execute(
			lambda s: s.spreadsheets().values().append(
				spreadsheetId=self.spreadsheet_id,
				range=range_str,
				valueInputOption=value_input_option,
				body={"values": values},
			),
			target=range_str,
		)

	async def clear_values(self, range_str: str) -> dict:
		return await self.execute(
			lambda s: s.spreadsheets().values().clear(
				spreadsheetId=self.spreadsheet_id,
				range=range_str,
				body={},
			),
			target=range_str,
		)

	async def batch_update(self, requests: list[dict]) -> dict:
		return await self.execute(
			lambda s: s.spreadsheets().batchUpdate(
				spreadsheetId=self.spreadsheet_id,
				body={"requests": requests},
			)
		)
