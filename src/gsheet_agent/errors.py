"""
Error taxonomy for gsheet-agent.

Every error carries a stable ``code`` and a one-line ``fix`` hint so that
callers can show the user which kind of failure occurred and what to do.
"""

from typing import Optional


class SheetAgentError(Exception):
	"""Base class for all gsheet-agent errors."""

	code: str = "SHEET_AGENT_ERROR"

	def __init__(self, message: str, fix: str = ""):
		super().__init__(message)
		self.message = message
		self.fix = fix


class AuthError(SheetAgentError):
	"""Credentials are missing or invalid. Never retried."""

	code = "AUTH_ERROR"

	def __init__(self, message: str = "No credentials found"):
		super().__init__(
			message,
			fix=(
				"Set one of: credentials (object), CREDENTIALS_CONFIG env var (Base64), "
				"or key_file (path)"
			),
		)


class SheetPermissionError(SheetAgentError, PermissionError):
	"""The service account cannot access a tab or range."""

	code = "PERMISSION_ERROR"

	def __init__(self, sheet: str, service_account: Optional[str] = None):
		super().__init__(
			f"Cannot access sheet '{sheet}'",
			fix=(
				f"Share the spreadsheet with {service_account} (Editor role)"
				if service_account
				else "Share the spreadsheet with the service account (Editor role)"
			),
		)
		self.sheet = sheet
		self.service_account = service_account


class ValidationError(SheetAgentError):
	"""Malformed input or an operation refused by the store."""

	code = "VALIDATION_ERROR"

	def __init__(self, message: str, details: Optional[list[str]] = None, fix: str = ""):
		self.details = list(details or [])
		detail_str = "\n  " + "\n  ".join(self.details) if self.details else ""
		super().__init__(
			f"Validation failed: {message}{detail_str}",
			fix=fix or "Check the input parameters and ensure they match the expected types and formats.",
		)


class NetworkError(SheetAgentError):
	"""A transient failure persisted after all retry attempts."""

	code = "NETWORK_ERROR"

	def __init__(
		self,
		original_error: str,
		attempt: Optional[int] = None,
		max_attempts: Optional[int] = None,
	):
		retry_info = f" (attempt {attempt}/{max_attempts})" if attempt and max_attempts else ""
		super().__init__(
			f"Connection failed: {original_error}{retry_info}",
			fix="Check your network connection and try again later.",
		)
		self.original_error = original_error
		self.attempt = attempt
		self.max_attempts = max_attempts


class PlanError(SheetAgentError):
	"""No plan present, or a referenced step does not exist."""

	code = "PLAN_ERROR"

	def __init__(
		self,
		message: str,
		fix: Optional[str] = None,
		step: Optional[str] = None,
		available_tasks: Optional[list[str]] = None,
	):
		super().__init__(message, fix=fix or "Create a plan first using create_plan()")
		self.step = step
		self.available_tasks = available_tasks or []


def format_error(error: BaseException) -> str:
	"""Render an error for display, including its kind and remediation hint."""
	if isinstance(error, SheetAgentError):
		text = f"[{error.code}] {error.message}"
		if error.fix:
			text += f"\n  Fix: {error.fix}"
		return text
	return f"[{type(error).__name__}] {error}"
