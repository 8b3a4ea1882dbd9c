"""
Retry with exponential backoff for Sheets API calls.

Errors are classified as retryable (transport failures, HTTP 429/5xx) or
fatal (everything else). Only retryable errors are retried; exhausting
the attempts raises NetworkError.
"""

import asyncio
import errno
import logging
import random
import socket
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ..errors import NetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRYABLE_ERRORS = (
	"ECONNRESET",
	"ETIMEDOUT",
	"ENOTFOUND",
	"ECONNREFUSED",
	"ECONNABORTED",
	"EPIPE",
	"ENETUNREACH",
	"EAI_AGAIN",
)

RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)


@dataclass
class RetryConfig:
	"""Retry settings for the request executor."""

	enabled: bool = True
	max_attempts: int = 3
	base_delay_ms: int = 1000
	max_delay_ms: int = 30000
	retryable_errors: tuple[str, ...] = field(default=DEFAULT_RETRYABLE_ERRORS)


def calculate_backoff_delay(
	attempt: int,
	base_delay_ms: int,
	max_delay_ms: int,
	jitter: bool = True,
) -> int:
	"""
	Delay in milliseconds before the next attempt.

	min(max_delay_ms, base_delay_ms * 2^attempt) plus 0-10% random jitter.
	"""
	capped = min(max_delay_ms, base_delay_ms * (2 ** attempt))
	if not jitter:
		return int(capped)
	return int(capped + random.random() * capped * 0.1)


def _get_status_code(error: Any) -> Optional[int]:
	"""HTTP status carried by an error, if any."""
	resp = getattr(error, "resp", None)
	status = getattr(resp, "status", None)
	if isinstance(status, int):
		return status

	response = getattr(error, "response", None)
	for attr in ("status", "status_code"):
		value = getattr(response, attr, None)
		if isinstance(value, int):
			return value

	for attr in ("status_code", "code", "status"):
		value = getattr(error, attr, None)
		if isinstance(value, int) and not isinstance(value, bool):
			return value
	return None


_EXCEPTION_CODES = (
	(socket.gaierror, "EAI_AGAIN"),
	(TimeoutError, "ETIMEDOUT"),
	(ConnectionResetError, "ECONNRESET"),
	(ConnectionRefusedError, "ECONNREFUSED"),
	(ConnectionAbortedError, "ECONNABORTED"),
	(BrokenPipeError, "EPIPE"),
)


def _get_error_code(error: Any) -> Optional[str]:
	"""Transport error code (ECONNRESET, ETIMEDOUT, ...) for an error or its cause."""
	for candidate in (error, getattr(error, "__cause__", None)):
		if candidate is None:
			continue
		code = getattr(candidate, "code", None)
		if isinstance(code, str):
			return code
		err_no = getattr(candidate, "errno", None)
		if isinstance(err_no, int) and err_no in errno.errorcode:
			return errno.errorcode[err_no]
		for exc_type, name in _EXCEPTION_CODES:
			if isinstance(candidate, exc_type):
				return name
	return None


def is_retryable_error(error: BaseException, retryable_errors=DEFAULT_RETRYABLE_ERRORS) -> bool:
	"""Return True when the error is transient and the call may be retried."""
	if isinstance(error, NetworkError):
		return True

	status = _get_status_code(error)
	if status is not None:
		return status in RETRYABLE_STATUS_CODES

	code = _get_error_code(error)
	if code and code in retryable_errors:
		return True

	# Only consulted when no structured status was found
	message = str(error)
	return any(str(status_code) in message for status_code in RETRYABLE_STATUS_CODES)


def _header(headers: Any, name: str) -> Any:
	if headers is None:
		return None
	getter = getattr(headers, "get", None)
	if getter is None:
		return None
	value = getter(name)
	if value is None:
		value = getter(name.title())
	return value


def get_retry_after_seconds(error: BaseException) -> Optional[int]:
	"""Seconds requested by a Retry-After header or field, if present."""
	value = _header(getattr(error, "resp", None), "retry-after")
	if value is None:
		response = getattr(error, "response", None)
		value = _header(getattr(response, "headers", None), "retry-after")
	if value is None:
		value = getattr(error, "retry_after", None)

	if isinstance(value, bool) or value is None:
		return None
	if isinstance(value, (int, float)):
		return int(value)
	try:
		return int(str(value).strip())
	except ValueError:
		return None


async def with_retry(
	operation: Callable[[], Awaitable[T]],
	config: RetryConfig,
	sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
	"""
	Run an async operation, retrying transient failures with backoff.

	Args:
		operation: Zero-argument coroutine factory
		config: Retry settings
		sleep: Awaitable sleep in seconds (injectable for tests)

	Returns:
		The operation's result

	Raises:
		NetworkError: When every attempt failed with a retryable error
		Exception: The first fatal error, unchanged
	"""
	last_error: Optional[BaseException] = None

	for attempt in range(config.max_attempts):
		try:
			return await operation()
		except Exception as e:
			last_error = e

			if not is_retryable_error(e, config.retryable_errors):
				raise

			if attempt + 1 >= config.max_attempts:
				break

			retry_after = get_retry_after_seconds(e)
			if retry_after is not None:
				delay_ms = retry_after * 1000
			else:
				delay_ms = calculate_backoff_delay(attempt, config.base_delay_ms, config.max_delay_ms)

			logger.warning(
				f"Retryable error on attempt {attempt + 1}/{config.max_attempts}: {e}; "
				f"retrying in {delay_ms}ms"
			)
			await sleep(delay_ms / 1000)

	raise NetworkError(
		str(last_error),
		attempt=config.max_attempts,
		max_attempts=config.max_attempts,
	) from last_error
