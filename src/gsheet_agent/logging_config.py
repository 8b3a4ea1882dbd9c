"""Centralized logging configuration for gsheet-agent."""

import logging
import os
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


def setup_logging(
	name: str = "gsheet_agent",
	level: Optional[str] = None,
	log_dir: Optional[Path] = None,
) -> logging.Logger:
	"""
	Set up logging with a console handler and, optionally, a rotating file.

	Args:
		name: Logger name
		level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to env var or INFO.
		log_dir: Directory for log files; no file handler when omitted

	Returns:
		Configured logger
	"""
	level = level or os.getenv("LOG_LEVEL", "INFO")
	log_level = getattr(logging, level.upper(), logging.INFO)

	logger = logging.getLogger(name)
	logger.setLevel(log_level)

	# Avoid duplicate handlers
	if logger.handlers:
		return logger

	detailed_formatter = logging.Formatter(
		"%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s",
		datefmt="%Y-%m-%d %H:%M:%S",
	)
	simple_formatter = logging.Formatter(
		"%(asctime)s [%(levelname)s] %(message)s",
		datefmt="%H:%M:%S",
	)
	redactor = SensitiveDataFilter()

	console_handler = logging.StreamHandler(sys.stdout)
	console_handler.setLevel(log_level)
	console_handler.setFormatter(simple_formatter)
	console_handler.addFilter(redactor)
	logger.addHandler(console_handler)

	if log_dir is not None:
		log_path = Path(log_dir)
		log_path.mkdir(parents=True, exist_ok=True)

		file_handler = RotatingFileHandler(
			log_path / f"{name}.log",
			maxBytes=10 * 1024 * 1024,  # 10 MB
			backupCount=5,
		)
		file_handler.setLevel(logging.DEBUG)  # File gets all logs
		file_handler.setFormatter(detailed_formatter)
		file_handler.addFilter(redactor)
		logger.addHandler(file_handler)

	return logger


def get_logger(name: str) -> logging.Logger:
	"""Get a child logger with the given name."""
	return logging.getLogger(f"gsheet_agent.{name}")


class SensitiveDataFilter(logging.Filter):
	"""Redact service-account keys and bearer tokens from log messages."""

	PATTERNS = [
		(
			re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----", re.DOTALL),
			"[REDACTED_PRIVATE_KEY]",
		),
		(re.compile(r'("private_key"\s*:\s*)"[^"]*"'), r'\1"[REDACTED]"'),
		(re.compile(r"(Bearer\s+)[A-Za-z0-9._\-]+"), r"\1[REDACTED_TOKEN]"),
	]

	def filter(self, record: logging.LogRecord) -> bool:
		message = record.getMessage()
		redacted = message
		for pattern, replacement in self.PATTERNS:
			redacted = pattern.sub(replacement, redacted)
		if redacted != message:
			record.msg = redacted
			record.args = None
		return True
