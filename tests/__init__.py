"""Tests for gsheet-agent."""
