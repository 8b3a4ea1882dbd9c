"""Visualizer package - Rich terminal views for plans and stored files."""

from .plan_progress import render_file_table, render_plan_progress, render_plan_summary

__all__ = [
	"render_file_table",
	"render_plan_progress",
	"render_plan_summary",
]
