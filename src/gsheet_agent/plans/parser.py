"""
Plan markdown parser and line-level editor.

Document shape:

	# Plan: <title>

	Goal: <goal>

	## Analysis
	- Spreadsheet: ...

	## Questions for User
	- ...

	### Phase 1: <name>
	- [ ] 1.1 <task>
	- [x] 1.2 <task> ✅ 2024-05-01
	- [>] 1.3 <task> — waiting on access

	## Notes
	<free text>

Everything here is pure. Edits replace single lines of ``Plan.lines`` and
re-parse, so unrecognized lines stay exactly where they were.
"""

import re
from datetime import date
from typing import Optional, Sequence

from ..errors import PlanError, ValidationError
from .models import Phase, PhaseInput, Plan, PlanAnalysis, Task, TaskStatus

TASK_RE = re.compile(r"^- \[(.)\] (\d+\.\d+(?:\.\d+)?)\s+(.+)$")
PHASE_RE = re.compile(r"^### Phase (\d+): (.+)$")
DONE_RE = re.compile(r"^(.*?)\s+✅ (\d{4}-\d{2}-\d{2})$")
# The annotation follows the last " — "
ANNOTATION_RE = re.compile(r"^(.*)\s+— (.+)$")

NOTES_HEADING = "## Notes"

DEFAULT_ANALYSIS = [
	"Spreadsheet: [spreadsheet name]",
	"Key sheets: [sheet names]",
	"Target ranges:",
	"  - Read: [ranges to read]",
	"  - Write: [ranges to write]",
	"Current state: [description]",
]
DEFAULT_QUESTIONS = ["[Any clarifying questions]"]


def _parse_task(line_no: int, phase: Phase, match: re.Match) -> Task:
	status = TaskStatus.from_marker(match.group(1))
	title = match.group(3).strip()
	completed_date = annotation = None

	# Suffixes only belong to the marker that writes them; anything else is title text
	if status == TaskStatus.DONE:
		done = DONE_RE.match(title)
		if done:
			title, completed_date = done.group(1).strip(), done.group(2)
	elif status in (TaskStatus.BLOCKED, TaskStatus.REVIEW):
		annotated = ANNOTATION_RE.match(title)
		if annotated:
			title, annotation = annotated.group(1).strip(), annotated.group(2).strip()

	return Task(
		line=line_no,
		phase=phase.number,
		step=match.group(2),
		status=status,
		title=title,
		completed_date=completed_date,
		blocked_reason=annotation if status == TaskStatus.BLOCKED else None,
		review_note=annotation if status == TaskStatus.REVIEW else None,
	)


def parse_plan(markdown: str) -> Plan:
	"""
	Parse a plan document.

	Never raises: lines that match nothing are kept in ``Plan.lines`` and
	simply do not show up in the structured fields.
	"""
	lines = (markdown or "").split("\n")
	plan = Plan(lines=lines)
	section: Optional[str] = None
	phase: Optional[Phase] = None
	note_lines: list[str] = []

	for line_no, line in enumerate(lines):
		if section == "notes":
			note_lines.append(line)
			continue

		if line.startswith("# Plan:"):
			plan.title = line[len("# Plan:"):].strip()
		elif line.startswith("Goal:") and not plan.goal:
			plan.goal = line[len("Goal:"):].strip()
		elif line.startswith(NOTES_HEADING):
			section = "notes"
		elif line.startswith("## Analysis"):
			section = "analysis"
		elif line.startswith("## Questions"):
			section = "questions"
		elif line.startswith("## "):
			section = None
		elif line.startswith("### Phase"):
			section = None
			match = PHASE_RE.match(line)
			phase = Phase(number=int(match.group(1)), name=match.group(2).strip()) if match else None
			if phase:
				plan.phases.append(phase)
		elif section == "analysis" and line.strip().startswith("- "):
			plan.analysis_lines.append(line.strip()[2:])
		elif section == "questions" and line.startswith("- "):
			plan.questions.append(line[2:])
		elif phase is not None:
			match = TASK_RE.match(line)
			if match:
				phase.tasks.append(_parse_task(line_no, phase, match))

	plan.notes = "\n".join(note_lines).strip()
	plan.analysis = parse_analysis(plan.analysis_lines)
	return plan


def parse_analysis(lines: Sequence[str]) -> Optional[PlanAnalysis]:
	"""Structured analysis, or None unless a Spreadsheet: line is present."""
	analysis = PlanAnalysis()
	for line in lines:
		text = line.strip()
		if text.startswith("Spreadsheet:"):
			analysis.spreadsheet = text[len("Spreadsheet:"):].strip()
		elif text.startswith("Key sheets:"):
			analysis.key_sheets = [s.strip() for s in text[len("Key sheets:"):].split(",") if s.strip()]
		elif text.startswith("Read:"):
			analysis.read_ranges.append(text[len("Read:"):].strip())
		elif text.startswith("Write:"):
			analysis.write_ranges.append(text[len("Write:"):].strip())
		elif text.startswith("Current state:"):
			analysis.current_state = text[len("Current state:"):].strip()
	return analysis if analysis.spreadsheet else None


def format_task_line(task: Task) -> str:
	"""Render a task back to its markdown line."""
	line = f"- [{task.status.marker}] {task.step} {task.title}"
	if task.status == TaskStatus.DONE and task.completed_date:
		line += f" ✅ {task.completed_date}"
	if task.status == TaskStatus.BLOCKED and task.blocked_reason:
		line += f" — {task.blocked_reason}"
	if task.status == TaskStatus.REVIEW and task.review_note:
		line += f" — {task.review_note}"
	return line


def set_task_status(
	plan: Plan,
	step: str,
	status: TaskStatus,
	annotation: Optional[str] = None,
	today: Optional[date] = None,
) -> Plan:
	"""
	Return a new plan with one task moved to ``status``.

	Old annotations are dropped. Done tasks get today's date; blocked and
	review tasks carry ``annotation``.

	Raises:
		PlanError: If no task has that step id
		ValidationError: If the annotation spans more than one line
	"""
	if annotation and ("\n" in annotation or "\r" in annotation):
		raise ValidationError("Task annotations must be a single line", details=[repr(annotation)])

	task = plan.find_task(step)
	if task is None:
		available = [t.step for t in plan.tasks]
		raise PlanError(
			f"Task {step} not found",
			fix=f"Available steps: {', '.join(available) or '(none)'}",
			step=step,
			available_tasks=available,
		)

	updated = task.model_copy(update={
		"status": status,
		"completed_date": (today or date.today()).isoformat() if status == TaskStatus.DONE else None,
		"blocked_reason": annotation if status == TaskStatus.BLOCKED else None,
		"review_note": annotation if status == TaskStatus.REVIEW else None,
	})
	lines = list(plan.lines)
	lines[task.line] = format_task_line(updated)
	return parse_plan("\n".join(lines))


def append_note(plan: Plan, line: str) -> Plan:
	"""Return a new plan with ``line`` at the end of the Notes section."""
	text = plan.to_markdown().rstrip()
	if any(existing.startswith(NOTES_HEADING) for existing in plan.lines):
		text = f"{text}\n{line}"
	else:
		text = f"{text}\n\n{NOTES_HEADING}\n\n{line}"
	return parse_plan(text)


def render_plan(
	title: str,
	goal: str,
	phases: Sequence[PhaseInput],
	analysis: Optional[Sequence[str]] = None,
	questions: Optional[Sequence[str]] = None,
	notes: str = "",
) -> str:
	"""Build a fresh plan document with every task in todo."""
	lines = [f"# Plan: {title}", "", f"Goal: {goal}", "", "## Analysis", ""]
	lines.extend(item if item.startswith(" ") else f"- {item}" for item in (analysis or DEFAULT_ANALYSIS))
	lines.extend(["", "## Questions for User", ""])
	lines.extend(f"- {item}" for item in (questions or DEFAULT_QUESTIONS))
	lines.append("")

	for number, phase in enumerate(phases, start=1):
		lines.append(f"### Phase {number}: {phase.name}")
		lines.extend(f"- [ ] {number}.{index} {step}" for index, step in enumerate(phase.steps, start=1))
		lines.append("")

	lines.extend([NOTES_HEADING, "", notes])
	return "\n".join(lines)
