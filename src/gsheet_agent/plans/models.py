"""
Plan Models - Pydantic schemas for the markdown plan kept in PLAN.md.

A Plan keeps the complete document in ``lines``; the structured fields
are views over it. Mutations change individual lines, so text the parser
does not understand survives every round trip.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
	"""Status of a task, with its checkbox marker."""
	TODO = "todo"
	DOING = "doing"
	DONE = "done"
	BLOCKED = "blocked"
	REVIEW = "review"

	@property
	def marker(self) -> str:
		return STATUS_MARKERS[self]

	@classmethod
	def from_marker(cls, char: str) -> "TaskStatus":
		"""Unknown markers read as todo."""
		return MARKER_STATUSES.get(char, cls.TODO)


STATUS_MARKERS = {
	TaskStatus.TODO: " ",
	TaskStatus.DOING: "/",
	TaskStatus.DONE: "x",
	TaskStatus.BLOCKED: ">",
	TaskStatus.REVIEW: "!",
}
MARKER_STATUSES = {char: status for status, char in STATUS_MARKERS.items()}


class Task(BaseModel):
	"""A single task line within a phase."""
	line: int = Field(description="0-based line index in the document")
	phase: int = Field(description="Number of the enclosing phase")
	step: str = Field(description="Dotted step id, e.g. '2.3'")
	status: TaskStatus = Field(default=TaskStatus.TODO)
	title: str = Field(description="Task text without annotations")
	completed_date: Optional[str] = Field(default=None, description="YYYY-MM-DD when done")
	blocked_reason: Optional[str] = Field(default=None)
	review_note: Optional[str] = Field(default=None)


class Phase(BaseModel):
	"""A numbered group of tasks."""
	number: int
	name: str
	tasks: list[Task] = Field(default_factory=list)

	@property
	def is_complete(self) -> bool:
		return bool(self.tasks) and all(t.status == TaskStatus.DONE for t in self.tasks)


class PlanAnalysis(BaseModel):
	"""The analysis block, when it follows the standard bullet form."""
	spreadsheet: str = ""
	key_sheets: list[str] = Field(default_factory=list)
	read_ranges: list[str] = Field(default_factory=list)
	write_ranges: list[str] = Field(default_factory=list)
	current_state: Optional[str] = None


class PhaseInput(BaseModel):
	"""A phase to create: its name and the task titles in order."""
	name: str
	steps: list[str] = Field(default_factory=list)


class TaskUpdate(BaseModel):
	"""A requested status change for one task."""
	status: TaskStatus
	reason: Optional[str] = Field(default=None, description="Required when blocking")
	note: Optional[str] = Field(default=None, description="Required when sending to review")


class Plan(BaseModel):
	"""A parsed plan document."""
	title: str = ""
	goal: str = ""
	analysis_lines: list[str] = Field(default_factory=list)
	analysis: Optional[PlanAnalysis] = None
	questions: list[str] = Field(default_factory=list)
	phases: list[Phase] = Field(default_factory=list)
	notes: str = ""

	# The complete document, one entry per line
	lines: list[str] = Field(default_factory=list)

	@property
	def tasks(self) -> list[Task]:
		"""All tasks in document order."""
		return [task for phase in self.phases for task in phase.tasks]

	def find_task(self, step: str) -> Optional[Task]:
		for task in self.tasks:
			if task.step == step:
				return task
		return None

	def tasks_with_status(self, status: TaskStatus) -> list[Task]:
		return [task for task in self.tasks if task.status == status]

	def get_next_task(self) -> Optional[Task]:
		"""First todo task in document order."""
		todo = self.tasks_with_status(TaskStatus.TODO)
		return todo[0] if todo else None

	def get_progress(self) -> dict:
		"""Calculate overall progress."""
		tasks = self.tasks
		completed_tasks = len([t for t in tasks if t.status == TaskStatus.DONE])
		completed_phases = len([p for p in self.phases if p.is_complete])

		return {
			"total_phases": len(self.phases),
			"completed_phases": completed_phases,
			"total_tasks": len(tasks),
			"completed_tasks": completed_tasks,
			"blocked_tasks": len(self.tasks_with_status(TaskStatus.BLOCKED)),
			"review_tasks": len(self.tasks_with_status(TaskStatus.REVIEW)),
			"percent_complete": round(completed_tasks / len(tasks) * 100, 1) if tasks else 0,
		}

	def to_markdown(self) -> str:
		"""The document exactly as parsed (plus any line-level edits)."""
		return "\n".join(self.lines)
