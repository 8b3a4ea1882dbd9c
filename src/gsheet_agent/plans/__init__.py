"""Plans module - Markdown plan parsing and task tracking."""

from .manager import PlanManager
from .models import Phase, PhaseInput, Plan, PlanAnalysis, Task, TaskStatus, TaskUpdate
from .parser import parse_plan, render_plan

__all__ = [
	"Plan",
	"Phase",
	"Task",
	"TaskStatus",
	"TaskUpdate",
	"PhaseInput",
	"PlanAnalysis",
	"PlanManager",
	"parse_plan",
	"render_plan",
]
