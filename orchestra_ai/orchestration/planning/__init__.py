"""Planning LLM function used by the orchestration engine."""

from .planner import PlannedAction, PlannerOutput, StructuredPlanner

__all__ = ["PlannedAction", "PlannerOutput", "StructuredPlanner"]
