"""Visualizer package - Rich terminal views for runs and plans."""

from .plan_view import render_answer, render_event, render_plan, render_report

__all__ = [
	"render_answer",
	"render_event",
	"render_plan",
	"render_report",
]
