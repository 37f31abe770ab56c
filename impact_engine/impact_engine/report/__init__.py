"""Report assembly, rendering and publishing."""

from impact_engine.report.assembler import assemble_report
from impact_engine.report.markdown import render_markdown, render_unavailable
from impact_engine.report.publisher import GitHubPublisher, write_output, write_step_summary

__all__ = [
    "GitHubPublisher",
    "assemble_report",
    "render_markdown",
    "render_unavailable",
    "write_output",
    "write_step_summary",
]
