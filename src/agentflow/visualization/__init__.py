"""
Visualization module for AgentFlow workflows.

Diagram and summary exporters for graphs (optionally overlaid with a
run's node statuses) and an HTML report for a single run.
"""

from agentflow.visualization.graph_exporter import (
    export_dot,
    export_markdown,
    export_mermaid,
)
from agentflow.visualization.html_report import export_run_report, render_run_report

__all__ = [
    "export_dot",
    "export_markdown",
    "export_mermaid",
    "export_run_report",
    "render_run_report",
]
