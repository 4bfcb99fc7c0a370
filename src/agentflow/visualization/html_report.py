"""
HTML run report.

Renders a self-contained page for one run: summary statistics, node
statuses, decisions, the generated files and the full log.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from agentflow.domain.models import RunState, RunStatistics, WorkflowGraph
from agentflow.visualization.graph_exporter import STATUS_COLORS, export_mermaid

_TEMPLATE_DIR = Path(__file__).parent / "templates"


def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(_TEMPLATE_DIR),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render_run_report(state: RunState, graph: WorkflowGraph) -> str:
    """Render the report to an HTML string."""
    template = _environment().get_template("run_report.html")
    statuses = state.node_status_map()
    return template.render(
        graph=graph,
        state=state,
        stats=RunStatistics.from_state(state),
        nodes=[
            {
                "node": node,
                "status": statuses.get(node.node_id),
                "color": STATUS_COLORS[statuses[node.node_id]]
                if node.node_id in statuses
                else "#ffffff",
                "entries": state.entries_for(node.node_id),
            }
            for node in graph.nodes
        ],
        files=sorted(state.files().values(), key=lambda a: a.path),
        mermaid=export_mermaid(graph, state),
        generated_at=datetime.now().isoformat(timespec="seconds"),
    )


def export_run_report(
    state: RunState, graph: WorkflowGraph, output_path: str | Path = "report.html"
) -> Path:
    """Render the report and write it to ``output_path``.

    Returns:
        Path to the generated HTML file.
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(render_run_report(state, graph), encoding="utf-8")
    return output
