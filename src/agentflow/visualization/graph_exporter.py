"""
Text exporters for workflow graphs.

Mermaid and Graphviz DOT for diagrams, Markdown for a readable summary.
When a RunState is supplied, each node is annotated with its status.
"""

from __future__ import annotations

from agentflow.domain.models import (
    AgentNode,
    HumanDecisionNode,
    Node,
    NodeKind,
    NodeStatus,
    RunState,
    RunStatistics,
    WorkflowGraph,
)

STATUS_COLORS: dict[NodeStatus, str] = {
    NodeStatus.IDLE: "#e5e7eb",
    NodeStatus.WAITING: "#fde68a",
    NodeStatus.RUNNING: "#93c5fd",
    NodeStatus.COMPLETED: "#86efac",
    NodeStatus.ERROR: "#fca5a5",
}


def _mermaid_id(node_id: str) -> str:
    # Mermaid ids cannot contain dashes
    return "n_" + "".join(c if c.isalnum() else "_" for c in node_id)


def _escape(text: str) -> str:
    return text.replace('"', "'")


def _node_text(node: Node, state: RunState | None) -> str:
    text = node.display
    if isinstance(node, AgentNode):
        text += f" ({node.agent_id})"
    if state is not None:
        text += f" [{state.status_of(node.node_id).value}]"
    return _escape(text)


def export_mermaid(graph: WorkflowGraph, state: RunState | None = None) -> str:
    """Render the graph as a Mermaid flowchart."""
    lines = ["flowchart LR"]
    for node in graph.nodes:
        mid = _mermaid_id(node.node_id)
        text = _node_text(node, state)
        if node.kind is NodeKind.START or node.kind is NodeKind.END:
            lines.append(f'    {mid}(["{text}"])')
        elif node.kind is NodeKind.HUMAN_DECISION:
            lines.append(f'    {mid}{{"{text}"}}')
        else:
            lines.append(f'    {mid}["{text}"]')

    for edge in graph.edges:
        src, tgt = _mermaid_id(edge.source), _mermaid_id(edge.target)
        if edge.label:
            lines.append(f'    {src} -->|"{_escape(edge.label)}"| {tgt}')
        else:
            lines.append(f"    {src} --> {tgt}")

    if state is not None:
        for status, color in STATUS_COLORS.items():
            lines.append(f"    classDef {status.value} fill:{color}")
        for node in graph.nodes:
            status = state.status_of(node.node_id)
            lines.append(f"    class {_mermaid_id(node.node_id)} {status.value}")
    return "\n".join(lines) + "\n"


_DOT_SHAPES: dict[NodeKind, str] = {
    NodeKind.START: "circle",
    NodeKind.AGENT: "box",
    NodeKind.HUMAN_DECISION: "diamond",
    NodeKind.END: "doublecircle",
}


def export_dot(graph: WorkflowGraph, state: RunState | None = None) -> str:
    """Render the graph in Graphviz DOT."""
    lines = [
        f'digraph "{_escape(graph.graph_id)}" {{',
        "    rankdir=LR;",
        '    node [fontname="Helvetica"];',
    ]
    for node in graph.nodes:
        attrs = [
            f'label="{_node_text(node, state)}"',
            f"shape={_DOT_SHAPES[node.kind]}",
        ]
        if state is not None:
            color = STATUS_COLORS[state.status_of(node.node_id)]
            attrs.append(f'style=filled fillcolor="{color}"')
        lines.append(f'    "{node.node_id}" [{" ".join(attrs)}];')
    for edge in graph.edges:
        attrs = []
        if edge.label:
            attrs.append(f'label="{_escape(edge.label)}"')
        if edge.is_conditional:
            attrs.append("style=dashed")
        suffix = f" [{' '.join(attrs)}]" if attrs else ""
        lines.append(f'    "{edge.source}" -> "{edge.target}"{suffix};')
    lines.append("}")
    return "\n".join(lines) + "\n"


def export_markdown(graph: WorkflowGraph, state: RunState | None = None) -> str:
    """Readable summary: nodes table, edges list, and run progress if given."""
    out = [f"# {graph.name}", ""]
    if graph.description:
        out += [graph.description, ""]
    out += [f"- **ID**: `{graph.graph_id}`", f"- **Version**: {graph.version}", ""]

    if state is not None:
        stats = RunStatistics.from_state(state)
        out += [
            "## Run",
            "",
            f"- **Run**: `{state.run_id}`",
            f"- **Status**: {state.status.value}",
            f"- **Progress**: {stats.progress}% "
            f"({stats.completed}/{stats.total_nodes} nodes)",
            f"- **Files**: {stats.files_generated}",
            "",
        ]

    header = "| Node | Type | Agent / Options |"
    divider = "|------|------|-----------------|"
    if state is not None:
        header += " Status |"
        divider += "--------|"
    out += ["## Nodes", "", header, divider]
    for node in graph.nodes:
        detail = ""
        if isinstance(node, AgentNode):
            detail = f"`{node.agent_id}`"
        elif isinstance(node, HumanDecisionNode):
            detail = ", ".join(o.display for o in node.options)
        row = f"| {node.display} | {node.kind.value} | {detail} |"
        if state is not None:
            row += f" {state.status_of(node.node_id).value} |"
        out.append(row)

    out += ["", "## Edges", ""]
    for edge in graph.edges:
        cond = f" *(if {edge.condition})*" if edge.condition else ""
        out.append(f"- `{edge.source}` -> `{edge.target}`{cond}")
    return "\n".join(out) + "\n"
