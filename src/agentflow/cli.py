"""
AgentFlow command line interface.

State (run checkpoints, handed-off files, event traces and the graphs
runs were started with) lives under ``--state-dir`` (default
``.agentflow``), so ``show``, ``trace``, ``report`` and ``resume`` work
across processes.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
import uuid
from dataclasses import replace
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from agentflow import __version__
from agentflow.application.scheduler import Scheduler
from agentflow.config import EngineConfig
from agentflow.domain.exceptions import (
    DecisionError,
    GraphImportError,
    GraphIntegrityError,
    RunNotFoundError,
)
from agentflow.domain.models import (
    AgentPerformance,
    AgentResult,
    GeneratedFile,
    RunState,
    RunStatistics,
    RunStatus,
    WorkflowGraph,
)
from agentflow.domain.run_event import RunEvent, RunEventType
from agentflow.domain.validation import GraphValidator
from agentflow.infrastructure.agents import (
    BUILTIN_PROFILES,
    MARKETPLACE_PROFILES,
    MockAgent,
    OpenAIAgentConfig,
    register_openai_agents,
)
from agentflow.infrastructure.graph_io import export_graph, load_graph, save_graph
from agentflow.infrastructure.persistence import (
    FilesystemPersistenceSink,
    FilesystemRunEventStore,
    FilesystemRunStore,
)
from agentflow.infrastructure.registry import AgentRegistry
from agentflow.interactive import ConsoleDecisionPrompt
from agentflow.templates import TemplateCatalog
from agentflow.visualization import (
    export_dot,
    export_markdown,
    export_mermaid,
    export_run_report,
)

logger = logging.getLogger("agentflow.cli")

DEFAULT_STATE_DIR = Path(".agentflow")

_NOISY_LOGGERS = ["httpx", "httpcore", "openai", "asyncio"]

_STATUS_STYLES = {
    "idle": "dim",
    "waiting": "yellow",
    "running": "cyan",
    "completed": "green",
    "error": "red",
}


def _configure_logging(debug: bool, log_file: str | None = None) -> None:
    """Set up logging, suppressing noisy third-party loggers.

    When *log_file* is set, detailed logs go to the file and only
    warnings reach stderr so they don't interleave with command output.
    """
    level = logging.DEBUG if debug else logging.INFO
    root = logging.getLogger()
    root.setLevel(level)

    fmt_detailed = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    fmt_concise = logging.Formatter("%(levelname)s - %(message)s")

    if log_file:
        fh = logging.FileHandler(log_file, mode="a")
        fh.setLevel(level)
        fh.setFormatter(fmt_detailed)
        root.addHandler(fh)
        sh = logging.StreamHandler()
        sh.setLevel(logging.WARNING)
        sh.setFormatter(fmt_concise)
        root.addHandler(sh)
    else:
        sh = logging.StreamHandler()
        sh.setLevel(level if debug else logging.WARNING)
        sh.setFormatter(fmt_detailed if debug else fmt_concise)
        root.addHandler(sh)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


# =========================================================================
# Helpers
# =========================================================================


class _Env:
    """Shared state of one CLI invocation."""

    def __init__(self, config: EngineConfig):
        self.config = config
        self.state_dir = config.state_dir or DEFAULT_STATE_DIR
        self.catalog = TemplateCatalog()

    @property
    def graphs_dir(self) -> Path:
        return self.state_dir / "graphs"

    def run_store(self) -> FilesystemRunStore:
        return FilesystemRunStore(self.state_dir)

    def event_store(self) -> FilesystemRunEventStore:
        return FilesystemRunEventStore(self.state_dir)

    def resolve_graph(self, source: str) -> WorkflowGraph:
        """A graph file path or a template id."""
        path = Path(source)
        if path.exists():
            try:
                return load_graph(path)
            except GraphImportError as e:
                raise click.ClickException(str(e)) from e
        if source in self.catalog:
            return self.catalog.get(source)
        raise click.BadParameter(
            f"'{source}' is neither a file nor a template "
            f"(templates: {', '.join(self.catalog.ids())})",
            param_hint="SOURCE",
        )

    def load_run(self, run_id: str) -> RunState:
        try:
            return self.run_store().load(run_id)
        except RunNotFoundError as e:
            raise click.ClickException(f"Run '{run_id}' not found") from e

    def graph_path(self, run_id: str) -> Path:
        return self.graphs_dir / f"{run_id}.json"

    def graph_for(self, state: RunState) -> WorkflowGraph:
        path = self.graph_path(state.run_id)
        if not path.exists():
            raise click.ClickException(
                f"Graph '{state.graph_id}' of run '{state.run_id}' is not stored"
            )
        return load_graph(path)


pass_env = click.make_pass_decorator(_Env)


def _mock_registry() -> AgentRegistry:
    """Agents that answer instantly with canned output, for dry runs."""
    registry = AgentRegistry(discover=False)
    for profile in BUILTIN_PROFILES + MARKETPLACE_PROFILES:
        files: tuple[GeneratedFile, ...] = ()
        if profile.requires_files:
            files = (
                GeneratedFile(
                    path=f"{profile.agent_id}_output.md",
                    content=f"# {profile.name}\n\nGenerated by the mock agent.\n",
                    language="markdown",
                ),
            )
        result = AgentResult(content=f"[{profile.name}] mock output", files=files)
        agent = MockAgent([result], repeat_last=True)
        if profile.core:
            registry.register(profile.agent_id, agent, profile=profile)
        else:
            registry.install(profile, agent)
    return registry


def _openai_registry(model: str | None, base_url: str | None) -> AgentRegistry:
    config = OpenAIAgentConfig(model=model, base_url=base_url)
    try:
        return register_openai_agents(
            AgentRegistry(), BUILTIN_PROFILES + MARKETPLACE_PROFILES, config
        )
    except ValueError as e:
        raise click.ClickException(str(e)) from e


def _scheduler(env: _Env, registry: AgentRegistry, console: Console) -> Scheduler:
    scheduler = Scheduler(
        registry,
        retry_policy=env.config.retry_policy(),
        attempt_timeout=env.config.attempt_timeout,
        run_store=env.run_store(),
        persistence=FilesystemPersistenceSink(env.state_dir),
        event_store=env.event_store(),
    )
    scheduler.add_listener(lambda event: _print_event(console, event))
    return scheduler


def _print_event(console: Console, event: RunEvent) -> None:
    failed = (RunEventType.NODE_FAILED, RunEventType.RUN_FAILED)
    style = "red" if event.event_type in failed else "dim"
    where = f" {event.node_id}" if event.node_id else ""
    attempt = f" #{event.attempt}" if event.attempt else ""
    summary = f": {escape(event.summary)}" if event.summary else ""
    console.print(
        f"[{style}]{event.event_type.value}[/{style}]{where}{attempt}{summary}",
        highlight=False,
    )


async def _settle(
    scheduler: Scheduler,
    state: RunState,
    prompt: ConsoleDecisionPrompt | None,
) -> RunState:
    """Answer decisions interactively until the run stops needing them."""
    while prompt is not None and state.status is RunStatus.WAITING_ON_DECISION:
        pending = state.pending_decision
        if pending is None:
            break
        option = await asyncio.to_thread(prompt.ask, pending, state)
        state = await scheduler.resume(state.run_id, pending.node_id, option)
    return state


def _finish(console: Console, state: RunState) -> None:
    stats = RunStatistics.from_state(state)
    console.print(
        f"\nRun [bold]{state.run_id}[/bold]: {state.status.value} "
        f"({stats.completed}/{stats.total_nodes} nodes, "
        f"{stats.files_generated} files)"
    )
    if state.status is RunStatus.WAITING_ON_DECISION and state.pending_decision:
        pending = state.pending_decision
        console.print(
            f"Waiting for a decision at '{pending.node_id}' "
            f"({', '.join(pending.option_ids)}). Continue with:\n"
            f"  agentflow resume {state.run_id} <option>"
        )
    if state.last_error:
        console.print(f"[red]{escape(state.last_error)}[/red]")
    if state.status is RunStatus.FAILED:
        sys.exit(1)


# =========================================================================
# Commands
# =========================================================================


@click.group()
@click.version_option(__version__, prog_name="agentflow")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--log-file",
    default=None,
    type=click.Path(),
    help="Write logs to file instead of stderr",
)
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON engine configuration",
)
@click.option(
    "--state-dir",
    default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help="Where runs are stored (default: .agentflow)",
)
@click.pass_context
def cli(
    ctx: click.Context,
    debug: bool,
    log_file: str | None,
    config_path: Path | None,
    state_dir: Path | None,
) -> None:
    """AgentFlow: run AI agent workflows with human decisions."""
    _configure_logging(debug, log_file=log_file)
    try:
        config = EngineConfig.load(config_path)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    if state_dir is not None:
        config = replace(config, state_dir=state_dir)
    ctx.obj = _Env(config)


@cli.command()
@pass_env
def templates(env: _Env) -> None:
    """List the built-in workflow templates."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("Template")
    table.add_column("Name")
    table.add_column("Nodes", justify="right")
    table.add_column("Description")
    for template_id in env.catalog.ids():
        graph = env.catalog.get(template_id)
        table.add_row(
            template_id, graph.name, str(len(graph.nodes)), graph.description
        )
    Console().print(table)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def validate(file: Path) -> None:
    """Check a graph file for schema and structural errors."""
    try:
        graph = load_graph(file)
    except GraphImportError as e:
        click.echo(click.style(f"[INVALID] {e}", fg="red"))
        sys.exit(1)
    click.echo(click.style(f"[VALID] {graph.name} ({graph.graph_id})", fg="green"))
    for warning in GraphValidator().lint(graph):
        click.echo(click.style(f"  warning: {warning}", fg="yellow"))


@cli.command()
@click.argument("source")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["json", "mermaid", "dot", "markdown"]),
    default="json",
    show_default=True,
)
@click.option("--run", "run_id", default=None, help="Overlay a run's node statuses")
@click.option(
    "--output", "-o", type=click.Path(dir_okay=False, path_type=Path), default=None
)
@pass_env
def export(
    env: _Env, source: str, fmt: str, run_id: str | None, output: Path | None
) -> None:
    """Export a graph file or template as JSON, Mermaid, DOT or Markdown."""
    graph = env.resolve_graph(source)
    state = env.load_run(run_id) if run_id else None
    if fmt == "json":
        text = export_graph(graph) + "\n"
    elif fmt == "mermaid":
        text = export_mermaid(graph, state)
    elif fmt == "dot":
        text = export_dot(graph, state)
    else:
        text = export_markdown(graph, state)

    if output is None:
        click.echo(text, nl=False)
    else:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text, encoding="utf-8")
        click.echo(f"Wrote {output}")


@cli.command()
@click.argument("source")
@click.option("--spec", "specification", default=None, help="What to build")
@click.option(
    "--spec-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Read the specification from a file",
)
@click.option("--model", default=None, help="Model for every agent node")
@click.option("--base-url", default=None, help="OpenAI-compatible endpoint")
@click.option("--mock", is_flag=True, help="Use canned agents (no model calls)")
@click.option(
    "--interactive/--no-interactive",
    default=True,
    help="Prompt for decisions instead of parking the run",
)
@pass_env
def run(
    env: _Env,
    source: str,
    specification: str | None,
    spec_file: Path | None,
    model: str | None,
    base_url: str | None,
    mock: bool,
    interactive: bool,
) -> None:
    """Run a graph file or template against a specification."""
    if spec_file is not None:
        specification = spec_file.read_text(encoding="utf-8")
    if not specification:
        raise click.UsageError("Provide --spec or --spec-file")

    graph = env.resolve_graph(source)
    run_id = str(uuid.uuid4())
    save_graph(graph, env.graph_path(run_id))

    console = Console()
    registry = _mock_registry() if mock else _openai_registry(model, base_url)
    scheduler = _scheduler(env, registry, console)
    prompt = ConsoleDecisionPrompt(console) if interactive else None

    async def _main() -> RunState:
        state = await scheduler.start_run(graph, specification or "", run_id=run_id)
        return await _settle(scheduler, state, prompt)

    console.print(f"Running [bold]{graph.name}[/bold] ({graph.graph_id})")
    _finish(console, asyncio.run(_main()))


@cli.command()
@click.argument("run_id")
@click.argument("option", required=False)
@click.option("--model", default=None, help="Model for every agent node")
@click.option("--base-url", default=None, help="OpenAI-compatible endpoint")
@click.option("--mock", is_flag=True, help="Use canned agents (no model calls)")
@click.option("--interactive/--no-interactive", default=True)
@pass_env
def resume(
    env: _Env,
    run_id: str,
    option: str | None,
    model: str | None,
    base_url: str | None,
    mock: bool,
    interactive: bool,
) -> None:
    """Recover a stored run and continue it, answering its decision with OPTION."""
    state = env.load_run(run_id)
    graph = env.graph_for(state)

    console = Console()
    registry = _mock_registry() if mock else _openai_registry(model, base_url)
    scheduler = _scheduler(env, registry, console)
    prompt = ConsoleDecisionPrompt(console) if interactive else None

    async def _main() -> RunState:
        recovered = await scheduler.recover(run_id, graph)
        if recovered.status is RunStatus.PAUSED:
            recovered = await scheduler.unpause(run_id)
        pending = recovered.pending_decision
        if option is not None and pending is not None:
            recovered = await scheduler.resume(run_id, pending.node_id, option)
        return await _settle(scheduler, recovered, prompt)

    try:
        final = asyncio.run(_main())
    except (DecisionError, GraphIntegrityError) as e:
        raise click.ClickException(str(e)) from e
    _finish(console, final)


@cli.command()
@click.argument("run_id", required=False)
@pass_env
def show(env: _Env, run_id: str | None) -> None:
    """Show a run's node statuses, or list stored runs."""
    console = Console()
    if run_id is None:
        store = env.run_store()
        table = Table(show_header=True, header_style="bold")
        table.add_column("Run")
        table.add_column("Graph")
        table.add_column("Status")
        table.add_column("Updated")
        for rid in store.list_runs():
            state = store.load(rid)
            table.add_row(rid, state.graph_id, state.status.value, state.updated_at)
        console.print(table)
        return

    state = env.load_run(run_id)
    stats = RunStatistics.from_state(state)
    console.print(f"[bold]Run {state.run_id}[/bold] ({state.graph_id})")
    console.print(
        f"Status: {state.status.value}  Progress: {stats.progress}%  "
        f"Files: {stats.files_generated}  Failed attempts: {stats.failed_attempts}"
    )
    table = Table(show_header=True, header_style="bold")
    table.add_column("Node")
    table.add_column("Status")
    table.add_column("Last entry")
    for node_id, status in state.node_statuses:
        entries = state.entries_for(node_id)
        style = _STATUS_STYLES[status.value]
        table.add_row(
            node_id,
            f"[{style}]{status.value}[/{style}]",
            entries[-1].message if entries else "",
        )
    console.print(table)
    if state.pending_decision:
        pending = state.pending_decision
        console.print(
            f"Waiting at '{pending.node_id}': {pending.question} "
            f"({', '.join(pending.option_ids)})"
        )
    if state.last_error:
        console.print(f"[red]{escape(state.last_error)}[/red]")


@cli.command()
@click.argument("run_id")
@click.option("--node", "node_id", default=None, help="Only events of this node")
@click.option("--json", "as_json", is_flag=True, help="One JSON object per line")
@pass_env
def trace(env: _Env, run_id: str, node_id: str | None, as_json: bool) -> None:
    """Print the event trace of a run."""
    env.load_run(run_id)
    events = env.event_store().get_events(run_id, node_id=node_id)
    console = Console()
    for event in events:
        if as_json:
            click.echo(
                json.dumps(
                    {
                        "sequence": event.sequence,
                        "event_type": event.event_type.value,
                        "node_id": event.node_id,
                        "attempt": event.attempt,
                        "option": event.option,
                        "summary": event.summary,
                        "created_at": event.created_at,
                    }
                )
            )
        else:
            console.print(f"[dim]{event.sequence:>4} {event.created_at}[/dim]", end=" ")
            _print_event(console, event)


@cli.command()
@click.argument("run_id")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Default: <state-dir>/reports/<run_id>.html",
)
@pass_env
def report(env: _Env, run_id: str, output: Path | None) -> None:
    """Write an HTML report for a run."""
    state = env.load_run(run_id)
    graph = env.graph_for(state)
    output = output or env.state_dir / "reports" / f"{run_id}.html"
    path = export_run_report(state, graph, output)
    click.echo(f"Report written to {path}")


@cli.command()
@click.option("--agent", "agent_id", default=None, help="Only this agent")
@pass_env
def performance(env: _Env, agent_id: str | None) -> None:
    """Show per-agent execution statistics over all stored runs."""
    store = env.run_store()
    stats = AgentPerformance.collect(store.load(rid) for rid in store.list_runs())
    if agent_id is not None:
        stats = {a: p for a, p in stats.items() if a == agent_id}
    if not stats:
        click.echo("No agent executions recorded")
        return
    table = Table(show_header=True, header_style="bold")
    for column in ("Agent", "Executions", "Success", "Avg (s)", "Files", "Last"):
        table.add_column(column)
    for perf in stats.values():
        table.add_row(
            perf.agent_id,
            str(perf.executions),
            f"{perf.success_rate}%",
            f"{perf.average_duration_seconds:.2f}",
            str(perf.files_generated),
            perf.last_execution or "",
        )
    Console().print(table)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
