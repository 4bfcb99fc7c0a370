"""
Console decision prompt.

Shows a parked run's pending decision and asks a human to pick an
option via CLI prompts.
"""

from __future__ import annotations

from rich.console import Console
from rich.prompt import Prompt
from rich.syntax import Syntax
from rich.table import Table

from agentflow.domain.models import PendingDecision, RunState


class ConsoleDecisionPrompt:
    """
    Asks a human to resolve a pending decision.

    This implementation uses synchronous CLI prompts; call it from a
    worker thread (``asyncio.to_thread``) when the event loop must keep
    running.
    """

    def __init__(
        self,
        console: Console | None = None,
        title: str = "DECISION REQUIRED",
        preview_lines: int = 30,
    ):
        """
        Args:
            console: Output console (a recording console in tests)
            title: Heading displayed above the question
            preview_lines: Lines of the latest output shown for context
        """
        self.console = console or Console()
        self.title = title
        self.preview_lines = preview_lines

    def show_context(self, state: RunState) -> None:
        """Print the latest agent message and the files produced so far."""
        if state.messages:
            latest = state.messages[-1]
            self.console.print(
                f"\n[dim]Latest output from {latest.node_id} ({latest.agent_id}):[/dim]"
            )
            lines = latest.content.splitlines()
            self.console.print("\n".join(lines[: self.preview_lines]))
            if len(lines) > self.preview_lines:
                self.console.print(
                    f"[dim]... {len(lines) - self.preview_lines} more lines[/dim]"
                )

        files = state.files()
        if files:
            self.console.print("\n[dim]Files:[/dim]")
            for path, artifact in sorted(files.items()):
                origin = artifact.produced_by_node_id
                self.console.print(f"  [dim]{path} ({origin})[/dim]")

    def show_file(self, state: RunState, path: str) -> None:
        artifact = state.files().get(path)
        if artifact is None:
            self.console.print(f"[red]No file named {path}[/red]")
            return
        self.console.print(
            Syntax(
                artifact.content,
                artifact.language or "text",
                theme="monokai",
                line_numbers=True,
            )
        )

    def ask(self, pending: PendingDecision, state: RunState | None = None) -> str:
        """
        Display the decision and prompt for an option.

        Args:
            pending: The run's pending decision
            state: Run snapshot shown for context (optional)

        Returns:
            The chosen option id
        """
        self.console.print(f"\n[bold yellow]═══ {self.title} ═══[/bold yellow]")
        self.console.print(f"[dim]Node: {pending.node_id}[/dim]")
        if state is not None:
            self.console.print(f"[dim]Run: {state.run_id}[/dim]")
            self.show_context(state)

        table = Table(show_header=True, header_style="bold")
        table.add_column("Option")
        table.add_column("Label")
        table.add_column("Description")
        for option in pending.options:
            table.add_row(option.option_id, option.label, option.description)
        self.console.print(table)

        question = pending.question or "Choose how to continue"
        choices = list(pending.option_ids)
        can_view = state is not None and bool(state.files()) and "v" not in choices
        if can_view:
            choices.append("v")

        decision = Prompt.ask(
            f"\n[bold]{question}[/bold]", choices=choices, console=self.console
        )
        while can_view and decision == "v" and state is not None:
            path = Prompt.ask(
                "[bold]File to view[/bold]",
                choices=sorted(state.files()),
                console=self.console,
            )
            self.show_file(state, path)
            decision = Prompt.ask(
                f"\n[bold]{question}[/bold]", choices=choices, console=self.console
            )
        return decision
