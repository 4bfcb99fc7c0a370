"""Tests for the command line interface."""

import json
import logging
from pathlib import Path

import pytest
from click.testing import CliRunner
from rich.prompt import Prompt

from agentflow.application import RunLedger
from agentflow.cli import cli
from agentflow.domain.models import RunStatus
from agentflow.infrastructure.graph_io import save_graph
from agentflow.infrastructure.persistence import FilesystemRunStore
from agentflow.templates import TemplateCatalog


@pytest.fixture(autouse=True)
def _restore_logging():
    """The CLI installs root handlers on every invocation."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner(env={"COLUMNS": "200"})


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    return tmp_path / "state"


def invoke(runner: CliRunner, state_dir: Path, *args: str, **kwargs):
    return runner.invoke(cli, ["--state-dir", str(state_dir), *args], **kwargs)


def only_run(state_dir: Path) -> str:
    runs = FilesystemRunStore(state_dir).list_runs()
    assert len(runs) == 1
    return runs[0]


class TestGraphCommands:
    """templates, validate and export."""

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "agentflow" in result.output

    def test_templates(self, runner: CliRunner, state_dir: Path) -> None:
        result = invoke(runner, state_dir, "templates")

        assert result.exit_code == 0
        for template_id in ("simple-linear", "with-review", "tdd-workflow"):
            assert template_id in result.output

    def test_validate_valid(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "graph.json"
        save_graph(TemplateCatalog().get("with-review"), path)

        result = runner.invoke(cli, ["validate", str(path)])

        assert result.exit_code == 0
        assert "[VALID] With Review Decision (with-review)" in result.output

    def test_validate_invalid(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "graph.json"
        path.write_text(json.dumps({"id": "x"}))

        result = runner.invoke(cli, ["validate", str(path)])

        assert result.exit_code == 1
        assert "[INVALID]" in result.output

    def test_export_template_mermaid(self, runner: CliRunner, state_dir: Path) -> None:
        result = invoke(
            runner, state_dir, "export", "simple-linear", "--format", "mermaid"
        )

        assert result.exit_code == 0
        assert result.output.startswith("flowchart LR")

    def test_export_json_to_file(
        self, runner: CliRunner, state_dir: Path, tmp_path: Path
    ) -> None:
        target = tmp_path / "out" / "graph.json"

        result = invoke(runner, state_dir, "export", "auto-fix", "-o", str(target))

        assert result.exit_code == 0
        assert json.loads(target.read_text())["id"] == "auto-fix"

    def test_export_unknown_source(self, runner: CliRunner, state_dir: Path) -> None:
        result = invoke(runner, state_dir, "export", "nope")

        assert result.exit_code == 2
        assert "neither a file nor a template" in result.output


class TestRunCommands:
    """run, resume, show, trace and report against a mock registry."""

    def test_run_requires_spec(self, runner: CliRunner, state_dir: Path) -> None:
        result = invoke(runner, state_dir, "run", "simple-linear", "--mock")

        assert result.exit_code == 2
        assert "Provide --spec" in result.output

    def test_run_linear(self, runner: CliRunner, state_dir: Path) -> None:
        result = invoke(
            runner, state_dir, "run", "simple-linear", "--spec", "hello", "--mock"
        )

        assert result.exit_code == 0, result.output
        run_id = only_run(state_dir)
        assert f"Run {run_id}: completed" in result.output
        assert (state_dir / "graphs" / f"{run_id}.json").exists()
        assert (state_dir / "output" / run_id / "coder_output.md").exists()

    def test_run_spec_file(
        self, runner: CliRunner, state_dir: Path, tmp_path: Path
    ) -> None:
        spec = tmp_path / "spec.md"
        spec.write_text("Build a CLI")

        result = invoke(
            runner,
            state_dir,
            "run",
            "simple-linear",
            "--spec-file",
            str(spec),
            "--mock",
        )

        assert result.exit_code == 0, result.output
        state = FilesystemRunStore(state_dir).load(only_run(state_dir))
        assert state.specification == "Build a CLI"

    def test_parked_run_then_resume(self, runner: CliRunner, state_dir: Path) -> None:
        result = invoke(
            runner,
            state_dir,
            "run",
            "with-review",
            "--spec",
            "hello",
            "--mock",
            "--no-interactive",
        )
        assert result.exit_code == 0, result.output
        run_id = only_run(state_dir)
        assert f"agentflow resume {run_id} <option>" in result.output

        result = invoke(
            runner, state_dir, "resume", run_id, "skip", "--mock", "--no-interactive"
        )

        assert result.exit_code == 0, result.output
        assert f"Run {run_id}: completed" in result.output
        state = FilesystemRunStore(state_dir).load(run_id)
        assert state.status is RunStatus.COMPLETED
        assert [d.option_id for d in state.decisions] == ["skip"]

    def test_resume_unknown_option(self, runner: CliRunner, state_dir: Path) -> None:
        invoke(
            runner,
            state_dir,
            "run",
            "with-review",
            "--spec",
            "hello",
            "--mock",
            "--no-interactive",
        )
        run_id = only_run(state_dir)

        result = invoke(
            runner, state_dir, "resume", run_id, "maybe", "--mock", "--no-interactive"
        )

        assert result.exit_code == 1
        assert "maybe" in result.output

    def test_interactive_decision(
        self, monkeypatch, runner: CliRunner, state_dir: Path
    ) -> None:
        monkeypatch.setattr(Prompt, "ask", lambda *args, **kwargs: "review")

        result = invoke(
            runner, state_dir, "run", "with-review", "--spec", "hello", "--mock"
        )

        assert result.exit_code == 0, result.output
        state = FilesystemRunStore(state_dir).load(only_run(state_dir))
        assert state.status is RunStatus.COMPLETED
        assert "reviewer" in state.visited

    def test_resume_unknown_run(self, runner: CliRunner, state_dir: Path) -> None:
        result = invoke(runner, state_dir, "resume", "nope", "--mock")

        assert result.exit_code == 1
        assert "Run 'nope' not found" in result.output

    def test_show_trace_report(self, runner: CliRunner, state_dir: Path) -> None:
        invoke(runner, state_dir, "run", "simple-linear", "--spec", "hi", "--mock")
        run_id = only_run(state_dir)

        listing = invoke(runner, state_dir, "show")
        assert listing.exit_code == 0
        assert run_id in listing.output

        detail = invoke(runner, state_dir, "show", run_id)
        assert detail.exit_code == 0
        assert "Progress: 100.0%" in detail.output
        assert "planner" in detail.output

        trace = invoke(runner, state_dir, "trace", run_id, "--json")
        assert trace.exit_code == 0
        events = [json.loads(line) for line in trace.output.splitlines()]
        assert events[0]["event_type"] == "RUN_STARTED"
        assert events[-1]["event_type"] == "RUN_COMPLETED"
        assert [e["sequence"] for e in events] == sorted(e["sequence"] for e in events)

        report = invoke(runner, state_dir, "report", run_id)
        assert report.exit_code == 0
        assert (state_dir / "reports" / f"{run_id}.html").exists()

    def test_trace_node_filter(self, runner: CliRunner, state_dir: Path) -> None:
        invoke(runner, state_dir, "run", "simple-linear", "--spec", "hi", "--mock")
        run_id = only_run(state_dir)

        result = invoke(runner, state_dir, "trace", run_id, "--node", "coder", "--json")

        events = [json.loads(line) for line in result.output.splitlines()]
        assert events
        assert {e["node_id"] for e in events} == {"coder"}

    def test_resume_paused_run(self, runner: CliRunner, state_dir: Path) -> None:
        graph = TemplateCatalog().get("simple-linear")
        ledger = RunLedger.open("paused-run", graph, "hello")
        ledger.pause("start")
        FilesystemRunStore(state_dir).save(ledger.snapshot())
        save_graph(graph, state_dir / "graphs" / "paused-run.json")

        result = invoke(runner, state_dir, "resume", "paused-run", "--mock")

        assert result.exit_code == 0, result.output
        assert "Run paused-run: completed" in result.output
        state = FilesystemRunStore(state_dir).load("paused-run")
        assert [e.agent_id for e in state.executions] == ["planner", "coder"]


class TestPerformanceCommand:
    """Per-agent statistics over stored runs."""

    def test_no_runs(self, runner: CliRunner, state_dir: Path) -> None:
        result = invoke(runner, state_dir, "performance")

        assert result.exit_code == 0
        assert "No agent executions recorded" in result.output

    def test_after_runs(self, runner: CliRunner, state_dir: Path) -> None:
        for _ in range(2):
            invoke(runner, state_dir, "run", "simple-linear", "--spec", "hi", "--mock")

        result = invoke(runner, state_dir, "performance")

        assert result.exit_code == 0, result.output
        lines = [line for line in result.output.splitlines() if "planner" in line]
        assert len(lines) == 1
        assert "2" in lines[0]
        assert "100.0%" in lines[0]
        assert "coder" in result.output

    def test_agent_filter(self, runner: CliRunner, state_dir: Path) -> None:
        invoke(runner, state_dir, "run", "simple-linear", "--spec", "hi", "--mock")

        result = invoke(runner, state_dir, "performance", "--agent", "coder")

        assert "coder" in result.output
        assert "planner" not in result.output
