"""
Template catalog: named, pre-built workflow graphs.

Templates are ordinary WorkflowGraph values. ``instantiate`` clones one
under a fresh id so runs never share a graph identity with the catalog.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime

from agentflow.domain.builder import GraphBuilder
from agentflow.domain.models import AgentConfig, DecisionOption, WorkflowGraph
from agentflow.domain.validation import GraphValidator

logger = logging.getLogger("agentflow.templates")


def simple_linear() -> WorkflowGraph:
    return (
        GraphBuilder(
            "simple-linear", "Simple Workflow", "Linear workflow: Planner -> Coder"
        )
        .start()
        .agent("planner", "planner")
        .agent("coder", "coder")
        .end()
        .chain("start", "planner", "coder", "end")
        .build()
    )


def with_review() -> WorkflowGraph:
    return (
        GraphBuilder(
            "with-review",
            "With Review Decision",
            "Plan and code, then let a human decide whether to review",
        )
        .start()
        .agent("planner", "planner")
        .agent("coder", "coder")
        .decision(
            "decision",
            [
                DecisionOption("review", "Review", "Send the code to the reviewer"),
                DecisionOption("skip", "Skip", "Finish without a review"),
            ],
            question="Should the code be reviewed?",
            label="Review?",
        )
        .agent("reviewer", "reviewer")
        .end()
        .chain("start", "planner", "coder", "decision")
        .edge("decision", "reviewer", condition="review")
        .edge("decision", "end", condition="skip")
        .edge("reviewer", "end")
        .build()
    )


def full_pipeline() -> WorkflowGraph:
    return (
        GraphBuilder(
            "full-pipeline",
            "Full Pipeline",
            "Plan, code, then review or audit with a human-controlled fix loop",
        )
        .start()
        .agent("planner", "planner")
        .agent("coder", "coder")
        .decision(
            "review-decision",
            [
                DecisionOption("review", "Review", "Code review"),
                DecisionOption("security", "Security", "Security audit"),
                DecisionOption("none", "None", "Finish now"),
            ],
            question="Which check should run on the code?",
            label="Check",
        )
        .agent("reviewer", "reviewer")
        .agent("security", "security")
        .decision(
            "fix-decision",
            [
                DecisionOption("fix", "Fix", "Send the findings back to the coder"),
                DecisionOption("ok", "OK", "Accept the result"),
            ],
            question="Do the findings need fixing?",
            label="Fix?",
        )
        .end()
        .chain("start", "planner", "coder", "review-decision")
        .edge("review-decision", "reviewer", condition="review")
        .edge("review-decision", "security", condition="security")
        .edge("review-decision", "end", condition="none")
        .edge("reviewer", "fix-decision")
        .edge("security", "fix-decision")
        .edge("fix-decision", "coder", condition="fix")
        .edge("fix-decision", "end", condition="ok")
        .build()
    )


def auto_fix() -> WorkflowGraph:
    return (
        GraphBuilder(
            "auto-fix",
            "Auto-Fix Pipeline",
            "Review loop with a dedicated fix pass, then a security audit",
        )
        .start()
        .agent("planner", "planner")
        .agent("coder", "coder")
        .agent("reviewer", "reviewer")
        .decision(
            "quality-check",
            [
                DecisionOption("issues", "Issues", "The review found problems"),
                DecisionOption("ok", "OK", "The review passed"),
            ],
            question="Did the review find issues?",
            label="Quality check",
        )
        .agent("fix-coder", "coder", label="Fix-Coder")
        .agent("security", "security")
        .end()
        .chain("start", "planner", "coder", "reviewer", "quality-check")
        .edge("quality-check", "fix-coder", condition="issues")
        .edge("quality-check", "security", condition="ok")
        .edge("fix-coder", "reviewer")
        .edge("security", "end")
        .build()
    )


def iterative_dev() -> WorkflowGraph:
    return (
        GraphBuilder(
            "iterative-dev",
            "Iterative Development",
            "Fast development with an improvement loop",
        )
        .start()
        .agent("coder", "coder")
        .decision(
            "continue-decision",
            [
                DecisionOption("improve", "Improve", "Keep refining the code"),
                DecisionOption("review", "Review", "Have the code reviewed"),
                DecisionOption("done", "Done", "The code is complete"),
            ],
            question="How should we continue with the code?",
            label="Continue?",
        )
        .agent("reviewer", "reviewer")
        .end()
        .chain("start", "coder", "continue-decision")
        .edge("continue-decision", "coder", condition="improve")
        .edge("continue-decision", "reviewer", condition="review")
        .edge("continue-decision", "end", condition="done")
        .edge("reviewer", "continue-decision")
        .build()
    )


def rapid_prototype() -> WorkflowGraph:
    return (
        GraphBuilder(
            "rapid-prototype",
            "Rapid Prototyping",
            "A single coder pass with a short timeout",
        )
        .start()
        .agent(
            "coder",
            "coder",
            config=AgentConfig(temperature=0.2, max_tokens=8000, timeout=120.0),
        )
        .end()
        .chain("start", "coder", "end")
        .build()
    )


def security_first() -> WorkflowGraph:
    return (
        GraphBuilder(
            "security-first",
            "Security-First Pipeline",
            "Security review of the design and of the code",
        )
        .start()
        .agent("planner", "planner")
        .agent("security-pre", "security", label="Security (architecture)")
        .agent("coder", "coder")
        .agent("security-post", "security", label="Security (code)")
        .decision(
            "security-decision",
            [
                DecisionOption("insecure", "Insecure", "Send the audit back"),
                DecisionOption("secure", "Secure", "Accept the code"),
            ],
            question="Is the code secure?",
            label="Secure?",
        )
        .end()
        .chain(
            "start",
            "planner",
            "security-pre",
            "coder",
            "security-post",
            "security-decision",
        )
        .edge("security-decision", "coder", condition="insecure")
        .edge("security-decision", "end", condition="secure")
        .build()
    )


def tdd_workflow() -> WorkflowGraph:
    return (
        GraphBuilder(
            "tdd-workflow",
            "Test-Driven Development",
            "Tests first, then the implementation until the tests pass",
        )
        .start()
        .agent("planner", "planner", label="Test-Planner")
        .agent("test-coder", "coder", label="Test-Coder")
        .agent("impl-coder", "coder", label="Implementation")
        .agent("reviewer", "reviewer", label="Test-Reviewer")
        .decision(
            "tests-pass",
            [
                DecisionOption("failed", "Failed", "Iterate on the implementation"),
                DecisionOption("passed", "Passed", "All tests pass"),
            ],
            question="Do the tests pass?",
            label="Tests pass?",
        )
        .end()
        .chain("start", "planner", "test-coder", "impl-coder", "reviewer")
        .edge("reviewer", "tests-pass")
        .edge("tests-pass", "impl-coder", condition="failed")
        .edge("tests-pass", "end", condition="passed")
        .build()
    )


BUILTIN_TEMPLATES: dict[str, Callable[[], WorkflowGraph]] = {
    "simple-linear": simple_linear,
    "with-review": with_review,
    "full-pipeline": full_pipeline,
    "auto-fix": auto_fix,
    "iterative-dev": iterative_dev,
    "rapid-prototype": rapid_prototype,
    "security-first": security_first,
    "tdd-workflow": tdd_workflow,
}


class TemplateCatalog:
    """
    Lookup of template graphs by id.

    Every graph in the catalog is structurally valid: built-ins are
    validated on construction and ``register`` refuses invalid graphs.
    """

    def __init__(
        self,
        validator: GraphValidator | None = None,
        include_builtins: bool = True,
    ):
        self._validator = validator or GraphValidator()
        self._templates: dict[str, WorkflowGraph] = {}
        self._lock = threading.Lock()
        if include_builtins:
            for template_id, factory in BUILTIN_TEMPLATES.items():
                self.register(template_id, factory())

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._templates)

    def get(self, template_id: str) -> WorkflowGraph:
        """
        Raises:
            KeyError: If no template has that id
        """
        with self._lock:
            if template_id not in self._templates:
                raise KeyError(
                    f"Unknown template '{template_id}'. "
                    f"Available: {sorted(self._templates)}"
                )
            return self._templates[template_id]

    def __contains__(self, template_id: object) -> bool:
        with self._lock:
            return template_id in self._templates

    def register(
        self, template_id: str, graph: WorkflowGraph, replace_existing: bool = False
    ) -> None:
        """
        Add a template.

        Raises:
            ValidationError: If the graph is structurally invalid
            ValueError: If the id is taken and ``replace_existing`` is False
        """
        self._validator.validate(graph)
        with self._lock:
            if template_id in self._templates and not replace_existing:
                raise ValueError(f"Template '{template_id}' is already registered")
            self._templates[template_id] = graph
        logger.debug("Registered template '%s'", template_id)

    def instantiate(
        self,
        template_id: str,
        graph_id: str | None = None,
        name: str | None = None,
    ) -> WorkflowGraph:
        """Clone a template under a fresh id and timestamps."""
        template = self.get(template_id)
        now = datetime.now(UTC).isoformat()
        return replace(
            template,
            graph_id=graph_id or f"{template_id}-{uuid.uuid4().hex[:8]}",
            name=name or template.name,
            created_at=now,
            updated_at=now,
        )
