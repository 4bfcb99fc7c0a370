"""Tests for graph document import and export."""

import json

import jsonschema
import pytest

from agentflow.domain.builder import GraphBuilder
from agentflow.domain.exceptions import GraphImportError, ValidationError
from agentflow.domain.models import AgentConfig, AgentNode
from agentflow.infrastructure.graph_io import (
    export_graph,
    import_graph,
    load_graph,
    save_graph,
)
from agentflow.schemas import get_graph_schema, validate_graph_document
from agentflow.templates import BUILTIN_TEMPLATES


class TestExportImport:
    """Graph documents reproduce the graph they were exported from."""

    @pytest.mark.parametrize("template_id", sorted(BUILTIN_TEMPLATES))
    def test_templates_round_trip(self, template_id: str) -> None:
        graph = BUILTIN_TEMPLATES[template_id]()

        assert import_graph(export_graph(graph)) == graph

    def test_agent_config_is_preserved(self) -> None:
        config = AgentConfig(model="llama3", streaming=True, timeout=30.0)
        graph = (
            GraphBuilder("g", "G")
            .start()
            .agent("code", "coder", config=config)
            .end()
            .chain("start", "code", "end")
            .build()
        )

        node = import_graph(export_graph(graph)).node("code")

        assert isinstance(node, AgentNode)
        assert node.config == config

    def test_document_shape(self, decision_graph) -> None:
        data = json.loads(export_graph(decision_graph))

        review = next(n for n in data["nodes"] if n["id"] == "review")
        assert review["type"] == "human_decision"
        assert [o["id"] for o in review["options"]] == ["approve", "reject"]
        assert {e["condition"] for e in data["edges"]} == {None, "approve", "reject"}


class TestImportErrors:
    """All import failures surface as GraphImportError."""

    def test_invalid_json(self) -> None:
        with pytest.raises(GraphImportError, match="Invalid JSON"):
            import_graph("{not json")

    def test_schema_violation_names_location(self, linear_graph) -> None:
        data = json.loads(export_graph(linear_graph))
        data["nodes"][1]["type"] = "robot"

        with pytest.raises(GraphImportError, match="nodes/1/type") as exc_info:
            import_graph(json.dumps(data))

        assert isinstance(exc_info.value.__cause__, jsonschema.ValidationError)

    def test_agent_node_requires_agent_id(self, linear_graph) -> None:
        data = json.loads(export_graph(linear_graph))
        del data["nodes"][1]["agent_id"]

        with pytest.raises(GraphImportError, match="Schema violation"):
            import_graph(json.dumps(data))

    def test_structural_error_is_chained(self, linear_graph) -> None:
        data = json.loads(export_graph(linear_graph))
        data["edges"] = data["edges"][:-1]

        with pytest.raises(GraphImportError, match="Invalid graph 'linear'") as exc:
            import_graph(json.dumps(data))

        assert isinstance(exc.value.__cause__, ValidationError)

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(GraphImportError, match="Cannot read"):
            load_graph(tmp_path / "absent.json")


class TestFiles:
    """Tests for save_graph/load_graph."""

    def test_save_and_load(self, tmp_path, decision_graph) -> None:
        path = save_graph(decision_graph, tmp_path / "graphs" / "review.json")

        assert path.exists()
        assert load_graph(path) == decision_graph


class TestSchemas:
    """Tests for the bundled JSON schemas."""

    def test_graph_schema_loads(self) -> None:
        schema = get_graph_schema()

        assert schema["title"] == "Workflow Graph"
        jsonschema.Draft202012Validator.check_schema(schema)

    def test_rejects_unknown_properties(self, linear_graph) -> None:
        data = json.loads(export_graph(linear_graph))
        data["owner"] = "someone"

        with pytest.raises(jsonschema.ValidationError):
            validate_graph_document(data)
