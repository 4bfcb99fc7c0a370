"""
Filesystem persistence adapters.

Layout under the state directory::

    runs/index.json             run_id -> {status, graph_id, updated_at}
    runs/<run_id>.json          latest RunState checkpoint
    output/<run_id>/<path>      handed-off artifacts
    output/<run_id>/messages.jsonl
"""

import json
import threading
from pathlib import Path
from typing import Any

from agentflow.domain.exceptions import RunNotFoundError
from agentflow.domain.interfaces import PersistenceSinkInterface, RunStoreInterface
from agentflow.domain.models import Artifact, Message, RunState, RunStatus
from agentflow.infrastructure.persistence.serialization import (
    dict_to_run_state,
    run_state_to_dict,
)


def _write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON using write-to-temp + rename."""
    temp_path = path.with_suffix(path.suffix + ".tmp")
    with open(temp_path, "w") as f:
        json.dump(data, f, indent=2)
    temp_path.replace(path)  # Atomic on POSIX


class FilesystemRunStore(RunStoreInterface):
    """
    Persistent run checkpoints.

    One JSON document per run plus an index for cheap listing. Every
    write replaces the whole document, so a crash mid-write leaves the
    previous checkpoint intact.
    """

    def __init__(self, base_dir: Path | str):
        self._base_dir = Path(base_dir)
        self._runs_dir = self._base_dir / "runs"
        self._index_path = self._runs_dir / "index.json"
        self._lock = threading.Lock()
        self._index: dict[str, Any] = self._load_or_create_index()

    def _load_or_create_index(self) -> dict[str, Any]:
        """Load existing index or create new one."""
        self._runs_dir.mkdir(parents=True, exist_ok=True)

        if self._index_path.exists():
            with open(self._index_path) as f:
                result: dict[str, Any] = json.load(f)
                return result

        return {"version": "1.0", "runs": {}}

    def _run_path(self, run_id: str) -> Path:
        return self._runs_dir / f"{run_id}.json"

    def save(self, state: RunState) -> None:
        with self._lock:
            _write_json_atomic(self._run_path(state.run_id), run_state_to_dict(state))
            self._index["runs"][state.run_id] = {
                "graph_id": state.graph_id,
                "status": state.status.value,
                "updated_at": state.updated_at,
            }
            _write_json_atomic(self._index_path, self._index)

    def load(self, run_id: str) -> RunState:
        path = self._run_path(run_id)
        if not path.exists():
            raise RunNotFoundError(run_id)
        with open(path) as f:
            return dict_to_run_state(json.load(f))

    def list_runs(self, status: RunStatus | None = None) -> list[str]:
        with self._lock:
            runs = dict(self._index["runs"])
        return [
            run_id
            for run_id, entry in runs.items()
            if status is None or entry["status"] == status.value
        ]


class FilesystemPersistenceSink(PersistenceSinkInterface):
    """Writes artifacts as files and appends messages to a JSONL log."""

    def __init__(self, base_dir: Path | str):
        self._output_dir = Path(base_dir) / "output"
        self._output_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def run_dir(self, run_id: str) -> Path:
        return self._output_dir / run_id

    def _target(self, run_id: str, path: str) -> Path:
        root = self.run_dir(run_id).resolve()
        target = (root / path).resolve()
        if not target.is_relative_to(root):
            raise ValueError(f"Artifact path escapes the output directory: {path}")
        return target

    def save_artifact(self, run_id: str, artifact: Artifact) -> None:
        target = self._target(run_id, artifact.path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(artifact.content)

    def save_message(self, run_id: str, message: Message) -> None:
        run_dir = self.run_dir(run_id)
        run_dir.mkdir(parents=True, exist_ok=True)
        record = {
            "node_id": message.node_id,
            "agent_id": message.agent_id,
            "content": message.content,
            "created_at": message.created_at,
        }
        with self._lock, open(run_dir / "messages.jsonl", "a") as f:
            f.write(json.dumps(record) + "\n")
