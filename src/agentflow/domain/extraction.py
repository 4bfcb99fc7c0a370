"""
File extraction from agent output.

Agents return files inside fenced code blocks. A block becomes a file when
its path is known, either from the info string (```python app/main.py) or
from a marker on the first line of the block:

    // filepath: src/App.tsx
    # filepath: app/main.py

Blocks without a path are ignored; they are prose examples, not files.
"""

from __future__ import annotations

import re

from agentflow.domain.models import GeneratedFile

_FENCE = re.compile(r"```([^\n`]*)\n(.*?)```", re.DOTALL)
_MARKER = re.compile(
    r"^\s*(?://|#|<!--|--)\s*file(?:path|name)?:\s*(\S+?)\s*(?:-->)?\s*$"
)

_EXTENSION_LANGUAGES = {
    "py": "python",
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "json": "json",
    "md": "markdown",
    "html": "html",
    "css": "css",
    "sh": "bash",
    "yml": "yaml",
    "yaml": "yaml",
    "toml": "toml",
    "sql": "sql",
}


def _looks_like_path(token: str) -> bool:
    return "." in token.rsplit("/", 1)[-1] or "/" in token


def language_for(path: str) -> str:
    """Guess a language tag from a file extension."""
    extension = path.rsplit(".", 1)[-1].lower() if "." in path else ""
    return _EXTENSION_LANGUAGES.get(extension, "")


def extract_files(content: str) -> tuple[GeneratedFile, ...]:
    """Extract the files declared in ``content``.

    A later block for the same path replaces an earlier one.

    Args:
        content: Raw agent output (markdown).

    Returns:
        Files in order of first appearance.
    """
    files: dict[str, GeneratedFile] = {}
    for match in _FENCE.finditer(content):
        info = match.group(1).strip().split()
        body = match.group(2)
        language = info[0] if info else ""
        path = None

        if len(info) >= 2 and _looks_like_path(info[1]):
            path = info[1]
        elif len(info) == 1 and "." in language and _looks_like_path(language):
            path, language = language, ""

        lines = body.split("\n")
        marker = _MARKER.match(lines[0]) if lines else None
        if marker:
            path = path or marker.group(1)
            body = "\n".join(lines[1:])

        if not path:
            continue
        if path.startswith("./"):
            path = path[2:]
        body = body.rstrip("\n") + "\n"
        files[path] = GeneratedFile(
            path=path, content=body, language=language or language_for(path)
        )
    return tuple(files.values())
