"""
LangGraph Studio entrypoint.

Kept thin:
- exports a compiled `graph` for `langgraph dev` / Studio
- provides a `__main__` visualization helper to write signal_graph.png
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from signal_agent.graph.workflow import create_signal_workflow


def make_graph(config: Any | None = None):
    """Factory for LangGraph CLI/Studio (config currently unused)."""
    _ = config
    return create_signal_workflow().compiled


# Studio expects an importable compiled graph variable.
graph = make_graph()


def write_graph_png(output_path: Path) -> Path:
    png = graph.get_graph().draw_mermaid_png()
    output_path.write_bytes(png)
    return output_path


if __name__ == "__main__":
    repo_root = Path(__file__).resolve().parents[2]
    write_graph_png(repo_root / "signal_graph.png")
