"""
Flow store: load flow documents into immutable graphs.

The process-wide graph is set once at startup with init_flow_graph() and read
with get_flow_graph(). Loading again (tests, the validate command) just builds
an independent graph; stores are never patched.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Optional

from wineflow.engine.flow_schema import FlowError, FlowGraph, validate_flow_document

logger = logging.getLogger(__name__)


class FlowStoreError(FlowError):
    """Raised for flow file and process store problems."""
    pass


_flow_graph: Optional[FlowGraph] = None


def load_flow_graph(document: Any, *, strict_references: bool = False) -> FlowGraph:
    """
    Validate a parsed flow document and return a new FlowGraph.

    Raises:
        FlowGraphError: If the document is malformed
    """
    return validate_flow_document(document, strict_references=strict_references)


def load_flow_file(path: str | Path, *, strict_references: bool = False) -> FlowGraph:
    """
    Load a flow document from a JSON file.

    Raises:
        FlowStoreError: If the file is missing, unreadable or not valid JSON
        FlowGraphError: If the document is malformed
    """
    flow_path = Path(path)
    if not flow_path.exists():
        raise FlowStoreError(f"Flow file not found: {flow_path}")

    try:
        with open(flow_path, "r", encoding="utf-8") as f:
            document = json.load(f)
    except json.JSONDecodeError as e:
        raise FlowStoreError(f"Invalid JSON in {flow_path}: {e}") from e
    except UnicodeDecodeError as e:
        raise FlowStoreError(f"Flow file is not valid UTF-8: {flow_path}: {e}") from e
    except OSError as e:
        raise FlowStoreError(f"Cannot read flow file {flow_path}: {e}") from e

    graph = load_flow_graph(document, strict_references=strict_references)
    logger.info("Loaded flow %s (%d nodes, root=%s)", flow_path, len(graph.nodes), graph.root_id)
    return graph


def init_flow_graph(graph: FlowGraph) -> FlowGraph:
    """Install the process-wide flow graph. Only one call is allowed."""
    global _flow_graph
    if _flow_graph is not None:
        raise FlowStoreError("Flow graph already initialized")
    _flow_graph = graph
    return graph


def get_flow_graph() -> FlowGraph:
    if _flow_graph is None:
        raise FlowStoreError("Flow graph not initialized; call init_flow_graph() at startup")
    return _flow_graph


def flow_summary(graph: FlowGraph) -> dict[str, int]:
    """Count nodes per document type tag."""
    counts = Counter(node.type for node in graph.nodes.values())
    return {"question": counts["question"], "message": counts["message"], "wine": counts["wine"]}
