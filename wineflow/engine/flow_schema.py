"""
Flow graph schema: node models, the FlowGraph container and the document validator.

A flow document looks like:

    {
        "rootId": "q1",
        "nodes": {
            "q1": {"id": "q1", "type": "question", "text": "...",
                   "options": [{"label": "...", "nextId": "q2"}]},
            "m1": {"id": "m1", "type": "message", "text": "...", "nextId": "END"},
            "w1": {"id": "w1", "type": "wine", "wine": "Chinon", "wineKey": "chinon"}
        }
    }

Validation is fail-fast: the first violated rule is raised as FlowGraphError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Annotated, Any, Iterable, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictStr, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)


class FlowError(Exception):
    """Base exception for flow graph and session errors."""
    pass


class FlowGraphError(FlowError):
    """Raised when a flow document fails validation."""

    def __init__(self, rule: str, message: str, node_id: Optional[str] = None, field: Optional[str] = None):
        self.rule = rule
        self.node_id = node_id
        self.field = field
        where = []
        if node_id is not None:
            where.append(f"node '{node_id}'")
        if field:
            where.append(f"field '{field}'")
        prefix = f"[{rule}] " + (", ".join(where) + ": " if where else "")
        super().__init__(prefix + message)


_NODE_CONFIG = ConfigDict(extra="forbid", frozen=True)


class FlowOption(BaseModel):
    """One selectable answer of a question."""
    model_config = _NODE_CONFIG

    label: StrictStr
    next_id: StrictStr = Field(alias="nextId")


class QuestionNode(BaseModel):
    model_config = _NODE_CONFIG

    id: StrictStr
    type: Literal["question"] = "question"
    text: StrictStr
    options: tuple[FlowOption, ...]


class MessageNode(BaseModel):
    model_config = _NODE_CONFIG

    id: StrictStr
    type: Literal["message"] = "message"
    text: StrictStr
    next_id: StrictStr = Field(alias="nextId")


class ResultNode(BaseModel):
    """Leaf naming a wine; `lookup_key` feeds the recommendation lookup."""
    model_config = _NODE_CONFIG

    id: StrictStr
    type: Literal["wine"] = "wine"
    display_name: StrictStr = Field(alias="wine")
    lookup_key: StrictStr = Field(alias="wineKey")
    blurb: Optional[StrictStr] = None


FlowNode = Annotated[Union[QuestionNode, MessageNode, ResultNode], Field(discriminator="type")]

_node_adapter: TypeAdapter = TypeAdapter(FlowNode)

# Missing or unknown `type` tag; pydantic reports these with an empty loc
_TAG_ERRORS = {"union_tag_not_found", "union_tag_invalid"}


@dataclass(frozen=True)
class FlowGraph:
    """Validated, read-only flow graph."""

    root_id: str
    nodes: Mapping[str, Union[QuestionNode, MessageNode, ResultNode]]

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", MappingProxyType(dict(self.nodes)))


def _format_loc(loc: Iterable[Any], tag: Any) -> Optional[str]:
    parts = list(loc)
    # Discriminated unions prefix the location with the matched tag
    if parts and parts[0] == tag:
        parts = parts[1:]
    if not parts:
        return None
    return ".".join(str(p) for p in parts)


def _parse_node(node_id: str, raw: Any) -> Union[QuestionNode, MessageNode, ResultNode]:
    try:
        node = _node_adapter.validate_python(raw)
    except ValidationError as e:
        first = e.errors()[0]
        tag = raw.get("type") if isinstance(raw, dict) else None
        if first.get("type") in _TAG_ERRORS:
            field = "type"
        else:
            field = _format_loc(first.get("loc", ()), tag)
        raise FlowGraphError(
            "node_shape",
            first.get("msg", "invalid node"),
            node_id=node_id,
            field=field,
        ) from e

    if node.id != node_id:
        raise FlowGraphError(
            "node_shape",
            f"id '{node.id}' does not match its key",
            node_id=node_id,
            field="id",
        )
    return node


def validate_flow_document(document: Any, *, strict_references: bool = False) -> FlowGraph:
    """
    Validate an untyped flow document and build a FlowGraph.

    Rules, in order:
        1. document has a string `rootId` and a mapping `nodes`
        2. every node parses as exactly one node variant
        3. every question has at least one option
        4. `rootId` is a key of `nodes`
        5. (strict_references only) every nextId resolves or is the terminal sentinel

    Raises:
        FlowGraphError: on the first violated rule
    """
    if not isinstance(document, dict):
        raise FlowGraphError("document_shape", "flow document must be a mapping")
    root_id = document.get("rootId")
    if not isinstance(root_id, str):
        raise FlowGraphError("document_shape", "missing or non-string 'rootId'", field="rootId")
    raw_nodes = document.get("nodes")
    if not isinstance(raw_nodes, dict):
        raise FlowGraphError("document_shape", "missing or non-mapping 'nodes'", field="nodes")

    nodes = {node_id: _parse_node(node_id, raw) for node_id, raw in raw_nodes.items()}

    for node_id, node in nodes.items():
        if isinstance(node, QuestionNode) and not node.options:
            raise FlowGraphError(
                "empty_options", "question must have at least one option", node_id=node_id, field="options"
            )

    if root_id not in nodes:
        raise FlowGraphError("root_missing", f"rootId '{root_id}' does not exist in nodes", field="rootId")

    graph = FlowGraph(root_id=root_id, nodes=nodes)

    if strict_references:
        _check_references(graph)

    logger.debug("Validated flow graph: root=%s nodes=%d", root_id, len(nodes))
    return graph


def _check_references(graph: FlowGraph) -> None:
    # Imported here: the engine module depends on this one
    from wineflow.engine.flow_engine import is_terminal, iter_next_ids

    for node_id, node in graph.nodes.items():
        for field, next_id in iter_next_ids(node):
            if not is_terminal(next_id) and next_id not in graph.nodes:
                raise FlowGraphError(
                    "dangling_reference",
                    f"'{next_id}' is neither a node id nor the terminal sentinel",
                    node_id=node_id,
                    field=field,
                )
