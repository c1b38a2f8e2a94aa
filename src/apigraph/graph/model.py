from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


NodeType = Literal[
    "resource",
    "method",
    "authorizer",
    "integration",
    "method_response",
    "integration_response",
]
EdgeType = Literal["CHILD_OF", "BINDS", "AUTHORIZED_BY", "INTEGRATES", "RESPONDS", "MAPS"]


@dataclass(frozen=True)
class GraphNode:
    id: str
    type: NodeType
    label: str


@dataclass(frozen=True)
class GraphEdge:
    src: str
    dst: str
    type: EdgeType


@dataclass
class Graph:
    nodes: dict[str, GraphNode]
    edges: list[GraphEdge]

    def __init__(self) -> None:
        self.nodes = {}
        self.edges = []

    def add_node(self, node: GraphNode) -> None:
        # de-dupe by id
        if node.id not in self.nodes:
            self.nodes[node.id] = node

    def add_edge(self, edge: GraphEdge) -> None:
        self.edges.append(edge)

    def nodes_of_type(self, node_type: NodeType) -> list[GraphNode]:
        return sorted((n for n in self.nodes.values() if n.type == node_type), key=lambda n: n.id)

    def edges_of_type(self, edge_type: EdgeType) -> list[GraphEdge]:
        return [e for e in self.edges if e.type == edge_type]
