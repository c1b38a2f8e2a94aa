from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Mapping, Optional

from apigraph.compiler.authorizers import ResolvedAuthorizer, managed_authorizer_id
from apigraph.compiler.validator import ValidatedDefinition
from apigraph.domain.models import IntegrationEntry
from apigraph.graph.model import Graph, GraphEdge, GraphNode
from apigraph.graph.tree import ROOT_PATH, ResourceTree


# no entry key can produce this id; entry ids all carry a type prefix
ROOT_ID = "root"


@dataclass(frozen=True)
class ResolvedMethod:
    key: str
    http_method: str
    resource_key: Optional[str]
    resource_path: str
    ancestors: tuple[str, ...]
    authorization_mode: str
    authorizer: Optional[ResolvedAuthorizer]
    integration_key: Optional[str]
    response_keys: tuple[str, ...]


@dataclass(frozen=True)
class ResolvedIntegration:
    key: str
    method_key: str
    http_method: str
    resource_path: str
    entry: IntegrationEntry


@dataclass(frozen=True)
class GraphBuildResult:
    graph: Graph
    generated_at: int
    methods: dict[str, ResolvedMethod]
    integrations: dict[str, ResolvedIntegration]
    creation_order: tuple[str, ...]  # node ids, every node after what it depends on

    def response_node_ids(self) -> tuple[str, ...]:
        ids = [n.id for n in self.graph.nodes_of_type("method_response")]
        ids += [n.id for n in self.graph.nodes_of_type("integration_response")]
        return tuple(ids)


def resource_id(key: Optional[str]) -> str:
    return f"resource:{key}" if key is not None else ROOT_ID


def method_id(key: str) -> str:
    return f"method:{key}"


def authorizer_node_id(resolved: ResolvedAuthorizer) -> str:
    if resolved.source == "managed":
        return resolved.authorizer_id
    return f"authorizer:external:{resolved.authorizer_id}"


def integration_id(key: str) -> str:
    return f"integration:{key}"


def method_response_id(key: str) -> str:
    return f"method_response:{key}"


def integration_response_id(key: str) -> str:
    return f"integration_response:{key}"


def build_api_graph(
    validated: ValidatedDefinition,
    tree: ResourceTree,
    authorizers: Mapping[str, Optional[ResolvedAuthorizer]],
) -> GraphBuildResult:
    """
    Assemble the resolved graph handed to the provisioning layer.

    Nodes:
      - resource (plus the implicit root), method, authorizer, integration,
        method_response, integration_response

    Edges point from the dependent entry to what it needs:
      - resource -> parent resource (CHILD_OF)
      - method -> resource (BINDS)
      - method -> authorizer (AUTHORIZED_BY)
      - integration -> method (INTEGRATES)
      - method_response -> method (RESPONDS)
      - integration_response -> method_response (MAPS)
    """
    store = validated.store
    g = Graph()
    now = int(time.time())

    g.add_node(GraphNode(id=ROOT_ID, type="resource", label=ROOT_PATH))
    for key in tree.order:
        res = tree.resources[key]
        g.add_node(GraphNode(id=resource_id(key), type="resource", label=res.path))
        g.add_edge(GraphEdge(src=resource_id(key), dst=resource_id(res.parent_key), type="CHILD_OF"))

    # managed authorizers are created even when no method uses them yet
    for key in sorted(store.authorizers):
        a = store.authorizers[key]
        g.add_node(GraphNode(id=managed_authorizer_id(key), type="authorizer", label=a.name or key))

    methods: dict[str, ResolvedMethod] = {}
    for key in sorted(store.methods):
        m = store.methods[key]
        path = tree.path_for(m.resource_key)
        mid = method_id(key)
        g.add_node(GraphNode(id=mid, type="method", label=f"{m.http_method} {path}"))
        g.add_edge(GraphEdge(src=mid, dst=resource_id(m.resource_key), type="BINDS"))

        resolved_auth = authorizers.get(key)
        if resolved_auth is not None:
            aid = authorizer_node_id(resolved_auth)
            label = resolved_auth.authorizer_key or resolved_auth.authorizer_id
            g.add_node(GraphNode(id=aid, type="authorizer", label=label))
            g.add_edge(GraphEdge(src=mid, dst=aid, type="AUTHORIZED_BY"))

        integration = validated.integration_by_method.get(key)
        responses = validated.responses_by_method.get(key, ())
        methods[key] = ResolvedMethod(
            key=key,
            http_method=m.http_method,
            resource_key=m.resource_key,
            resource_path=path,
            ancestors=tree.ancestors_of(m.resource_key),
            authorization_mode=m.authorization_mode,
            authorizer=resolved_auth,
            integration_key=integration.key if integration else None,
            response_keys=tuple(r.key for r in responses),
        )

    integrations: dict[str, ResolvedIntegration] = {}
    for key in sorted(store.integrations):
        i = store.integrations[key]
        owner = methods[i.method_key]
        label = f"{i.integration_type} {i.backend_uri or ''}".strip()
        g.add_node(GraphNode(id=integration_id(key), type="integration", label=label))
        g.add_edge(GraphEdge(src=integration_id(key), dst=method_id(i.method_key), type="INTEGRATES"))
        integrations[key] = ResolvedIntegration(
            key=key,
            method_key=i.method_key,
            http_method=owner.http_method,
            resource_path=owner.resource_path,
            entry=i,
        )

    for key in sorted(store.method_responses):
        r = store.method_responses[key]
        g.add_node(GraphNode(id=method_response_id(key), type="method_response", label=r.status_code))
        g.add_edge(GraphEdge(src=method_response_id(key), dst=method_id(r.method_key), type="RESPONDS"))

    for key in sorted(store.integration_responses):
        ir = store.integration_responses[key]
        status = ir.status_code or store.method_responses[ir.method_response_key].status_code
        g.add_node(GraphNode(id=integration_response_id(key), type="integration_response", label=status))
        g.add_edge(
            GraphEdge(
                src=integration_response_id(key),
                dst=method_response_id(ir.method_response_key),
                type="MAPS",
            )
        )

    # Make output stable (for diffs)
    g.edges.sort(key=lambda e: (e.type, e.src, e.dst))

    # the root and external authorizers already exist; they lead the order so
    # every edge target is listed before its source
    external = sorted(
        {authorizer_node_id(a) for a in authorizers.values() if a is not None and a.source == "external"}
    )
    order: list[str] = [ROOT_ID]
    order += [resource_id(k) for k in tree.order]
    order += [managed_authorizer_id(k) for k in sorted(store.authorizers)]
    order += external
    order += [method_id(k) for k in sorted(store.methods)]
    order += [integration_id(k) for k in sorted(store.integrations)]
    order += [method_response_id(k) for k in sorted(store.method_responses)]
    order += [integration_response_id(k) for k in sorted(store.integration_responses)]

    return GraphBuildResult(
        graph=g,
        generated_at=now,
        methods=methods,
        integrations=integrations,
        creation_order=tuple(order),
    )
