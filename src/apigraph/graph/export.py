from __future__ import annotations

from typing import Any

from apigraph.graph.builder import GraphBuildResult


def to_json_payload(result: GraphBuildResult, api_name: str, fingerprint: str) -> dict[str, Any]:
    g = result.graph
    return {
        "api": api_name,
        "fingerprint": fingerprint,
        "generated_at": result.generated_at,
        "creation_order": list(result.creation_order),
        "nodes": [
            {"id": n.id, "type": n.type, "label": n.label}
            for n in sorted(g.nodes.values(), key=lambda x: (x.type, x.id))
        ],
        "edges": [{"src": e.src, "dst": e.dst, "type": e.type} for e in g.edges],
        "methods": {
            key: {
                "http_method": m.http_method,
                "resource_path": m.resource_path,
                "ancestors": list(m.ancestors),
                "authorizer_id": m.authorizer.authorizer_id if m.authorizer else None,
                "authorizer_source": m.authorizer.source if m.authorizer else None,
                "integration": m.integration_key,
                "responses": list(m.response_keys),
            }
            for key, m in sorted(result.methods.items())
        },
        "integrations": {
            key: {
                "method_key": i.method_key,
                "http_method": i.http_method,
                "resource_path": i.resource_path,
                **i.entry.model_dump(mode="json"),
            }
            for key, i in sorted(result.integrations.items())
        },
    }


def to_dot(result: GraphBuildResult, api_name: str = "apigraph") -> str:
    """Graphviz DOT export, deterministic for unchanged input."""
    g = result.graph
    lines = []
    name = api_name.replace('"', '\\"')
    lines.append(f'digraph "{name}" {{')
    lines.append('  rankdir="LR";')
    lines.append('  node [shape="box"];')

    for node in sorted(g.nodes.values(), key=lambda x: (x.type, x.id)):
        # Keep IDs safe for DOT: quote them
        label = node.label.replace('"', '\\"')
        lines.append(f'  "{node.id}" [label="{label}"];')

    for e in g.edges:
        lines.append(f'  "{e.src}" -> "{e.dst}" [label="{e.type}"];')

    lines.append("}")
    return "\n".join(lines)
