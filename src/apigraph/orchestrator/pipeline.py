from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from apigraph.compiler.authorizers import ResolvedAuthorizer, resolve_authorizer
from apigraph.compiler.fingerprint import compute_fingerprint
from apigraph.compiler.validator import ValidatedDefinition, validate_definition
from apigraph.config import Settings, get_settings
from apigraph.definition.loader import load_definition
from apigraph.deploy.trigger import DeploymentTrigger, TriggerOutcome
from apigraph.domain.models import ApiDefinition
from apigraph.graph.builder import GraphBuildResult, build_api_graph
from apigraph.graph.tree import ResourceTree, resolve_resource_tree
from apigraph.store.entries import EntryStore
from apigraph.store.sqlite_store import DeploymentSQLiteStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompileResult:
    api_name: str
    stage_name: str
    validated: ValidatedDefinition
    tree: ResourceTree
    authorizers: dict[str, Optional[ResolvedAuthorizer]]
    graph: GraphBuildResult
    fingerprint: str
    duration: float


@dataclass(frozen=True)
class DeployResult:
    compiled: CompileResult
    outcome: TriggerOutcome
    db_path: str


def _resolve_authorizers(store: EntryStore) -> dict[str, Optional[ResolvedAuthorizer]]:
    return {key: resolve_authorizer(store.methods[key], store.authorizers) for key in sorted(store.methods)}


def run_compile(
    definition: ApiDefinition | EntryStore,
    exclude_fields: Optional[Iterable[str]] = None,
) -> CompileResult:
    """
    One compilation pass: validate, resolve, build the graph, fingerprint.

    Raises:
        CompilationError: the snapshot failed validation; nothing was resolved.
    """
    start = time.time()
    store = definition if isinstance(definition, EntryStore) else EntryStore.from_definition(definition)
    if exclude_fields is None:
        exclude_fields = get_settings().fingerprint_exclude_fields

    logger.info("compiling %s: %s", store.api_name, store.counts())

    validated = validate_definition(store)

    # independent of each other; both only read the validated view
    tree = resolve_resource_tree(store.resources)
    authorizers = _resolve_authorizers(store)

    graph = build_api_graph(validated, tree, authorizers)
    fingerprint = compute_fingerprint(store, exclude_fields=exclude_fields)

    duration = time.time() - start
    logger.info(
        "compiled %s: %d nodes, %d edges, fingerprint=%s, duration=%.3fs",
        store.api_name,
        len(graph.graph.nodes),
        len(graph.graph.edges),
        fingerprint[:12],
        duration,
    )

    return CompileResult(
        api_name=store.api_name,
        stage_name=store.stage.stage_name,
        validated=validated,
        tree=tree,
        authorizers=authorizers,
        graph=graph,
        fingerprint=fingerprint,
        duration=duration,
    )


def run_compile_file(
    path: Path,
    settings: Optional[Settings] = None,
    exclude_fields: Optional[Iterable[str]] = None,
) -> CompileResult:
    """Load a definition file and compile it. ``exclude_fields`` overrides the settings."""
    settings = settings or get_settings()
    definition = load_definition(path)
    if exclude_fields is None:
        exclude_fields = settings.fingerprint_exclude_fields
    return run_compile(definition, exclude_fields=exclude_fields)


def run_deploy(
    definition: ApiDefinition | EntryStore,
    store: DeploymentSQLiteStore,
    exclude_fields: Optional[Iterable[str]] = None,
) -> DeployResult:
    """Compile, then cut a deployment if the fingerprint is new for this API."""
    compiled = run_compile(definition, exclude_fields=exclude_fields)
    outcome = DeploymentTrigger(store).fire(compiled)
    return DeployResult(compiled=compiled, outcome=outcome, db_path=str(store.db_path))


def run_deploy_file(
    path: Path,
    db_path: Optional[Path] = None,
    settings: Optional[Settings] = None,
) -> DeployResult:
    settings = settings or get_settings()
    definition = load_definition(path)
    store = DeploymentSQLiteStore(db_path or settings.db_path_for(path.resolve()))
    return run_deploy(definition, store, exclude_fields=settings.fingerprint_exclude_fields)
