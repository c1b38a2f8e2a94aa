"""
Reference validation for a definition snapshot.

Every check runs on every pass; none stops early, so one run reports every
problem in the definition. Four kinds of violation are produced:

- reference: a key points at an entry that does not exist
- shape: a field fails a format or enumeration constraint
- cycle: a resource parent chain loops back on itself
- conflict: two entries claim the same slot, or an authorizer cannot be resolved

Any violation fails the pass. Nothing downstream runs on a snapshot that did
not validate.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, Optional

from apigraph.compiler.authorizers import resolve_authorizer
from apigraph.domain.models import (
    AUTHORIZATION_MODES,
    AUTHORIZER_TYPES,
    CONNECTION_TYPES,
    CONTENT_HANDLINGS,
    HTTP_METHODS,
    INTEGRATION_TYPES,
    MAX_AUTHORIZER_TTL,
    MAX_TIMEOUT_MS,
    MIN_TIMEOUT_MS,
    PASSTHROUGH_BEHAVIORS,
    IntegrationEntry,
    ResponseEntry,
)
from apigraph.domain.violations import Violation
from apigraph.errors import AuthorizerResolutionError, CompilationError
from apigraph.graph.tree import find_parent_cycles
from apigraph.store.entries import EntryStore

logger = logging.getLogger(__name__)


STATUS_CODE_RE = re.compile(r"^[1-5][0-9][0-9]$")

_ENTRY_TYPES = {
    "resources": "resource",
    "methods": "method",
    "authorizers": "authorizer",
    "integrations": "integration",
    "method_responses": "method_response",
    "integration_responses": "integration_response",
}


@dataclass(frozen=True)
class ValidatedDefinition:
    """
    A snapshot that passed validation, with its cross-reference indexes.

    Every key reference in ``store`` is known to resolve.
    """

    store: EntryStore
    integration_by_method: Mapping[str, IntegrationEntry]
    responses_by_method: Mapping[str, tuple[ResponseEntry, ...]]
    integration_responses_by_response: Mapping[str, tuple[str, ...]]


class _Collector:
    def __init__(self) -> None:
        self.violations: list[Violation] = []

    def add(self, kind: str, entry_type: str, key: str, field: str, message: str) -> None:
        self.violations.append(
            Violation(entry_type=entry_type, key=key, field=field, kind=kind, message=message)
        )

    def missing(self, entry_type: str, key: str, field: str, ref: str) -> None:
        self.add("reference", entry_type, key, field, f"{field} {ref!r} not found")

    def enum(self, entry_type: str, key: str, field: str, value: object, allowed: Iterable[str]) -> None:
        self.add(
            "shape",
            entry_type,
            key,
            field,
            f"{field} {value!r} is not one of {', '.join(sorted(allowed))}",
        )


def _check_duplicate_keys(store: EntryStore, c: _Collector) -> None:
    for collection, key in store.duplicate_keys:
        entry_type = _ENTRY_TYPES.get(collection, collection)
        c.add("conflict", entry_type, key, "key", f"key {key!r} is declared more than once")


def _check_entry_keys(store: EntryStore, c: _Collector) -> None:
    for collection, entry_type in _ENTRY_TYPES.items():
        for key in sorted(getattr(store, collection)):
            if not key.strip():
                c.add("shape", entry_type, key, "key", "key must not be empty")


def _check_resources(store: EntryStore, c: _Collector) -> None:
    resources = store.resources
    siblings: dict[tuple[Optional[str], str], list[str]] = {}

    for key in sorted(resources):
        r = resources[key]
        if not r.path_part:
            c.add("shape", "resource", key, "path_part", "path_part must not be empty")
        elif "/" in r.path_part:
            c.add("shape", "resource", key, "path_part", f"path_part {r.path_part!r} must be a single segment")

        if r.parent_key is not None and r.parent_key not in resources:
            c.missing("resource", key, "parent_key", r.parent_key)

        siblings.setdefault((r.parent_key, r.path_part), []).append(key)

    for cycle in find_parent_cycles(resources):
        chain = " -> ".join(cycle + (cycle[0],))
        c.add("cycle", "resource", cycle[0], "parent_key", f"parent_key cycle {chain}")

    for (_, path_part), keys in siblings.items():
        if len(keys) > 1 and path_part:
            for key in keys[1:]:
                c.add(
                    "conflict",
                    "resource",
                    key,
                    "path_part",
                    f"path_part {path_part!r} already used by sibling {keys[0]!r}",
                )


def _check_methods(store: EntryStore, c: _Collector) -> None:
    bindings: dict[tuple[Optional[str], str], list[str]] = {}

    for key in sorted(store.methods):
        m = store.methods[key]
        if m.resource_key is not None and m.resource_key not in store.resources:
            c.missing("method", key, "resource_key", m.resource_key)
        if m.http_method not in HTTP_METHODS:
            c.enum("method", key, "http_method", m.http_method, HTTP_METHODS)
        if m.authorization_mode not in AUTHORIZATION_MODES:
            c.enum("method", key, "authorization_mode", m.authorization_mode, AUTHORIZATION_MODES)
        else:
            try:
                resolve_authorizer(m, store.authorizers)
            except AuthorizerResolutionError:
                if m.authorizer_key:
                    c.missing("method", key, "authorizer_key", m.authorizer_key)
                c.add(
                    "conflict",
                    "method",
                    key,
                    "authorizer_key",
                    f"authorizer required for {m.authorization_mode} but not resolvable",
                )

        if m.http_method in HTTP_METHODS:
            bindings.setdefault((m.resource_key, m.http_method), []).append(key)

    for (resource_key, verb), keys in bindings.items():
        for key in keys[1:]:
            where = resource_key or "root"
            c.add(
                "conflict",
                "method",
                key,
                "http_method",
                f"{verb} on {where} already bound by method {keys[0]!r}",
            )


def _check_authorizers(store: EntryStore, c: _Collector) -> None:
    for key in sorted(store.authorizers):
        a = store.authorizers[key]
        if a.authorizer_type not in AUTHORIZER_TYPES:
            c.enum("authorizer", key, "authorizer_type", a.authorizer_type, AUTHORIZER_TYPES)
        elif a.authorizer_type == "COGNITO_USER_POOLS":
            if not a.provider_arns:
                c.add("shape", "authorizer", key, "provider_arns", "provider_arns required for COGNITO_USER_POOLS")
        elif not a.authorizer_uri:
            c.add("shape", "authorizer", key, "authorizer_uri", f"authorizer_uri required for {a.authorizer_type}")
        if not 0 <= a.result_ttl_seconds <= MAX_AUTHORIZER_TTL:
            c.add(
                "shape",
                "authorizer",
                key,
                "result_ttl_seconds",
                f"result_ttl_seconds {a.result_ttl_seconds} outside 0..{MAX_AUTHORIZER_TTL}",
            )


def _check_integrations(store: EntryStore, c: _Collector) -> dict[str, IntegrationEntry]:
    by_method: dict[str, IntegrationEntry] = {}

    for key in sorted(store.integrations):
        i = store.integrations[key]
        if i.method_key not in store.methods:
            c.missing("integration", key, "method_key", i.method_key)
        elif i.method_key in by_method:
            c.add(
                "conflict",
                "integration",
                key,
                "method_key",
                f"method {i.method_key} already has integration {by_method[i.method_key].key!r}",
            )
        else:
            by_method[i.method_key] = i

        if i.integration_type not in INTEGRATION_TYPES:
            c.enum("integration", key, "integration_type", i.integration_type, INTEGRATION_TYPES)
        elif i.integration_type != "MOCK" and not i.backend_uri:
            c.add("shape", "integration", key, "backend_uri", f"backend_uri required for {i.integration_type}")

        if i.integration_http_method is not None and i.integration_http_method not in HTTP_METHODS:
            c.enum("integration", key, "integration_http_method", i.integration_http_method, HTTP_METHODS)
        if not MIN_TIMEOUT_MS <= i.timeout_milliseconds <= MAX_TIMEOUT_MS:
            c.add(
                "shape",
                "integration",
                key,
                "timeout_milliseconds",
                f"timeout_milliseconds {i.timeout_milliseconds} outside {MIN_TIMEOUT_MS}..{MAX_TIMEOUT_MS}",
            )
        if i.passthrough_behavior not in PASSTHROUGH_BEHAVIORS:
            c.enum("integration", key, "passthrough_behavior", i.passthrough_behavior, PASSTHROUGH_BEHAVIORS)
        if i.content_handling is not None and i.content_handling not in CONTENT_HANDLINGS:
            c.enum("integration", key, "content_handling", i.content_handling, CONTENT_HANDLINGS)
        if i.connection_type not in CONNECTION_TYPES:
            c.enum("integration", key, "connection_type", i.connection_type, CONNECTION_TYPES)
        elif i.connection_type == "VPC_LINK" and not i.connection_id:
            c.add("shape", "integration", key, "connection_id", "connection_id required for VPC_LINK")

    return by_method


def _check_status(c: _Collector, entry_type: str, key: str, status_code: str) -> bool:
    if STATUS_CODE_RE.match(status_code):
        return True
    c.add("shape", entry_type, key, "status_code", f"status_code {status_code!r} is not a 1xx-5xx code")
    return False


def _check_method_responses(store: EntryStore, c: _Collector) -> dict[str, list[ResponseEntry]]:
    by_method: dict[str, list[ResponseEntry]] = {}

    for key in sorted(store.method_responses):
        r = store.method_responses[key]
        status_ok = _check_status(c, "method_response", key, r.status_code)
        if r.method_key not in store.methods:
            c.missing("method_response", key, "method_key", r.method_key)
            continue

        existing = by_method.setdefault(r.method_key, [])
        clash = next((x for x in existing if x.status_code == r.status_code), None)
        if clash is not None and status_ok:
            c.add(
                "conflict",
                "method_response",
                key,
                "status_code",
                f"method {r.method_key} already declares status {r.status_code} in {clash.key!r}",
            )
            continue
        existing.append(r)

    return by_method


def _check_integration_responses(
    store: EntryStore,
    c: _Collector,
    integration_by_method: Mapping[str, IntegrationEntry],
) -> dict[str, list[str]]:
    by_response: dict[str, list[str]] = {}

    for key in sorted(store.integration_responses):
        ir = store.integration_responses[key]
        if ir.status_code is not None:
            _check_status(c, "integration_response", key, ir.status_code)
        if ir.content_handling is not None and ir.content_handling not in CONTENT_HANDLINGS:
            c.enum("integration_response", key, "content_handling", ir.content_handling, CONTENT_HANDLINGS)

        mr = store.method_responses.get(ir.method_response_key)
        if mr is None:
            c.missing("integration_response", key, "method_response_key", ir.method_response_key)
            continue

        if ir.status_code is not None and ir.status_code != mr.status_code:
            c.add(
                "conflict",
                "integration_response",
                key,
                "status_code",
                f"status_code {ir.status_code} does not match method response "
                f"{mr.key!r} ({mr.status_code})",
            )
        if mr.method_key in store.methods and mr.method_key not in integration_by_method:
            c.add(
                "reference",
                "integration_response",
                key,
                "method_response_key",
                f"method {mr.method_key} behind {mr.key!r} has no integration",
            )
        by_response.setdefault(mr.key, []).append(key)

    return by_response


def _check_stage(store: EntryStore, c: _Collector) -> None:
    if not store.stage.stage_name.strip():
        c.add("shape", "stage", "stage", "stage_name", "stage_name must not be empty")


_SIMPLE_CHECKS: tuple[Callable[[EntryStore, _Collector], None], ...] = (
    _check_duplicate_keys,
    _check_entry_keys,
    _check_resources,
    _check_methods,
    _check_authorizers,
    _check_stage,
)


def collect_violations(store: EntryStore) -> tuple[list[Violation], Optional[ValidatedDefinition]]:
    """Run every check. Returns (sorted violations, validated view or None)."""
    c = _Collector()
    for check in _SIMPLE_CHECKS:
        check(store, c)

    integration_by_method = _check_integrations(store, c)
    responses_by_method = _check_method_responses(store, c)
    ir_by_response = _check_integration_responses(store, c, integration_by_method)

    violations = sorted(set(c.violations))
    if violations:
        return violations, None

    validated = ValidatedDefinition(
        store=store,
        integration_by_method=MappingProxyType(integration_by_method),
        responses_by_method=MappingProxyType({k: tuple(v) for k, v in responses_by_method.items()}),
        integration_responses_by_response=MappingProxyType({k: tuple(v) for k, v in ir_by_response.items()}),
    )
    return violations, validated


def validate_definition(store: EntryStore) -> ValidatedDefinition:
    """
    Validate a snapshot and return its cross-indexed view.

    Raises:
        CompilationError: carrying every violation found, sorted by entry type and key.
    """
    violations, validated = collect_violations(store)
    if validated is None:
        logger.warning(
            "definition %s failed validation with %d violation(s)",
            store.api_name,
            len(violations),
        )
        raise CompilationError(violations)
    return validated
