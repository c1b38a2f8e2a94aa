from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from apigraph.domain.models import (
    ApiDefinition,
    AuthorizerEntry,
    IntegrationEntry,
    IntegrationResponseEntry,
    MethodEntry,
    PathEntry,
    ResponseEntry,
    StageDefinition,
)


def _index(entries: Iterable, dupes: list[str]) -> Mapping:
    # first entry wins; later duplicates are remembered for the validator
    out: dict = {}
    for e in entries:
        if e.key in out:
            dupes.append(e.key)
            continue
        out[e.key] = e
    return MappingProxyType(out)


@dataclass(frozen=True)
class EntryStore:
    """
    The raw entry collections of one snapshot, exactly as authored.

    Read-only views keyed by entry key. No resolution happens here.
    """

    api_name: str
    resources: Mapping[str, PathEntry]
    methods: Mapping[str, MethodEntry]
    authorizers: Mapping[str, AuthorizerEntry]
    integrations: Mapping[str, IntegrationEntry]
    method_responses: Mapping[str, ResponseEntry]
    integration_responses: Mapping[str, IntegrationResponseEntry]
    stage: StageDefinition
    description: str = ""
    # (collection name, key) pairs seen more than once when built from sequences
    duplicate_keys: tuple[tuple[str, str], ...] = field(default=())

    @classmethod
    def from_definition(cls, definition: ApiDefinition) -> "EntryStore":
        return cls(
            api_name=definition.name,
            description=definition.description,
            resources=MappingProxyType(dict(definition.resources)),
            methods=MappingProxyType(dict(definition.methods)),
            authorizers=MappingProxyType(dict(definition.authorizers)),
            integrations=MappingProxyType(dict(definition.integrations)),
            method_responses=MappingProxyType(dict(definition.method_responses)),
            integration_responses=MappingProxyType(dict(definition.integration_responses)),
            stage=definition.stage,
        )

    @classmethod
    def from_entries(
        cls,
        api_name: str,
        resources: Iterable[PathEntry] = (),
        methods: Iterable[MethodEntry] = (),
        authorizers: Iterable[AuthorizerEntry] = (),
        integrations: Iterable[IntegrationEntry] = (),
        method_responses: Iterable[ResponseEntry] = (),
        integration_responses: Iterable[IntegrationResponseEntry] = (),
        stage: Optional[StageDefinition] = None,
        description: str = "",
    ) -> "EntryStore":
        dupes: list[tuple[str, str]] = []

        def idx(name: str, entries: Iterable) -> Mapping:
            seen: list[str] = []
            view = _index(entries, seen)
            dupes.extend((name, k) for k in seen)
            return view

        return cls(
            api_name=api_name,
            description=description,
            resources=idx("resources", resources),
            methods=idx("methods", methods),
            authorizers=idx("authorizers", authorizers),
            integrations=idx("integrations", integrations),
            method_responses=idx("method_responses", method_responses),
            integration_responses=idx("integration_responses", integration_responses),
            stage=stage or StageDefinition(),
            duplicate_keys=tuple(dupes),
        )

    def to_definition(self) -> ApiDefinition:
        return ApiDefinition(
            name=self.api_name,
            description=self.description,
            resources=dict(self.resources),
            methods=dict(self.methods),
            authorizers=dict(self.authorizers),
            integrations=dict(self.integrations),
            method_responses=dict(self.method_responses),
            integration_responses=dict(self.integration_responses),
            stage=self.stage,
        )

    def counts(self) -> dict[str, int]:
        return {
            "resources": len(self.resources),
            "methods": len(self.methods),
            "authorizers": len(self.authorizers),
            "integrations": len(self.integrations),
            "method_responses": len(self.method_responses),
            "integration_responses": len(self.integration_responses),
        }
