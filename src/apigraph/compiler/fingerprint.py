"""
Change fingerprint for a definition snapshot.

The fingerprint is a SHA-256 digest of the canonical JSON form of the whole
definition. It is opaque here and only used as a deployment version label.

Canonical means:
- every mapping is emitted with sorted keys, at every level
- entries within a collection are ordered by key
- lists keep their authored order (list order is meaningful)
- compact separators, no whitespace

Every field counts by default, descriptions included. ``exclude_fields``
drops named entry fields (and the matching API-level field) for callers that
decide some fields are not deployment-relevant.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Iterable

from apigraph.domain.models import COLLECTIONS, ApiDefinition
from apigraph.store.entries import EntryStore


FINGERPRINT_VERSION = 1

# never excludable; dropping them would let different shapes collide
_STRUCTURAL = frozenset({"key"})


def canonicalize(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: canonicalize(v) for k, v in sorted(obj.items())}
    if isinstance(obj, (list, tuple)):
        return [canonicalize(v) for v in obj]
    return obj


def to_canonical_json(obj: Any) -> str:
    return json.dumps(canonicalize(obj), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def normalized_snapshot(
    definition: ApiDefinition | EntryStore,
    exclude_fields: Iterable[str] = (),
) -> dict[str, Any]:
    """Plain-JSON view of a snapshot, field names in snake_case."""
    if isinstance(definition, EntryStore):
        definition = definition.to_definition()
    exclude = set(exclude_fields) - _STRUCTURAL

    snapshot: dict[str, Any] = {
        "version": FINGERPRINT_VERSION,
        "name": definition.name,
        "stage": definition.stage.model_dump(mode="json", exclude=exclude),
    }
    if "description" not in exclude:
        snapshot["description"] = definition.description

    for collection in COLLECTIONS:
        entries = getattr(definition, collection)
        snapshot[collection] = {
            key: entries[key].model_dump(mode="json", exclude=exclude)
            for key in sorted(entries)
        }
    return snapshot


def compute_fingerprint(
    definition: ApiDefinition | EntryStore,
    exclude_fields: Iterable[str] = (),
) -> str:
    """Return the 64-character hex SHA-256 fingerprint of a snapshot."""
    payload = to_canonical_json(normalized_snapshot(definition, exclude_fields))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
