from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


ViolationKind = Literal["reference", "shape", "cycle", "conflict"]
EntryType = Literal[
    "resource",
    "method",
    "authorizer",
    "integration",
    "method_response",
    "integration_response",
    "stage",
]


@dataclass(frozen=True, order=True)
class Violation:
    """One rule broken by one entry field. Ordered for stable reporting."""

    entry_type: str
    key: str
    field: str
    kind: ViolationKind
    message: str

    def __str__(self) -> str:
        # e.g. "method get_order: resource_key 'orders_x' not found"
        return f"{self.entry_type} {self.key}: {self.message}"
