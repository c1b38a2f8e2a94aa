"""
Exceptions raised by the compiler and its collaborators.

Configuration errors are deterministic: re-running a pass on the same input
produces the same errors, so nothing here is retried.
"""

from __future__ import annotations

from typing import Any, Sequence

from apigraph.domain.violations import Violation


class ApiGraphError(Exception):
    """Base exception for all apigraph errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class DefinitionLoadError(ApiGraphError):
    """The definition file could not be read or does not match the entry schema."""


class CompilationError(ApiGraphError):
    """
    Raised when a snapshot fails validation.

    Carries every violation found in the pass, not just the first one.
    """

    def __init__(self, violations: Sequence[Violation]):
        self.violations = tuple(violations)
        count = len(self.violations)
        noun = "violation" if count == 1 else "violations"
        super().__init__(
            f"compilation failed with {count} {noun}",
            details={"violations": [str(v) for v in self.violations]},
        )


class AuthorizerResolutionError(ApiGraphError):
    """A method requires an authorizer but neither a managed key nor an external id resolves."""

    def __init__(self, method_key: str, authorization_mode: str):
        self.method_key = method_key
        self.authorization_mode = authorization_mode
        super().__init__(
            "authorizer required but not resolvable",
            details={"method_key": method_key, "authorization_mode": authorization_mode},
        )


class DeploymentStoreError(ApiGraphError):
    """The deployment history database could not be read or written."""
