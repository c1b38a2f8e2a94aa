"""
Authorizer resolution for methods.

Precedence, checked in order:

1. ``authorizer_key`` naming a module-managed authorizer
2. ``authorizer_id`` supplied from outside the definition
3. otherwise the method cannot be authorized and resolution fails

A managed authorizer always wins when both are present, so authorizer
identity stays centralized in the definition whenever it can be.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Mapping, Optional

from apigraph.domain.models import AUTHORIZER_MODES, AuthorizerEntry, MethodEntry
from apigraph.errors import AuthorizerResolutionError

logger = logging.getLogger(__name__)


AuthorizerSource = Literal["managed", "external"]


@dataclass(frozen=True)
class ResolvedAuthorizer:
    authorizer_id: str
    source: AuthorizerSource
    authorizer_key: Optional[str] = None


def managed_authorizer_id(key: str) -> str:
    # placeholder handle; the provisioning layer swaps in the real id
    return f"authorizer:{key}"


def requires_authorizer(authorization_mode: str) -> bool:
    return authorization_mode in AUTHORIZER_MODES


def resolve_authorizer(
    method: MethodEntry,
    authorizers: Mapping[str, AuthorizerEntry],
) -> Optional[ResolvedAuthorizer]:
    """Return the authorizer a method runs behind, or None when its mode needs none.

    Raises:
        AuthorizerResolutionError: the mode requires an authorizer and neither
            the managed key nor the external id is usable.
    """
    if not requires_authorizer(method.authorization_mode):
        return None

    if method.authorizer_key and method.authorizer_key in authorizers:
        return ResolvedAuthorizer(
            authorizer_id=managed_authorizer_id(method.authorizer_key),
            source="managed",
            authorizer_key=method.authorizer_key,
        )

    if method.authorizer_id:
        if method.authorizer_key:
            logger.warning(
                "method %s: authorizer_key %r not found, using external authorizer_id %r",
                method.key,
                method.authorizer_key,
                method.authorizer_id,
            )
        return ResolvedAuthorizer(authorizer_id=method.authorizer_id, source="external")

    raise AuthorizerResolutionError(method.key, method.authorization_mode)
