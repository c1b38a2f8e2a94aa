from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "ANY"})
AUTHORIZATION_MODES = frozenset({"NONE", "AWS_IAM", "CUSTOM", "COGNITO_USER_POOLS"})
# NONE and the signed-request mode never attach an authorizer
AUTHORIZER_MODES = frozenset({"CUSTOM", "COGNITO_USER_POOLS"})
AUTHORIZER_TYPES = frozenset({"TOKEN", "REQUEST", "COGNITO_USER_POOLS"})
INTEGRATION_TYPES = frozenset({"AWS", "AWS_PROXY", "HTTP", "HTTP_PROXY", "MOCK"})
PASSTHROUGH_BEHAVIORS = frozenset({"WHEN_NO_MATCH", "WHEN_NO_TEMPLATES", "NEVER"})
CONTENT_HANDLINGS = frozenset({"CONVERT_TO_BINARY", "CONVERT_TO_TEXT"})
CONNECTION_TYPES = frozenset({"INTERNET", "VPC_LINK"})

MIN_TIMEOUT_MS = 50
MAX_TIMEOUT_MS = 29_000
MAX_AUTHORIZER_TTL = 3600


class _Entry(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )


class PathEntry(_Entry):
    key: str
    path_part: str
    parent_key: Optional[str] = None


class MethodEntry(_Entry):
    key: str
    http_method: str
    resource_key: Optional[str] = None
    authorization_mode: str = "NONE"
    authorizer_key: Optional[str] = None
    authorizer_id: Optional[str] = None
    authorization_scopes: list[str] = Field(default_factory=list)
    api_key_required: bool = False
    operation_name: Optional[str] = None
    request_parameters: dict[str, bool] = Field(default_factory=dict)
    request_models: dict[str, str] = Field(default_factory=dict)
    description: str = ""


class AuthorizerEntry(_Entry):
    """Module-managed authorizer, referenced from methods by key."""

    key: str
    name: str = ""
    authorizer_type: str = "TOKEN"
    identity_source: str = "method.request.header.Authorization"
    authorizer_uri: Optional[str] = None
    provider_arns: list[str] = Field(default_factory=list)
    result_ttl_seconds: int = 300


class IntegrationEntry(_Entry):
    key: str
    method_key: str
    integration_type: str
    backend_uri: Optional[str] = None
    integration_http_method: Optional[str] = None
    timeout_milliseconds: int = MAX_TIMEOUT_MS
    passthrough_behavior: str = "WHEN_NO_MATCH"
    content_handling: Optional[str] = None
    connection_type: str = "INTERNET"
    connection_id: Optional[str] = None
    request_templates: dict[str, str] = Field(default_factory=dict)
    request_parameters: dict[str, str] = Field(default_factory=dict)
    cache_key_parameters: list[str] = Field(default_factory=list)


class ResponseEntry(_Entry):
    """Method response: the shape a caller may see for one status code."""

    key: str
    method_key: str
    status_code: str
    response_models: dict[str, str] = Field(default_factory=dict)
    response_parameters: dict[str, bool] = Field(default_factory=dict)


class IntegrationResponseEntry(_Entry):
    key: str
    method_response_key: str
    # defaults to the referenced method response's status code
    status_code: Optional[str] = None
    selection_pattern: Optional[str] = None
    response_templates: dict[str, str] = Field(default_factory=dict)
    response_parameters: dict[str, str] = Field(default_factory=dict)
    content_handling: Optional[str] = None


class StageDefinition(_Entry):
    stage_name: str = "default"
    variables: dict[str, str] = Field(default_factory=dict)
    tracing_enabled: bool = False
    cache_cluster_enabled: bool = False
    cache_cluster_size: Optional[str] = None
    description: str = ""


COLLECTIONS: dict[str, type[_Entry]] = {
    "resources": PathEntry,
    "methods": MethodEntry,
    "authorizers": AuthorizerEntry,
    "integrations": IntegrationEntry,
    "method_responses": ResponseEntry,
    "integration_responses": IntegrationResponseEntry,
}


class ApiDefinition(_Entry):
    """
    One immutable snapshot of a REST API definition.

    Collections are maps keyed by entry key; the map key becomes the entry's
    ``key`` field. An explicit ``key`` inside an entry must agree with it.
    """

    name: str
    description: str = ""
    resources: dict[str, PathEntry] = Field(default_factory=dict)
    methods: dict[str, MethodEntry] = Field(default_factory=dict)
    authorizers: dict[str, AuthorizerEntry] = Field(default_factory=dict)
    integrations: dict[str, IntegrationEntry] = Field(default_factory=dict)
    method_responses: dict[str, ResponseEntry] = Field(default_factory=dict)
    integration_responses: dict[str, IntegrationResponseEntry] = Field(default_factory=dict)
    stage: StageDefinition = Field(default_factory=StageDefinition)

    @model_validator(mode="before")
    @classmethod
    def _inject_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        out = dict(data)
        for name in COLLECTIONS:
            alias = to_camel(name)
            field_name = name if name in out else alias
            raw = out.get(field_name)
            if not isinstance(raw, dict):
                continue

            keyed: dict[str, Any] = {}
            for map_key, entry in raw.items():
                if isinstance(entry, dict):
                    explicit = entry.get("key", map_key)
                    if explicit != map_key:
                        raise ValueError(
                            f"{name}[{map_key!r}] declares key {explicit!r}; "
                            "entry keys must match their map keys"
                        )
                    entry = {**entry, "key": map_key}
                elif isinstance(entry, _Entry) and getattr(entry, "key", map_key) != map_key:
                    raise ValueError(
                        f"{name}[{map_key!r}] holds entry {entry.key!r}; "
                        "entry keys must match their map keys"
                    )
                keyed[map_key] = entry
            out[field_name] = keyed
        return out
