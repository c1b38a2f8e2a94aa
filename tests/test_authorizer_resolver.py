import pytest

from apigraph.compiler.authorizers import resolve_authorizer
from apigraph.domain.models import AuthorizerEntry, MethodEntry
from apigraph.errors import AuthorizerResolutionError


AUTHORIZERS = {
    "jwt": AuthorizerEntry(
        key="jwt",
        name="orders-jwt",
        authorizer_type="TOKEN",
        authorizer_uri="arn:aws:lambda:eu-west-1:123456789012:function:jwt",
    )
}


def method(**kw):
    return MethodEntry(key="get_order", http_method="GET", **kw)


@pytest.mark.parametrize("mode", ["NONE", "AWS_IAM"])
def test_modes_without_authorizer_resolve_to_none(mode):
    m = method(authorization_mode=mode, authorizer_key="jwt", authorizer_id="ext-123")
    assert resolve_authorizer(m, AUTHORIZERS) is None


def test_managed_authorizer_wins_over_external_id():
    m = method(authorization_mode="CUSTOM", authorizer_key="jwt", authorizer_id="ext-123")

    resolved = resolve_authorizer(m, AUTHORIZERS)

    assert resolved.source == "managed"
    assert resolved.authorizer_key == "jwt"
    assert resolved.authorizer_id == "authorizer:jwt"


def test_external_id_used_when_no_managed_key():
    m = method(authorization_mode="COGNITO_USER_POOLS", authorizer_id="ext-123")

    resolved = resolve_authorizer(m, AUTHORIZERS)

    assert resolved.source == "external"
    assert resolved.authorizer_id == "ext-123"
    assert resolved.authorizer_key is None


def test_unknown_managed_key_falls_back_to_external_id():
    m = method(authorization_mode="CUSTOM", authorizer_key="ghost", authorizer_id="ext-123")

    resolved = resolve_authorizer(m, AUTHORIZERS)

    assert resolved.source == "external"
    assert resolved.authorizer_id == "ext-123"


def test_nothing_usable_raises():
    m = method(authorization_mode="CUSTOM", authorizer_key="ghost")

    with pytest.raises(AuthorizerResolutionError) as exc_info:
        resolve_authorizer(m, AUTHORIZERS)

    assert exc_info.value.method_key == "get_order"
    assert exc_info.value.message == "authorizer required but not resolvable"
