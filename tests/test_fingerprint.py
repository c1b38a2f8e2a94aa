from apigraph.compiler.fingerprint import compute_fingerprint, to_canonical_json
from apigraph.domain.models import ApiDefinition
from apigraph.store.entries import EntryStore


BASE = {
    "name": "orders-api",
    "resources": {
        "orders": {"pathPart": "orders"},
        "order_id": {"pathPart": "{id}", "parentKey": "orders"},
    },
    "methods": {
        "get_order": {"resourceKey": "order_id", "httpMethod": "GET"},
        "list_orders": {"resourceKey": "orders", "httpMethod": "GET"},
    },
    "integrations": {
        "get_order_backend": {
            "methodKey": "get_order",
            "integrationType": "HTTP_PROXY",
            "backendUri": "https://orders.internal/{id}",
            "timeoutMilliseconds": 3000,
        },
    },
    "methodResponses": {"get_order_200": {"methodKey": "get_order", "statusCode": "200"}},
    "stage": {"stageName": "prod", "variables": {"b": "2", "a": "1"}},
}


def definition(data=None):
    import copy

    return ApiDefinition.model_validate(copy.deepcopy(data or BASE))


def test_canonical_json_sorts_keys_and_keeps_list_order():
    assert to_canonical_json({"b": [2, 1], "a": {"d": 1, "c": 2}}) == '{"a":{"c":2,"d":1},"b":[2,1]}'


def test_fingerprint_is_sha256_hex():
    fp = compute_fingerprint(definition())
    assert len(fp) == 64
    int(fp, 16)


def test_reordered_maps_give_the_same_fingerprint():
    reordered = {
        "stage": {"variables": {"a": "1", "b": "2"}, "stageName": "prod"},
        "methodResponses": BASE["methodResponses"],
        "integrations": BASE["integrations"],
        "methods": dict(reversed(list(BASE["methods"].items()))),
        "resources": dict(reversed(list(BASE["resources"].items()))),
        "name": "orders-api",
    }

    assert compute_fingerprint(definition(reordered)) == compute_fingerprint(definition())


def test_status_code_change_moves_the_fingerprint():
    changed = definition().model_dump()
    changed["method_responses"]["get_order_200"]["status_code"] = "201"

    assert compute_fingerprint(definition(changed)) != compute_fingerprint(definition())


def test_timeout_change_moves_the_fingerprint():
    changed = definition().model_dump()
    changed["integrations"]["get_order_backend"]["timeout_milliseconds"] = 3001

    assert compute_fingerprint(definition(changed)) != compute_fingerprint(definition())


def test_stage_change_moves_the_fingerprint():
    changed = definition().model_dump()
    changed["stage"]["tracing_enabled"] = True

    assert compute_fingerprint(definition(changed)) != compute_fingerprint(definition())


def test_excluded_fields_do_not_count():
    changed = definition().model_dump()
    changed["description"] = "Order service"
    changed["methods"]["get_order"]["description"] = "Fetch one order"
    changed["stage"]["description"] = "production"

    assert compute_fingerprint(definition(changed)) != compute_fingerprint(definition())
    assert compute_fingerprint(definition(changed), exclude_fields=["description"]) == compute_fingerprint(
        definition(), exclude_fields=["description"]
    )


def test_key_is_never_excluded():
    renamed = definition().model_dump()
    renamed["methods"]["list_all"] = renamed["methods"].pop("list_orders")
    renamed["methods"]["list_all"]["key"] = "list_all"

    assert compute_fingerprint(definition(renamed), exclude_fields=["key"]) != compute_fingerprint(
        definition(), exclude_fields=["key"]
    )


def test_entry_store_and_definition_agree():
    d = definition()
    assert compute_fingerprint(EntryStore.from_definition(d)) == compute_fingerprint(d)
