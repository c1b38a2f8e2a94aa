import pytest

from apigraph.domain.models import PathEntry
from apigraph.graph.tree import find_parent_cycles, resolve_resource_tree


def entries(*items):
    return {e.key: e for e in items}


def test_ancestors_are_root_first_and_include_self():
    tree = resolve_resource_tree(
        entries(
            PathEntry(key="orders", path_part="orders"),
            PathEntry(key="order_id", path_part="{id}", parent_key="orders"),
            PathEntry(key="items", path_part="items", parent_key="order_id"),
        )
    )

    assert tree.resources["items"].ancestors == ("orders", "order_id", "items")
    assert tree.resources["items"].path == "/orders/{id}/items"
    assert tree.resources["items"].depth == 3
    assert tree.path_for(None) == "/"
    assert tree.ancestors_of(None) == ()


def test_parents_come_before_children():
    tree = resolve_resource_tree(
        entries(
            PathEntry(key="z_child", path_part="c", parent_key="a_parent"),
            PathEntry(key="a_parent", path_part="p", parent_key="m_grand"),
            PathEntry(key="m_grand", path_part="g"),
        )
    )

    assert tree.order == ("m_grand", "a_parent", "z_child")


def test_order_ties_break_on_key():
    tree = resolve_resource_tree(
        entries(
            PathEntry(key="c", path_part="c"),
            PathEntry(key="d", path_part="d", parent_key="c"),
            PathEntry(key="a", path_part="a"),
            PathEntry(key="b", path_part="b", parent_key="a"),
        )
    )

    assert tree.order == ("a", "b", "c", "d")
    assert tree.children[None] == ("a", "c")


def test_siblings_keep_their_own_path_parts():
    tree = resolve_resource_tree(
        entries(
            PathEntry(key="root_res", path_part="shop"),
            PathEntry(key="by_id", path_part="{id}", parent_key="root_res"),
            PathEntry(key="orders", path_part="orders", parent_key="root_res"),
        )
    )

    assert tree.resources["by_id"].path == "/shop/{id}"
    assert tree.resources["orders"].path == "/shop/orders"
    assert tree.children["root_res"] == ("by_id", "orders")


def test_insertion_order_does_not_change_the_result():
    items = [
        PathEntry(key="orders", path_part="orders"),
        PathEntry(key="order_id", path_part="{id}", parent_key="orders"),
        PathEntry(key="users", path_part="users"),
        PathEntry(key="user_id", path_part="{id}", parent_key="users"),
    ]

    t1 = resolve_resource_tree(entries(*items))
    t2 = resolve_resource_tree(entries(*reversed(items)))

    assert t1.order == t2.order
    assert {k: r.ancestors for k, r in t1.resources.items()} == {
        k: r.ancestors for k, r in t2.resources.items()
    }


def test_find_parent_cycles_reports_each_cycle_once():
    resources = entries(
        PathEntry(key="b", path_part="b", parent_key="a"),
        PathEntry(key="a", path_part="a", parent_key="b"),
        PathEntry(key="self", path_part="s", parent_key="self"),
        PathEntry(key="tail", path_part="t", parent_key="a"),
        PathEntry(key="fine", path_part="f"),
    )

    assert find_parent_cycles(resources) == [("a", "b"), ("self",)]


def test_dangling_parent_is_not_a_cycle():
    resources = entries(PathEntry(key="x", path_part="x", parent_key="missing"))
    assert find_parent_cycles(resources) == []


def test_unreachable_resources_raise():
    with pytest.raises(ValueError):
        resolve_resource_tree(entries(PathEntry(key="x", path_part="x", parent_key="missing")))


def test_empty_parent_key_is_a_real_parent_not_the_root():
    tree = resolve_resource_tree(
        entries(
            PathEntry(key="", path_part="blank"),
            PathEntry(key="orders", path_part="orders", parent_key=""),
        )
    )

    assert tree.order == ("", "orders")
    assert tree.resources["orders"].ancestors == ("", "orders")
    assert tree.resources["orders"].path == "/blank/orders"
    assert tree.resources["orders"].depth == 2
