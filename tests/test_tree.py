"""
Tests for the role-editing permission tree.
"""
from app.features.permissions.models import Permission
from app.features.permissions.tree import build_tree


def perm(id, name, parent_id=None):
    return Permission(id=id, name=name, display_name=name, element_type="Button", parent_id=parent_id)


ALL = [
    perm("3", "Class.Grid2", "1"),
    perm("1", "Class"),
    perm("2", "Class.Grid1", "1"),
    perm("4", "Class.Grid1.Add", "2"),
    perm("5", "Class.Grid2.View", "3"),
    perm("6", "Reports"),
]


def flatten(forest):
    for node in forest:
        yield node
        yield from flatten(node.children)


def shape(forest):
    return [(node.id, shape(node.children)) for node in forest]


def test_every_permission_appears_exactly_once():
    ids = [node.id for node in flatten(build_tree(ALL, set()))]
    assert sorted(ids) == sorted(p.id for p in ALL)


def test_nesting_follows_parent_ids_and_siblings_sort_by_name():
    forest = build_tree(ALL, set())
    assert shape(forest) == [
        ("1", [("2", [("4", [])]), ("3", [("5", [])])]),
        ("6", []),
    ]


def test_selection_flags_follow_selected_ids():
    forest = build_tree(ALL, {"4", "6"})
    selected = {node.id for node in flatten(forest) if node.selected}
    assert selected == {"4", "6"}


def test_selection_never_changes_shape():
    assert shape(build_tree(ALL, set())) == shape(build_tree(ALL, {"1", "2", "3", "4", "5", "6"}))


def test_unknown_selected_ids_are_ignored():
    forest = build_tree(ALL, {"missing"})
    assert not any(node.selected for node in flatten(forest))


def test_missing_parent_makes_a_root():
    forest = build_tree([perm("9", "Orphan.Button", "gone"), perm("1", "Class")], set())
    assert [node.id for node in forest] == ["1", "9"]


def test_stored_cycle_is_not_dropped():
    cyclic = [perm("a", "A", "b"), perm("b", "B", "a"), perm("r", "Root")]
    ids = [node.id for node in flatten(build_tree(cyclic, set()))]
    assert sorted(ids) == ["a", "b", "r"]


def test_input_order_does_not_matter():
    assert shape(build_tree(ALL, set())) == shape(build_tree(list(reversed(ALL)), set()))


def test_node_carries_display_fields():
    node = build_tree([perm("1", "Class")], {"1"})[0]
    assert (node.name, node.display_name, node.element_type, node.selected) == ("Class", "Class", "Button", True)


def test_deep_chain_builds_without_recursion():
    depth = 3000
    chain = [perm("0", "N0")] + [perm(str(i), f"N{i}", str(i - 1)) for i in range(1, depth)]

    forest = build_tree(chain, {str(depth - 1)})

    assert len(forest) == 1
    node, seen = forest[0], 1
    while node.children:
        assert len(node.children) == 1
        node = node.children[0]
        seen += 1
    assert seen == depth
    assert node.id == str(depth - 1) and node.selected
