import pytest
from portgraph.errors import InvalidState

def _names(events):
    return [name for name, _ in events]

def test_add_group(graph, events):
    group = graph.add_group("ui", ["A", "B", "A"], {"color": 1})
    assert group.nodes == ["A", "B"]
    assert graph.get_group("ui") is group
    assert _names(events) == ["startTransaction", "addGroup", "endTransaction"]

def test_add_group_rejects_taken_name(graph, events):
    first = graph.add_group("ui", ["A"])
    events.clear()
    assert graph.add_group("ui", ["B"]) is None
    assert graph.groups == [first]
    assert events == []

def test_rename_group(graph, events):
    graph.add_group("ui", [])
    events.clear()
    group = graph.rename_group("ui", "view")
    assert group.name == "view"
    assert graph.get_group("ui") is None
    assert events[1] == ("renameGroup", ("ui", "view"))

def test_rename_group_errors(graph):
    graph.add_group("ui", [])
    graph.add_group("view", [])
    with pytest.raises(InvalidState):
        graph.rename_group("missing", "other")
    with pytest.raises(InvalidState):
        graph.rename_group("ui", "view")
    assert [g.name for g in graph.groups] == ["ui", "view"]

def test_remove_group(graph, events):
    group = graph.add_group("ui", ["A"], {"color": 2})
    events.clear()
    assert graph.remove_group("ui") is group
    assert graph.groups == []
    assert events[1] == ("changeGroup", (group, {"color": 2}))
    assert events[2] == ("removeGroup", (group,))
    assert group.metadata == {}

def test_remove_missing_group_is_noop(graph, events):
    assert graph.remove_group("ui") is None
    assert events == []

def test_set_group_metadata(graph, events):
    group = graph.add_group("ui", [], {"color": 2})
    events.clear()
    graph.set_group_metadata("ui", {"color": None, "label": "Inputs"})
    assert group.metadata == {"label": "Inputs"}
    assert events[1] == ("changeGroup", (group, {"color": 2}))
    assert graph.set_group_metadata("missing", {"label": "x"}) is None

def test_rename_onto_existing_member_then_remove(graph):
    graph.add_node("A", "x")
    graph.add_group("g", ["A", "Z"])
    graph.rename_node("A", "Z")
    assert graph.get_group("g").nodes == ["Z"]
    graph.remove_node("Z")
    assert graph.get_group("g").nodes == []

def test_remove_node_drops_every_membership(graph):
    graph.add_node("A", "x")
    group = graph.add_group("g", ["A", "B"])
    group.nodes.append("A")
    graph.remove_node("A")
    assert group.nodes == ["B"]
