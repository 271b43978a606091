from portgraph.graph import Graph

def _names(events):
    return [name for name, _ in events]

def test_add_inport_requires_node(graph, events):
    assert graph.add_inport("in", "missing", "in") is None
    assert graph.inports == {}
    assert events == []

def test_inport_case_folding(graph, events):
    graph.add_node("A", "core/Reader")
    events.clear()
    port = graph.add_inport("Foo", "A", "IN", {"x": 1})
    assert graph.inports == {"foo": port}
    assert port.process == "A" and port.port == "in"
    assert events[1] == ("addInport", ("foo", port))

    events.clear()
    graph.set_inport_metadata("foo", {"y": 2})
    assert port.metadata == {"x": 1, "y": 2}
    assert events[1] == ("changeInport", ("foo", port, {"x": 1}))

def test_case_sensitive_inport_lookup():
    graph = Graph("cs", case_sensitive=True)
    graph.add_node("A", "core/Reader")
    graph.add_inport("Foo", "A", "in")
    assert graph.set_inport_metadata("foo", {"x": 1}) is None
    assert graph.inports["Foo"].metadata == {}

def test_remove_outport(graph, events):
    graph.add_node("A", "core/Writer")
    port = graph.add_outport("Done", "A", "out", {"x": 5})
    events.clear()
    assert graph.remove_outport("DONE") is port
    assert graph.outports == {}
    assert events == [
        ("startTransaction", ("implicit", None)),
        ("changeOutport", ("done", port, {"x": 5})),
        ("removeOutport", ("done", port)),
        ("endTransaction", ("implicit", None)),
    ]
    events.clear()
    assert graph.remove_outport("done") is None
    assert events == []

def test_rename_inport_moves_and_overwrites(graph, events):
    graph.add_node("A", "core/Reader")
    graph.add_node("B", "core/Reader")
    moved = graph.add_inport("first", "A", "in")
    graph.add_inport("second", "B", "in")
    events.clear()
    graph.rename_inport("First", "Second")
    assert graph.inports == {"second": moved}
    assert _names(events) == ["startTransaction", "renameInport", "endTransaction"]
    assert events[1][1] == ("first", "second")

def test_rename_missing_outport_is_noop(graph, events):
    assert graph.rename_outport("nope", "other") is None
    assert events == []

def test_add_outport_replaces_existing_name(graph):
    graph.add_node("A", "core/Reader")
    graph.add_node("B", "core/Reader")
    graph.add_outport("out", "A", "out")
    replacement = graph.add_outport("OUT", "B", "data")
    assert graph.outports == {"out": replacement}

def test_export_defaults_and_removal(graph, events):
    graph.add_node("A", "core/Reader")
    events.clear()
    exported = graph.add_export("Public", "A", "Port")
    assert exported.public == "public"
    assert exported.port == "port"
    assert exported.metadata == {"x": 0, "y": 0}
    assert events[1] == ("addExport", (exported,))

    events.clear()
    assert graph.remove_export("PUBLIC") is exported
    assert graph.exports == []
    assert _names(events) == ["startTransaction", "removeExport", "endTransaction"]

def test_export_noops(graph, events):
    assert graph.add_export("p", "missing", "in") is None
    assert graph.remove_export("p") is None
    assert events == []

def test_initial_values(graph, events):
    graph.add_node("A", "core/Reader")
    events.clear()
    iip = graph.add_initial("data.txt", "A", "Source")
    assert iip.value == "data.txt"
    assert (iip.to.node, iip.to.port, iip.to.index) == ("A", "source", None)
    assert events[1] == ("addInitial", (iip,))

    indexed = graph.add_initial_index(3, "A", "opts", 2)
    assert indexed.to.index == 2
    assert graph.add_initial(1, "missing", "in") is None

    events.clear()
    assert graph.remove_initial("A", "SOURCE") == [iip]
    assert graph.initializers == [indexed]
    assert _names(events) == ["startTransaction", "removeInitial", "endTransaction"]

def test_graph_initial_goes_through_inport(graph):
    graph.add_node("A", "core/Reader")
    graph.add_inport("file", "A", "source")
    iip = graph.add_graph_initial("data.txt", "FILE")
    assert (iip.to.node, iip.to.port) == ("A", "source")
    assert graph.add_graph_initial("x", "unknown") is None
    assert graph.remove_graph_initial("file") == [iip]
    assert graph.initializers == []
    assert graph.remove_graph_initial("unknown") == []
