import pytest
from portgraph.graph import EVENTS, Graph

@pytest.fixture
def graph():
    return Graph("test")

@pytest.fixture
def events(graph):
    seen = []
    for name in EVENTS:
        graph.on(name, lambda *args, _name=name: seen.append((_name, args)))
    return seen