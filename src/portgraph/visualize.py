from typing import List, Optional
import networkx as nx
from .graph import Graph

def _port(port: str, index: Optional[int]) -> str:
    return port if index is None else f"{port}[{index}]"

def to_networkx(g: Graph) -> nx.MultiDiGraph:
    nxg = nx.MultiDiGraph(name=g.name)
    for n in g.nodes:
        nxg.add_node(n.id, component=n.component, metadata=dict(n.metadata))
    for e in g.edges:
        nxg.add_edge(e.from_.node, e.to.node,
                     src_port=e.from_.port, src_index=e.from_.index,
                     tgt_port=e.to.port, tgt_index=e.to.index,
                     metadata=dict(e.metadata))
    return nxg

def ascii_plan(g: Graph) -> str:
    nxg = to_networkx(g)
    try:
        order = list(nx.topological_sort(nxg))
        lines = ["# ASCII Plan (topological order)"]
    except nx.NetworkXUnfeasible:
        order = list(nxg.nodes)
        lines = ["# ASCII Plan (insertion order, graph contains a cycle)"]

    for i, nid in enumerate(order, 1):
        lines.append(f"{i:02d}. {nid} [{nxg.nodes[nid].get('component', '?')}]")
        for iip in g.initializers:
            if iip.to.node == nid:
                lines.append(f"    ◆ {iip.value!r} -> {_port(iip.to.port, iip.to.index)}")
        for _, succ, data in nxg.out_edges(nid, data=True):
            label = f"{_port(data['src_port'], data['src_index'])}->{_port(data['tgt_port'], data['tgt_index'])}"
            lines.append(f"    └─▶ {succ}  ({label})")

    exported: List[str] = []
    for public, port in g.inports.items():
        exported.append(f"IN  {public} -> {port.process}.{port.port}")
    for public, port in g.outports.items():
        exported.append(f"OUT {public} <- {port.process}.{port.port}")
    for ex in g.exports:
        exported.append(f"EXP {ex.public} = {ex.process}.{ex.port}")
    if exported:
        lines.append("# Exported ports")
        lines.extend(exported)

    if g.groups:
        lines.append("# Groups")
        lines.extend(f"{gr.name}: {', '.join(gr.nodes)}" for gr in g.groups)
    return "\n".join(lines)
