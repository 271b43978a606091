from collections import Counter
from typing import List, Tuple
from .graph import Graph

def check_graph(g: Graph) -> Tuple[bool, List[str]]:
    messages: List[str] = []
    ok = True

    def report(problems: List[str], success: str) -> None:
        nonlocal ok
        if problems:
            ok = False
            messages.extend(f"ERR: {p}" for p in problems)
        else:
            messages.append(f"OK: {success}")

    node_ids = {n.id for n in g.nodes}

    # 1) Unique node ids and group names
    dupes = [nid for nid, count in Counter(n.id for n in g.nodes).items() if count > 1]
    report([f"Duplicate node id '{nid}'." for nid in dupes], "Node IDs are unique.")
    dupes = [name for name, count in Counter(gr.name for gr in g.groups).items() if count > 1]
    report([f"Duplicate group name '{name}'." for name in dupes], "Group names are unique.")

    # 2) Edges refer to existing nodes, no duplicates
    problems = []
    for e in g.edges:
        for end in (e.from_, e.to):
            if end.node not in node_ids:
                problems.append(f"Edge {e.from_.node}.{e.from_.port} -> {e.to.node}.{e.to.port} references missing node '{end.node}'.")
    report(problems, "All edges reference existing nodes.")
    dupes = [key for key, count in Counter(e.key() for e in g.edges).items() if count > 1]
    report([f"Duplicate edge {key}." for key in dupes], "Edges are unique.")

    # 3) Initial values, exports and public ports
    report([f"Initial value targets missing node '{iip.to.node}'." for iip in g.initializers
            if iip.to.node not in node_ids],
           "All initial values target existing nodes.")
    report([f"Export '{ex.public}' references missing node '{ex.process}'." for ex in g.exports
            if ex.process not in node_ids],
           "All exports reference existing nodes.")
    for kind, ports in (("Inport", g.inports), ("Outport", g.outports)):
        report([f"{kind} '{public}' references missing node '{port.process}'."
                for public, port in ports.items() if port.process not in node_ids],
               f"All {kind.lower()}s reference existing nodes.")

    # 4) Groups
    report([f"Group '{gr.name}' contains missing node '{nid}'." for gr in g.groups
            for nid in gr.nodes if nid not in node_ids],
           "All group members exist.")

    # 5) Transaction cursor
    report([f"Transaction '{g.transaction.id}' is still open."] if g.transaction.is_open else [],
           "No transaction left open.")

    return ok, messages
