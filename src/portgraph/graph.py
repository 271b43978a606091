"""
In-memory flow graph with change notifications.

Every mutation runs inside a transaction. When the caller has not opened one
explicitly, the outermost call opens an ``"implicit"`` transaction and the
cascades it triggers share it, so consumers see exactly one
``startTransaction``/``endTransaction`` pair per top-level call.
"""
from __future__ import annotations
import logging
from contextlib import contextmanager
from itertools import chain
from typing import Any, Dict, Iterator, List, Mapping, Optional

from pydantic import BaseModel, Field, PrivateAttr

from .errors import InvalidState
from .ir import Edge, Export, Group, Initial, Node, PortRef, PublicPort, Transaction
from .metadata import clearing_patch, merge_metadata
from .notifier import Handler, Notifier

logger = logging.getLogger(__name__)

IMPLICIT = "implicit"

INPORT = "inport"
OUTPORT = "outport"


class Graph(BaseModel):
    name: str = ""
    case_sensitive: bool = False
    properties: Dict[str, Any] = Field(default_factory=dict)
    nodes: List[Node] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)
    initializers: List[Initial] = Field(default_factory=list)
    exports: List[Export] = Field(default_factory=list)
    inports: Dict[str, PublicPort] = Field(default_factory=dict)
    outports: Dict[str, PublicPort] = Field(default_factory=dict)
    groups: List[Group] = Field(default_factory=list)
    transaction: Transaction = Field(default_factory=Transaction)

    _notifier: Notifier = PrivateAttr(default_factory=Notifier)

    def __init__(self, name: str = "", case_sensitive: bool = False,
                 notifier: Optional[Notifier] = None, **data: Any):
        super().__init__(name=name, case_sensitive=case_sensitive, **data)
        if notifier is not None:
            self._notifier = notifier

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    def on(self, event: str, handler: Handler) -> Handler:
        return self._notifier.subscribe(event, handler)

    def port_name(self, port: Optional[str]) -> Optional[str]:
        if port is None or self.case_sensitive:
            return port
        return port.lower()

    def node_map(self) -> Dict[str, Node]:
        # first occurrence wins, matching get_node
        out: Dict[str, Node] = {}
        for node in self.nodes:
            out.setdefault(node.id, node)
        return out

    def _emit(self, event: str, *args: Any) -> None:
        self._notifier.emit(event, *args)

    # --- Transactions ---

    def start_transaction(self, id: str, metadata: Optional[Mapping[str, Any]] = None) -> None:
        if self.transaction.is_open:
            raise InvalidState(
                f"Cannot start transaction {id!r}: {self.transaction.id!r} is already open"
            )
        self.transaction.id = id
        self.transaction.depth = 1
        logger.debug("Started transaction %r", id)
        try:
            self._emit("startTransaction", id, metadata)
        except Exception:
            self.transaction.id = None
            self.transaction.depth = 0
            raise

    def end_transaction(self, id: str, metadata: Optional[Mapping[str, Any]] = None) -> None:
        if not self.transaction.is_open:
            raise InvalidState(f"Cannot end transaction {id!r}: no transaction is open")
        self.transaction.id = None
        self.transaction.depth = 0
        logger.debug("Ended transaction %r", id)
        self._emit("endTransaction", id, metadata)

    @contextmanager
    def batch(self, id: str, metadata: Optional[Mapping[str, Any]] = None) -> Iterator[Graph]:
        """Run a block of mutations inside one explicit transaction."""
        self.start_transaction(id, metadata)
        try:
            yield self
        finally:
            self.end_transaction(id, metadata)

    def _ensure_transaction_open(self) -> None:
        if not self.transaction.is_open:
            self.start_transaction(IMPLICIT)
        elif self.transaction.id == IMPLICIT:
            self.transaction.depth += 1

    def _ensure_transaction_closed(self) -> None:
        if self.transaction.id != IMPLICIT:
            return
        self.transaction.depth -= 1
        if self.transaction.depth == 0:
            self.end_transaction(IMPLICIT)

    @contextmanager
    def _mutation(self) -> Iterator[None]:
        self._ensure_transaction_open()
        try:
            yield
        finally:
            self._ensure_transaction_closed()

    # --- Graph properties ---

    def set_properties(self, properties: Mapping[str, Any]) -> None:
        with self._mutation():
            before = dict(self.properties)
            self.properties.update(properties)
            self._emit("changeProperties", self.properties, before)

    # --- Nodes ---

    def get_node(self, id: str) -> Optional[Node]:
        return next((node for node in self.nodes if node.id == id), None)

    def add_node(self, id: str, component: str,
                 metadata: Optional[Mapping[str, Any]] = None) -> Optional[Node]:
        """Append a node. Returns ``None`` when ``id`` is already taken."""
        if self.get_node(id) is not None:
            logger.debug("Ignoring add_node(%r): id already in use", id)
            return None
        with self._mutation():
            node = Node(id=id, component=component, metadata=dict(metadata or {}))
            self.nodes.append(node)
            self._emit("addNode", node)
        return node

    def remove_node(self, id: str) -> Optional[Node]:
        """
        Remove a node together with everything that references it.

        Edges, initial values, exports, inports and outports pointing at the
        node are removed first (each emitting its own events), the node is
        dropped from every group, its metadata is cleared, and finally
        ``removeNode`` is emitted.
        """
        node = self.get_node(id)
        if node is None:
            logger.debug("Ignoring remove_node(%r): no such node", id)
            return None
        with self._mutation():
            self._drop_edges([edge for edge in self.edges if edge.touches(id)])
            self._drop_initials([iip for iip in self.initializers if iip.to.node == id])
            for exported in [e for e in self.exports if e.process == id]:
                self._drop_export(exported)
            for public in [p for p, port in self.inports.items() if port.process == id]:
                self.remove_inport(public)
            for public in [p for p, port in self.outports.items() if port.process == id]:
                self.remove_outport(public)
            for group in self.groups:
                group.nodes = [n for n in group.nodes if n != id]
            self._update_node_metadata(node, clearing_patch(node.metadata))
            self.nodes = [n for n in self.nodes if n is not node]
            self._emit("removeNode", node)
        return node

    def rename_node(self, old_id: str, new_id: str) -> Optional[Node]:
        """Rename a node and rewrite every reference to it.

        No-op when ``old_id`` is unknown or ``new_id`` is already taken.
        """
        node = self.get_node(old_id)
        if node is None:
            logger.debug("Ignoring rename_node(%r): no such node", old_id)
            return None
        if self.get_node(new_id) is not None:
            logger.debug("Ignoring rename_node(%r, %r): target id in use", old_id, new_id)
            return None
        with self._mutation():
            node.id = new_id
            for edge in self.edges:
                if edge.from_.node == old_id:
                    edge.from_.node = new_id
                if edge.to.node == old_id:
                    edge.to.node = new_id
            for iip in self.initializers:
                if iip.to.node == old_id:
                    iip.to.node = new_id
            for exported in self.exports:
                if exported.process == old_id:
                    exported.process = new_id
            for port in chain(self.inports.values(), self.outports.values()):
                if port.process == old_id:
                    port.process = new_id
            for group in self.groups:
                group.nodes = list(dict.fromkeys(new_id if n == old_id else n for n in group.nodes))
            self._emit("renameNode", old_id, new_id)
        return node

    def set_node_metadata(self, id: str, metadata: Mapping[str, Any]) -> Optional[Node]:
        node = self.get_node(id)
        if node is None:
            logger.debug("Ignoring set_node_metadata(%r): no such node", id)
            return None
        self._update_node_metadata(node, metadata)
        return node

    def _update_node_metadata(self, node: Node, metadata: Mapping[str, Any]) -> None:
        with self._mutation():
            node.metadata, before = merge_metadata(node.metadata, metadata)
            self._emit("changeNode", node, before)

    # --- Edges ---

    def add_edge(self, out_node: str, out_port: str, in_node: str, in_port: str,
                 metadata: Optional[Mapping[str, Any]] = None) -> Optional[Edge]:
        return self.add_edge_index(out_node, out_port, None, in_node, in_port, None, metadata)

    def add_edge_index(self, out_node: str, out_port: str, out_index: Optional[int],
                       in_node: str, in_port: str, in_index: Optional[int],
                       metadata: Optional[Mapping[str, Any]] = None) -> Optional[Edge]:
        """
        Connect ``out_node.out_port[out_index]`` to ``in_node.in_port[in_index]``.

        Returns the new edge, or ``None`` when an identical edge exists or
        either node is unknown.
        """
        out_port = self.port_name(out_port)
        in_port = self.port_name(in_port)
        key = (out_node, out_port, out_index, in_node, in_port, in_index)
        if any(edge.key() == key for edge in self.edges):
            logger.debug("Ignoring duplicate edge %s", key)
            return None
        if self.get_node(out_node) is None or self.get_node(in_node) is None:
            logger.debug("Ignoring edge %s: unknown node", key)
            return None
        with self._mutation():
            edge = Edge(
                from_=PortRef(node=out_node, port=out_port, index=out_index),
                to=PortRef(node=in_node, port=in_port, index=in_index),
                metadata=dict(metadata or {}),
            )
            self.edges.append(edge)
            self._emit("addEdge", edge)
        return edge

    def remove_edge(self, node: str, port: str, node2: Optional[str] = None,
                    port2: Optional[str] = None, *,
                    out_index: Optional[int] = None,
                    in_index: Optional[int] = None) -> List[Edge]:
        """
        Remove edges and return them.

        With both endpoints given, removes the edges between exactly those
        ports, narrowed to one indexed edge when ``out_index``/``in_index``
        are given. With only ``node``/``port`` given,
        removes every edge attached to that port on either side.
        """
        port = self.port_name(port)
        if node2 is not None and port2 is not None:
            port2 = self.port_name(port2)
            matches = [
                edge for edge in self.edges
                if edge.from_.node == node and edge.from_.port == port
                and edge.to.node == node2 and edge.to.port == port2
                and (out_index is None or edge.from_.index == out_index)
                and (in_index is None or edge.to.index == in_index)
            ]
        else:
            matches = [
                edge for edge in self.edges
                if (edge.from_.node == node and edge.from_.port == port)
                or (edge.to.node == node and edge.to.port == port)
            ]
        return self._drop_edges(matches)

    def _drop_edges(self, edges: List[Edge]) -> List[Edge]:
        if not edges:
            return []
        with self._mutation():
            for edge in edges:
                self._update_edge_metadata(edge, clearing_patch(edge.metadata))
            removed = {id(edge) for edge in edges}
            self.edges = [edge for edge in self.edges if id(edge) not in removed]
            for edge in edges:
                self._emit("removeEdge", edge)
        return edges

    def get_edge(self, node: str, port: str, node2: str, port2: str, *,
                 out_index: Optional[int] = None,
                 in_index: Optional[int] = None) -> Optional[Edge]:
        port = self.port_name(port)
        port2 = self.port_name(port2)
        for edge in self.edges:
            if (edge.from_.node, edge.from_.port, edge.to.node, edge.to.port) != (node, port, node2, port2):
                continue
            if out_index is not None and edge.from_.index != out_index:
                continue
            if in_index is not None and edge.to.index != in_index:
                continue
            return edge
        return None

    def set_edge_metadata(self, node: str, port: str, node2: str, port2: str,
                          metadata: Mapping[str, Any], *,
                          out_index: Optional[int] = None,
                          in_index: Optional[int] = None) -> Optional[Edge]:
        edge = self.get_edge(node, port, node2, port2, out_index=out_index, in_index=in_index)
        if edge is None:
            logger.debug("Ignoring set_edge_metadata(%r, %r, %r, %r): no such edge",
                         node, port, node2, port2)
            return None
        self._update_edge_metadata(edge, metadata)
        return edge

    def _update_edge_metadata(self, edge: Edge, metadata: Mapping[str, Any]) -> None:
        with self._mutation():
            edge.metadata, before = merge_metadata(edge.metadata, metadata)
            self._emit("changeEdge", edge, before)

    # --- Initial values ---

    def add_initial(self, value: Any, node: str, port: str,
                    metadata: Optional[Mapping[str, Any]] = None) -> Optional[Initial]:
        return self.add_initial_index(value, node, port, None, metadata)

    def add_initial_index(self, value: Any, node: str, port: str, index: Optional[int],
                          metadata: Optional[Mapping[str, Any]] = None) -> Optional[Initial]:
        if self.get_node(node) is None:
            logger.debug("Ignoring initial value for %r: no such node", node)
            return None
        with self._mutation():
            iip = Initial(
                value=value,
                to=PortRef(node=node, port=self.port_name(port), index=index),
                metadata=dict(metadata or {}),
            )
            self.initializers.append(iip)
            self._emit("addInitial", iip)
        return iip

    def add_graph_initial(self, value: Any, public: str,
                          metadata: Optional[Mapping[str, Any]] = None) -> Optional[Initial]:
        """Bind ``value`` to whatever internal port the inport ``public`` exposes."""
        inport = self.inports.get(self.port_name(public))
        if inport is None:
            logger.debug("Ignoring graph initial for %r: no such inport", public)
            return None
        return self.add_initial(value, inport.process, inport.port, metadata)

    def remove_initial(self, node: str, port: str) -> List[Initial]:
        port = self.port_name(port)
        return self._drop_initials(
            [iip for iip in self.initializers if iip.to.node == node and iip.to.port == port]
        )

    def remove_graph_initial(self, public: str) -> List[Initial]:
        inport = self.inports.get(self.port_name(public))
        if inport is None:
            return []
        return self.remove_initial(inport.process, inport.port)

    def _drop_initials(self, initials: List[Initial]) -> List[Initial]:
        if not initials:
            return []
        with self._mutation():
            removed = {id(iip) for iip in initials}
            self.initializers = [iip for iip in self.initializers if id(iip) not in removed]
            for iip in initials:
                self._emit("removeInitial", iip)
        return initials

    # --- Exports (direction-agnostic, legacy) ---

    def add_export(self, public: str, node: str, port: str,
                   metadata: Optional[Mapping[str, Any]] = None) -> Optional[Export]:
        if self.get_node(node) is None:
            logger.debug("Ignoring export %r: no such node %r", public, node)
            return None
        with self._mutation():
            fields: Dict[str, Any] = {
                "public": self.port_name(public),
                "process": node,
                "port": self.port_name(port),
            }
            if metadata is not None:
                fields["metadata"] = dict(metadata)
            exported = Export(**fields)
            self.exports.append(exported)
            self._emit("addExport", exported)
        return exported

    def remove_export(self, public: str) -> Optional[Export]:
        public = self.port_name(public)
        exported = next((e for e in self.exports if e.public == public), None)
        if exported is None:
            logger.debug("Ignoring remove_export(%r): no such export", public)
            return None
        self._drop_export(exported)
        return exported

    def _drop_export(self, exported: Export) -> None:
        with self._mutation():
            self.exports = [e for e in self.exports if e is not exported]
            self._emit("removeExport", exported)

    # --- Inports / outports ---

    def add_inport(self, public: str, node: str, port: str,
                   metadata: Optional[Mapping[str, Any]] = None) -> Optional[PublicPort]:
        return self._add_public_port(INPORT, public, node, port, metadata)

    def remove_inport(self, public: str) -> Optional[PublicPort]:
        return self._remove_public_port(INPORT, public)

    def rename_inport(self, old: str, new: str) -> Optional[PublicPort]:
        return self._rename_public_port(INPORT, old, new)

    def set_inport_metadata(self, public: str, metadata: Mapping[str, Any]) -> Optional[PublicPort]:
        return self._set_public_port_metadata(INPORT, public, metadata)

    def add_outport(self, public: str, node: str, port: str,
                    metadata: Optional[Mapping[str, Any]] = None) -> Optional[PublicPort]:
        return self._add_public_port(OUTPORT, public, node, port, metadata)

    def remove_outport(self, public: str) -> Optional[PublicPort]:
        return self._remove_public_port(OUTPORT, public)

    def rename_outport(self, old: str, new: str) -> Optional[PublicPort]:
        return self._rename_public_port(OUTPORT, old, new)

    def set_outport_metadata(self, public: str, metadata: Mapping[str, Any]) -> Optional[PublicPort]:
        return self._set_public_port_metadata(OUTPORT, public, metadata)

    def _public_ports(self, kind: str) -> Dict[str, PublicPort]:
        return self.inports if kind == INPORT else self.outports

    def _add_public_port(self, kind: str, public: str, node: str, port: str,
                         metadata: Optional[Mapping[str, Any]]) -> Optional[PublicPort]:
        if self.get_node(node) is None:
            logger.debug("Ignoring %s %r: no such node %r", kind, public, node)
            return None
        public = self.port_name(public)
        with self._mutation():
            record = PublicPort(process=node, port=self.port_name(port),
                                metadata=dict(metadata or {}))
            self._public_ports(kind)[public] = record
            self._emit("add" + kind.capitalize(), public, record)
        return record

    def _remove_public_port(self, kind: str, public: str) -> Optional[PublicPort]:
        public = self.port_name(public)
        ports = self._public_ports(kind)
        record = ports.get(public)
        if record is None:
            logger.debug("Ignoring removal of %s %r: not exported", kind, public)
            return None
        with self._mutation():
            self._set_public_port_metadata(kind, public, clearing_patch(record.metadata))
            del ports[public]
            self._emit("remove" + kind.capitalize(), public, record)
        return record

    def _rename_public_port(self, kind: str, old: str, new: str) -> Optional[PublicPort]:
        old = self.port_name(old)
        new = self.port_name(new)
        ports = self._public_ports(kind)
        if old not in ports:
            logger.debug("Ignoring rename of %s %r: not exported", kind, old)
            return None
        with self._mutation():
            record = ports.pop(old)
            ports[new] = record
            self._emit("rename" + kind.capitalize(), old, new)
        return record

    def _set_public_port_metadata(self, kind: str, public: str,
                                  metadata: Mapping[str, Any]) -> Optional[PublicPort]:
        public = self.port_name(public)
        record = self._public_ports(kind).get(public)
        if record is None:
            logger.debug("Ignoring metadata for %s %r: not exported", kind, public)
            return None
        with self._mutation():
            record.metadata, before = merge_metadata(record.metadata, metadata)
            self._emit("change" + kind.capitalize(), public, record, before)
        return record

    # --- Groups ---

    def get_group(self, name: str) -> Optional[Group]:
        return next((group for group in self.groups if group.name == name), None)

    def add_group(self, name: str, nodes: Optional[List[str]] = None,
                  metadata: Optional[Mapping[str, Any]] = None) -> Optional[Group]:
        """Append a group. Returns ``None`` when the name is already taken."""
        if self.get_group(name) is not None:
            logger.debug("Ignoring add_group(%r): name already in use", name)
            return None
        with self._mutation():
            group = Group(name=name, nodes=list(dict.fromkeys(nodes or [])),
                          metadata=dict(metadata or {}))
            self.groups.append(group)
            self._emit("addGroup", group)
        return group

    def rename_group(self, old: str, new: str) -> Group:
        group = self.get_group(old)
        if group is None:
            raise InvalidState(f"Cannot rename group {old!r}: no such group")
        if new != old and self.get_group(new) is not None:
            raise InvalidState(f"Cannot rename group {old!r} to {new!r}: name already in use")
        with self._mutation():
            group.name = new
            self._emit("renameGroup", old, new)
        return group

    def remove_group(self, name: str) -> Optional[Group]:
        group = self.get_group(name)
        if group is None:
            logger.debug("Ignoring remove_group(%r): no such group", name)
            return None
        with self._mutation():
            self._update_group_metadata(group, clearing_patch(group.metadata))
            self.groups = [g for g in self.groups if g is not group]
            self._emit("removeGroup", group)
        return group

    def set_group_metadata(self, name: str, metadata: Mapping[str, Any]) -> Optional[Group]:
        group = self.get_group(name)
        if group is None:
            logger.debug("Ignoring set_group_metadata(%r): no such group", name)
            return None
        self._update_group_metadata(group, metadata)
        return group

    def _update_group_metadata(self, group: Group, metadata: Mapping[str, Any]) -> None:
        with self._mutation():
            group.metadata, before = merge_metadata(group.metadata, metadata)
            self._emit("changeGroup", group, before)


EVENTS = (
    "startTransaction", "endTransaction", "changeProperties",
    "addNode", "removeNode", "renameNode", "changeNode",
    "addEdge", "removeEdge", "changeEdge",
    "addInitial", "removeInitial",
    "addExport", "removeExport",
    "addInport", "removeInport", "renameInport", "changeInport",
    "addOutport", "removeOutport", "renameOutport", "changeOutport",
    "addGroup", "removeGroup", "renameGroup", "changeGroup",
)

MUTATIONS = frozenset({
    "start_transaction", "end_transaction", "set_properties",
    "add_node", "remove_node", "rename_node", "set_node_metadata",
    "add_edge", "add_edge_index", "remove_edge", "set_edge_metadata",
    "add_initial", "add_initial_index", "add_graph_initial",
    "remove_initial", "remove_graph_initial",
    "add_export", "remove_export",
    "add_inport", "remove_inport", "rename_inport", "set_inport_metadata",
    "add_outport", "remove_outport", "rename_outport", "set_outport_metadata",
    "add_group", "rename_group", "remove_group", "set_group_metadata",
})
