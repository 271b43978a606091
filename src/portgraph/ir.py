from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional, Any, Tuple

EdgeKey = Tuple[str, str, Optional[int], str, str, Optional[int]]

class PortRef(BaseModel):
    node: str
    port: str
    index: Optional[int] = None

class Node(BaseModel):
    id: str
    component: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

class Edge(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: PortRef = Field(alias="from")
    to: PortRef
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def key(self) -> EdgeKey:
        return (self.from_.node, self.from_.port, self.from_.index,
                self.to.node, self.to.port, self.to.index)

    def touches(self, node: str) -> bool:
        return self.from_.node == node or self.to.node == node

class Initial(BaseModel):
    value: Any = None
    to: PortRef
    metadata: Dict[str, Any] = Field(default_factory=dict)

class Export(BaseModel):
    public: str
    process: str
    port: str
    metadata: Dict[str, Any] = Field(default_factory=lambda: {"x": 0, "y": 0})

class PublicPort(BaseModel):
    process: str
    port: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

class Group(BaseModel):
    name: str
    nodes: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

class Transaction(BaseModel):
    id: Optional[str] = None
    depth: int = 0

    @property
    def is_open(self) -> bool:
        return self.id is not None
