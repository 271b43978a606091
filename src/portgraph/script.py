"""Edit scripts: a YAML list of graph mutations replayed against a fresh graph."""
from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional, Tuple
import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import InvalidState, ScriptError
from .graph import EVENTS, MUTATIONS, Graph
from .notifier import Notifier

class Operation(BaseModel):
    op: str
    args: List[Any] = Field(default_factory=list)
    kwargs: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("op")
    @classmethod
    def _known_mutation(cls, value: str) -> str:
        if value not in MUTATIONS:
            raise ValueError(f"'{value}' is not a graph mutation")
        return value

class Script(BaseModel):
    name: str = ""
    case_sensitive: bool = False
    operations: List[Operation] = Field(default_factory=list)

class RecordedEvent(NamedTuple):
    event: str
    args: Tuple[Any, ...]

def _snapshot(value: Any) -> Any:
    # records are mutated in place later on, so keep what they looked like now
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True)
    if isinstance(value, dict):
        return {k: _snapshot(v) for k, v in value.items()}
    return value

def load_script(path: Path) -> Script:
    try:
        data = yaml.safe_load(Path(path).read_text())
    except yaml.YAMLError as e:
        raise ScriptError(f"{path}: invalid YAML: {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ScriptError(f"{path}: expected a mapping at the top level")
    try:
        return Script(**data)
    except ValidationError as e:
        raise ScriptError(f"{path}: {e}") from e

def record_events(graph: Graph, into: List[RecordedEvent]) -> None:
    for name in EVENTS:
        graph.on(name, lambda *args, _name=name: into.append(
            RecordedEvent(_name, tuple(_snapshot(a) for a in args))))

def replay(script: Script, notifier: Optional[Notifier] = None) -> Tuple[Graph, List[RecordedEvent]]:
    graph = Graph(script.name, script.case_sensitive, notifier=notifier)
    events: List[RecordedEvent] = []
    record_events(graph, events)
    for i, operation in enumerate(script.operations, 1):
        try:
            getattr(graph, operation.op)(*operation.args, **operation.kwargs)
        except (InvalidState, TypeError, AttributeError, ValueError) as e:
            raise ScriptError(f"operation {i} ({operation.op}) failed: {e}") from e
    return graph, events
