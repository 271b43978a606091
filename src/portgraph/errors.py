class GraphError(Exception):
    """Base class for errors raised by portgraph."""

class InvalidState(GraphError):
    """The graph cannot perform the call in its current state."""

class ScriptError(GraphError):
    """An edit script could not be loaded or replayed."""
