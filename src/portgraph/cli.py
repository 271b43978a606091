import logging
from pathlib import Path
from typing import Any, List, Tuple

import typer
from rich import print as rprint
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .errors import ScriptError
from .graph import Graph
from .script import RecordedEvent, load_script, replay
from .validator import check_graph
from .visualize import ascii_plan

app = typer.Typer(no_args_is_help=True, help="portgraph CLI: replay and inspect flow graph edit scripts")

@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every mutation at DEBUG level.")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
    )

def _run(file: Path) -> Tuple[Graph, List[RecordedEvent]]:
    try:
        return replay(load_script(file))
    except ScriptError as e:
        rprint(Panel.fit(f"[bold red]Cannot replay[/] {escape(str(e))}"))
        raise typer.Exit(code=2)

def _fmt(args: Tuple[Any, ...]) -> str:
    return escape(", ".join(repr(a) for a in args))

@app.command("replay")
def replay_cmd(file: Path):
    """Replay an edit script and print the emitted events in order."""
    graph, events = _run(file)
    table = Table(title=f"Events for {graph.name or file.name}", show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("Event", style="bold", no_wrap=True)
    table.add_column("Arguments")
    for i, recorded in enumerate(events, 1):
        table.add_row(str(i), recorded.event, _fmt(recorded.args))
    rprint(table)
    rprint(Panel.fit(
        f"{len(graph.nodes)} nodes, {len(graph.edges)} edges, {len(graph.initializers)} initial values, "
        f"{len(graph.inports)} inports, {len(graph.outports)} outports, {len(graph.groups)} groups"
    ))

@app.command()
def check(file: Path):
    """Replay an edit script and check the result for dangling references."""
    graph, _ = _run(file)
    ok, messages = check_graph(graph)
    table = Table(title="Consistency Report", show_lines=True)
    table.add_column("Status", justify="center", style="bold")
    table.add_column("Message")
    for m in messages:
        status = "OK" if m.startswith("OK:") else "ERR"
        table.add_row(status, escape(m))
    rprint(table)
    if not ok:
        raise typer.Exit(code=1)

@app.command()
def explain(file: Path):
    """Print an ASCII plan of the graph an edit script builds."""
    graph, _ = _run(file)
    print(ascii_plan(graph))

if __name__ == "__main__":
    app()
