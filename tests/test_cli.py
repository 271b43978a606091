from pathlib import Path
from typer.testing import CliRunner
from portgraph.cli import app

runner = CliRunner()

SCRIPT = """
name: cli
operations:
  - op: add_node
    args: [A, core/Reader]
  - op: add_node
    args: [B, core/Writer]
  - op: add_edge
    args: [A, out, B, in]
"""

def _write(tmp_path: Path, text: str = SCRIPT) -> Path:
    path = tmp_path / "edit.yaml"
    path.write_text(text)
    return path

def test_replay_prints_events(tmp_path: Path):
    result = runner.invoke(app, ["replay", str(_write(tmp_path))])
    assert result.exit_code == 0, result.output
    assert "addNode" in result.output
    assert "addEdge" in result.output

def test_check_passes(tmp_path: Path):
    result = runner.invoke(app, ["check", str(_write(tmp_path))])
    assert result.exit_code == 0, result.output

def test_check_fails_on_open_transaction(tmp_path: Path):
    text = SCRIPT + "  - op: start_transaction\n    args: [edit]\n"
    result = runner.invoke(app, ["check", str(_write(tmp_path, text))])
    assert result.exit_code == 1

def test_explain(tmp_path: Path):
    result = runner.invoke(app, ["explain", str(_write(tmp_path))])
    assert result.exit_code == 0
    assert "01. A [core/Reader]" in result.output

def test_bad_script_exits_with_2(tmp_path: Path):
    result = runner.invoke(app, ["--verbose", "replay", str(_write(tmp_path, "operations:\n  - op: nope\n"))])
    assert result.exit_code == 2

def test_wrongly_typed_argument_exits_with_2(tmp_path: Path):
    text = SCRIPT + "  - op: set_node_metadata\n    args: [A, oops]\n"
    result = runner.invoke(app, ["replay", str(_write(tmp_path, text))])
    assert result.exit_code == 2
