"""Smoke tests: imports work, the CLI lays out JSON from stdin or a file."""

import json

from click.testing import CliRunner

from rankgraph.__main__ import main

GRAPH = {
    "id": "root",
    "children": [
        {"id": "a", "width": 40, "height": 20},
        {"id": "b", "width": 40, "height": 20},
    ],
    "edges": [{"id": "e1", "sources": ["a"], "targets": ["b"]}],
}


def test_import():
    import rankgraph

    assert rankgraph.layout is not None
    assert "layout_dict" in rankgraph.__all__


def test_cli_help():
    runner = CliRunner()
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    assert "ELK-style JSON graph" in result.output


def test_cli_stdin():
    runner = CliRunner()
    result = runner.invoke(main, [], input=json.dumps(GRAPH))
    assert result.exit_code == 0
    out = json.loads(result.stdout)
    assert out["id"] == "root"
    assert out["width"] > 0 and out["height"] > 0
    a, b = out["children"]
    assert a["y"] < b["y"]
    section = out["edges"][0]["sections"][0]
    assert section["startPoint"]["y"] == a["y"] + 20


def test_cli_direction():
    runner = CliRunner()
    result = runner.invoke(main, ["-d", "LR", "--indent", "0"], input=json.dumps(GRAPH))
    assert result.exit_code == 0
    assert "\n" not in result.stdout.rstrip("\n")
    a, b = json.loads(result.stdout)["children"]
    assert a["x"] < b["x"]
    assert a["y"] == b["y"]


def test_cli_routing_and_options():
    runner = CliRunner()
    result = runner.invoke(
        main, ["-r", "polyline", "-O", "spacing.nodeNodeBetweenLayers=50"], input=json.dumps(GRAPH)
    )
    assert result.exit_code == 0
    a, b = json.loads(result.stdout)["children"]
    assert b["y"] - (a["y"] + 20) >= 50


def test_cli_file_to_file(tmp_path):
    source = tmp_path / "graph.json"
    target = tmp_path / "out.json"
    source.write_text(json.dumps(GRAPH))
    runner = CliRunner()
    result = runner.invoke(main, [str(source), "-o", str(target)])
    assert result.exit_code == 0
    out = json.loads(target.read_text())
    assert {c["id"] for c in out["children"]} == {"a", "b"}


def test_cli_invalid_json():
    runner = CliRunner()
    result = runner.invoke(main, [], input="{not json")
    assert result.exit_code == 1
    assert "invalid JSON" in result.output


def test_cli_malformed_option():
    runner = CliRunner()
    result = runner.invoke(main, ["-O", "padding"], input=json.dumps(GRAPH))
    assert result.exit_code == 1
    assert "key=value" in result.output


def test_cli_unknown_option():
    runner = CliRunner()
    result = runner.invoke(main, ["-O", "spacing.nope=3"], input=json.dumps(GRAPH))
    assert result.exit_code == 1
    assert "unknown layout option" in result.output


def test_cli_broken_graph():
    runner = CliRunner()
    bad = {"children": [{"id": "a"}], "edges": [{"id": "e", "sources": ["a"], "targets": ["ghost"]}]}
    result = runner.invoke(main, [], input=json.dumps(bad))
    assert result.exit_code == 1
    assert "error:" in result.output


def test_cli_bad_field_type():
    runner = CliRunner()
    doc = {"children": [{"id": "a", "width": "wide", "height": 20}]}
    result = runner.invoke(main, [], input=json.dumps(doc))
    assert result.exit_code == 1
    assert "error: invalid graph document" in result.output
    assert "children.0.width" in result.output
