import json

import pytest

from solar.__main__ import run_tree_file


def test_runs_a_tree_file(tmp_path, capsys):
    path = tmp_path / "hello.json"
    path.write_text(json.dumps({'tag': 'program', 'children': [
        {'tag': 'function-call', 'children': [
            {'tag': 'identifier', 'text': 'println'},
            {'tag': 'argument-list', 'children': [
                {'tag': 'expression', 'children': [{'tag': 'string', 'text': '"hi"'}]}]}]},
    ]}), encoding="utf-8")
    run_tree_file(str(path))
    assert capsys.readouterr().out == "hi\n"


def test_missing_file(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        run_tree_file(str(tmp_path / "nope.json"))
    assert exc.value.code == 1
    assert "file not found" in capsys.readouterr().err


def test_directory_instead_of_file(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        run_tree_file(str(tmp_path))
    assert exc.value.code == 1
    assert capsys.readouterr().err.startswith(f"Error: cannot read {tmp_path}")


def test_malformed_tree_prints_error(tmp_path, capsys):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({'tag': 'program', 'children': ["oops"]}), encoding="utf-8")
    with pytest.raises(SystemExit) as exc:
        run_tree_file(str(path))
    assert exc.value.code == 1
    err = capsys.readouterr().err
    assert err.startswith("InvalidTree: ")
    assert "Traceback" not in err
