import sys

import pytest

from milang.__main__ import main


def run(monkeypatch, path):
    monkeypatch.setattr(sys, "argv", ["milang", str(path)])
    main()


def test_prints_tree(monkeypatch, capsys, tmp_path):
    source = tmp_path / "ok.mi"
    source.write_text("module m {\n    fn main {\n        std.println(1);\n    }\n}\n")
    run(monkeypatch, source)
    captured = capsys.readouterr()
    assert captured.err == ""
    assert captured.out.startswith("(PARENT")
    assert "(CREATE_MODULE m" in captured.out


def test_reports_errors(monkeypatch, capsys, tmp_path):
    source = tmp_path / "bad.mi"
    source.write_text("module m {\n    fn main {\n        int x = \"a\";\n    }\n}\n")
    with pytest.raises(SystemExit) as e:
        run(monkeypatch, source)
    assert e.value.code == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert f"{source}:3:" in captured.err
    assert "error: Datatypes are not equal on both sides" in captured.err
