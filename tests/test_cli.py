"""
Tests for the command-line front end.
"""

import io
import textwrap

import pytest

from loquora.__main__ import main, is_complete


def write(path, source):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(source), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Keep a stray ./loquora.yaml from leaking into CLI runs."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("LOQUORA_PATH", raising=False)


class TestRun:
    """Test the run subcommand."""

    def test_run_prints(self, tmp_path, capsys):
        program = write(tmp_path / "hello.loq", 'print("hello", 1 + 1);')
        assert main(["run", str(program)]) == 0
        assert capsys.readouterr().out == "hello 2\n"

    def test_run_error(self, tmp_path, capsys):
        program = write(tmp_path / "bad.loq", "x = 1;\nmissing;")
        assert main(["run", str(program)]) == 1
        err = capsys.readouterr().err
        assert err.startswith("Error:")
        assert "E401" in err
        assert "bad.loq:2:1" in err

    def test_run_missing_file(self, tmp_path, capsys):
        assert main(["run", str(tmp_path / "nope.loq")]) == 1
        assert "File not found" in capsys.readouterr().err

    def test_modules_resolve_beside_program(self, tmp_path, capsys):
        write(tmp_path / "app" / "util.loq", "export tool hi() -> String { return \"hi\"; }")
        program = write(tmp_path / "app" / "main.loq", "load util; print(hi());")
        assert main(["run", str(program)]) == 0
        assert capsys.readouterr().out == "hi\n"

    def test_include_directory(self, tmp_path, capsys):
        write(tmp_path / "lib" / "shared.loq", "export tool answer() -> Int { return 42; }")
        program = write(tmp_path / "app" / "main.loq", "load shared; print(answer());")
        assert main(["run", str(program), "-I", str(tmp_path / "lib")]) == 0
        assert capsys.readouterr().out == "42\n"

    def test_bad_config(self, tmp_path, capsys):
        program = write(tmp_path / "p.loq", "1;")
        config = write(tmp_path / "bad.yaml", "nonsense: true\n")
        assert main(["run", str(program), "--config", str(config)]) == 1
        assert "unknown configuration keys" in capsys.readouterr().err

    def test_verbose_flag(self, tmp_path, capsys):
        program = write(tmp_path / "p.loq", "print(1);")
        assert main(["-v", "run", str(program)]) == 0
        assert capsys.readouterr().out == "1\n"


class TestInspection:
    """Test check, tokens, and ast subcommands."""

    def test_check_ok(self, tmp_path, capsys):
        program = write(tmp_path / "good.loq", "x = 1;\ntool f() { }\n")
        assert main(["check", str(program)]) == 0
        out = capsys.readouterr().out
        assert "OK: good.loq - 2 statement(s)" in out
        assert "1 file(s) checked" in out

    def test_check_reports_every_file(self, tmp_path, capsys):
        first = write(tmp_path / "a.loq", "x = ;")
        second = write(tmp_path / "b.loq", "tool f(")
        good = write(tmp_path / "c.loq", "1;")
        assert main(["check", str(first), str(second), str(good)]) == 1
        captured = capsys.readouterr()
        assert "E103" in captured.err
        assert "E102" in captured.err
        assert "2 error(s)" in captured.err
        assert "OK: c.loq" in captured.out

    def test_tokens(self, tmp_path, capsys):
        program = write(tmp_path / "t.loq", "x = 1;")
        assert main(["tokens", str(program)]) == 0
        out = capsys.readouterr().out
        assert "IDENTIFIER\t'x'" in out
        assert "EOF" in out

    def test_ast(self, tmp_path, capsys):
        program = write(tmp_path / "t.loq", "x = 1;")
        assert main(["ast", str(program)]) == 0
        out = capsys.readouterr().out
        assert out.startswith("Program")
        assert "AssignmentStatement" in out

    def test_ast_parse_error(self, tmp_path, capsys):
        program = write(tmp_path / "t.loq", "x = ;")
        assert main(["ast", str(program)]) == 1
        assert "E103" in capsys.readouterr().err


class TestRepl:
    """Test the interactive front end."""

    def test_session(self, monkeypatch, capsys):
        lines = "x = 20;\nx +\n  22;\nmissing;\nprint(\"hi\");\n\"s\";\n"
        monkeypatch.setattr("sys.stdin", io.StringIO(lines))
        assert main(["repl"]) == 0
        captured = capsys.readouterr()
        assert "42\n" in captured.out
        assert "hi\n" in captured.out
        assert '"s"\n' in captured.out
        assert "E401" in captured.err

    def test_quit(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO(":quit\nprint(1);\n"))
        assert main(["repl"]) == 0
        assert "1\n" not in capsys.readouterr().out

    @pytest.mark.parametrize("buffer,complete", [
        ("x = 1;", True),
        ("x = 1", False),
        ("tool f() {", False),
        ("tool f() {\n  return 1;\n}", True),
        ('s = "}";', True),
        ("f(1,", False),
        ("t = <<~END\nabc", False),
    ])
    def test_is_complete(self, buffer, complete):
        assert is_complete(buffer) is complete
