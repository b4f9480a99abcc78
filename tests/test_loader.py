"""
Tests for module resolution, loading, and caching.
"""

import io
import textwrap

import pytest

from loquora import parse, Interpreter, ModuleLoader, LoquoraConfig, LoquoraError, ParserError
from loquora.errors import ModuleNotFound, CircularImportError, ModuleReadError
from loquora.runtime import display, extract_exports


def write(path, source):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(source), encoding="utf-8")
    return path


@pytest.fixture
def project(tmp_path):
    """A project directory holding a small geometry module."""
    write(tmp_path / "geo.loq", """
        export tool double(n: Int) -> Int { return n * 2; }
        export struct Point { x: Int, y: Int }
        helper = 1;
    """)
    return tmp_path


def interpreter(base_dir, **kwargs):
    return Interpreter(base_dir=base_dir, output=kwargs.pop("output", io.StringIO()), **kwargs)


class TestLoading:
    """Test load statements end to end."""

    def test_load_merges_exports(self, project):
        interp = interpreter(project)
        assert interp.run("load geo; double(21);").data == 42

    def test_load_with_alias(self, project):
        interp = interpreter(project)
        value = interp.run("load geo as g; p = g.Point { x: 1, y: 2 }; g.double(p.y);")
        assert value.data == 4

    def test_alias_does_not_merge(self, project):
        interp = interpreter(project)
        with pytest.raises(LoquoraError) as exc_info:
            interp.run("load geo as g; double(1);")
        assert exc_info.value.code == "E401"

    def test_module_value_display(self, project):
        interp = interpreter(project)
        value = interp.run("load geo as g; g;")
        assert display(value) == "module<1 tools, 1 types, 0 templates>"

    def test_plain_load_does_not_run(self, project):
        """Only exports are taken; top-level statements are not executed."""
        interp = interpreter(project)
        with pytest.raises(LoquoraError) as exc_info:
            interp.run("load geo; helper;")
        assert exc_info.value.code == "E401"

    def test_nested_path(self, tmp_path):
        write(tmp_path / "lib" / "util.loq", "export tool one() -> Int { return 1; }")
        assert interpreter(tmp_path).run("load lib/util; one();").data == 1
        assert interpreter(tmp_path).run("import lib.util; one();").data == 1

    def test_src_root(self, tmp_path):
        write(tmp_path / "src" / "pkg.loq", "export tool two() -> Int { return 2; }")
        assert interpreter(tmp_path).run("load pkg; two();").data == 2

    def test_module_not_found(self, tmp_path):
        with pytest.raises(ModuleNotFound) as exc_info:
            interpreter(tmp_path).run("load nothere;")
        assert exc_info.value.code == "E501"
        assert "nothere" in str(exc_info.value)
        assert "searched" in str(exc_info.value)

    def test_failure_located_at_load(self, tmp_path):
        with pytest.raises(ModuleNotFound) as exc_info:
            interpreter(tmp_path).run("x = 1;\nload nothere;")
        assert exc_info.value.span.start.line == 2

    def test_circular_import(self, tmp_path):
        write(tmp_path / "a.loq", "load b;\nexport tool fa() { }")
        write(tmp_path / "b.loq", "load a;\nexport tool fb() { }")
        interp = interpreter(tmp_path)
        with pytest.raises(CircularImportError) as exc_info:
            interp.run("load a;")
        assert exc_info.value.code == "E502"
        assert "circular import detected: a -> b -> a" in str(exc_info.value)
        assert interp.loader.list_cached_modules() == []

    def test_self_import(self, tmp_path):
        write(tmp_path / "me.loq", "load me;")
        with pytest.raises(CircularImportError):
            interpreter(tmp_path).run("load me;")

    def test_shared_dependency_is_not_a_cycle(self, tmp_path):
        write(tmp_path / "base.loq", "export tool b() -> Int { return 1; }")
        write(tmp_path / "left.loq", "load base;\nexport tool l() { }")
        write(tmp_path / "right.loq", "load base;\nexport tool r() { }")
        interp = interpreter(tmp_path)
        interp.run("load left; load right; load base;")
        assert interp.loader.list_cached_modules() == ["base", "left", "right"]

    def test_read_failure(self, tmp_path):
        (tmp_path / "bad.loq").write_bytes(b"\xff\xfe\xfa")
        with pytest.raises(ModuleReadError) as exc_info:
            interpreter(tmp_path).run("load bad;")
        assert exc_info.value.code == "E503"

    def test_parse_error_in_module(self, tmp_path):
        write(tmp_path / "broken.loq", "export tool f( {")
        interp = interpreter(tmp_path)
        with pytest.raises(ParserError):
            interp.run("load broken;")
        assert not interp.loader.is_cached("broken")


class TestLoadAndRun:
    """Test load-and-run execution."""

    def test_runs_once(self, tmp_path):
        write(tmp_path / "setup.loq", """
            print("setup ran");
            export tool ready() -> Bool { return true; }
        """)
        output = io.StringIO()
        interp = interpreter(tmp_path, output=output)
        value = interp.run("load-and-run setup; load-and-run setup; ready();")
        assert value.data is True
        assert output.getvalue() == "setup ran\n"

    def test_run_does_not_leak_bindings(self, tmp_path):
        write(tmp_path / "setup.loq", "internal = 1;")
        interp = interpreter(tmp_path)
        with pytest.raises(LoquoraError) as exc_info:
            interp.run("load-and-run setup; internal;")
        assert exc_info.value.code == "E401"

    def test_run_after_plain_load(self, tmp_path):
        write(tmp_path / "setup.loq", 'print("ran");')
        output = io.StringIO()
        interp = interpreter(tmp_path, output=output)
        interp.run("load setup; load-and-run setup;")
        assert output.getvalue() == "ran\n"


class TestStdlib:
    """Test the bundled std/ modules."""

    def test_lists(self):
        interp = Interpreter()
        interp.run("load std/lists;")
        assert interp.run("length(list(1, 2, 3));").data == 3
        assert display(interp.run("reverse(list(1, 2, 3));")) == "[3, 2, 1]"
        assert interp.run("sum(list(1, 2, 3));").data == 6
        assert interp.run("contains(list(1, 2), 2);").data is True
        assert interp.run("contains(nil, 2);").data is False

    def test_map(self):
        source = """
        load std/lists;
        tool square(n: Int) -> Int { return n * n; }
        map(list(1, 2, 3), square);
        """
        assert display(Interpreter().run(textwrap.dedent(source))) == "[1, 4, 9]"

    def test_text(self):
        interp = Interpreter()
        interp.run("load std/text as t;")
        assert interp.run('t.join(list("a", "b", 3), ", ");').data == "a, b, 3"
        assert interp.run('t.repeat("ab", 3);').data == "ababab"
        assert display(interp.run("t;")) == "module<2 tools, 0 types, 1 templates>"

    def test_configured_registry_entry(self, tmp_path):
        module = write(tmp_path / "vendor" / "geometry.loq",
                       "export tool area(w: Int, h: Int) -> Int { return w * h; }")
        config = LoquoraConfig(stdlib={"vendor/geo": module})
        interp = Interpreter(config=config, base_dir=tmp_path / "elsewhere")
        assert interp.run("load vendor/geo; area(2, 3);").data == 6


class TestModuleLoader:
    """Test the loader API directly."""

    def test_load_module(self, project):
        loader = ModuleLoader(base_dir=project)
        exports = loader.load_module(["geo"])
        assert set(exports.tools) == {"double"}
        assert set(exports.types) == {"Point"}

    def test_resolve_returns_canonical_path(self, project):
        loader = ModuleLoader(base_dir=project)
        assert loader.resolve(["geo"]) == (project / "geo.loq").resolve()

    def test_cache_queries(self, project):
        loader = ModuleLoader(base_dir=project)
        first = loader.load_module(["geo"])
        assert loader.load_module(["geo"]) is first
        assert loader.is_cached("geo")
        assert loader.is_cached(project / "geo.loq")
        assert loader.list_cached_modules() == ["geo"]

        stats = loader.cache_stats()
        assert stats.cached_modules == 1
        assert stats.total_exports == 2
        assert stats.search_paths == 3

    def test_remove_and_clear(self, project):
        loader = ModuleLoader(base_dir=project)
        loader.load_module(["geo"])
        assert loader.remove_module("geo")
        assert not loader.remove_module("geo")
        loader.load_module(["geo"])
        loader.clear_cache()
        assert loader.list_cached_modules() == []

    def test_add_search_path(self, tmp_path):
        write(tmp_path / "extra" / "x.loq", "export tool x() { }")
        loader = ModuleLoader(base_dir=tmp_path / "proj")
        with pytest.raises(ModuleNotFound):
            loader.load_module(["x"])
        loader.add_search_path(tmp_path / "extra")
        loader.add_search_path(tmp_path / "extra")
        assert loader.list_search_paths().count(tmp_path / "extra") == 1
        assert "x" in loader.load_module(["x"]).tools

    def test_default_search_roots(self, tmp_path):
        loader = ModuleLoader(base_dir=tmp_path)
        assert loader.list_search_paths() == [tmp_path, tmp_path / "src", tmp_path / ".loq" / "std"]

    def test_extract_exports(self):
        program = parse("export tool f() { } tool g() { } export struct S { }")
        exports = extract_exports(program, "m")
        assert set(exports.tools) == {"f"}
        assert set(exports.types) == {"S"}
