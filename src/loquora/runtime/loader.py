"""
Module loader for Loquora.

Resolves a module path such as ``geo/shapes`` to a file, parses it, and
extracts its exports. Loaded modules are cached by canonical path, and a
stack of modules being loaded detects circular imports.

Resolution order: the stdlib registry (keyed by the slash-joined path),
then each search root in order. The last path segment gets the module
extension; earlier segments are directories.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, TextIO, Union

from .values import ModuleExports, ToolRef
from ..ast import Program, ExportDecl, ToolDecl, LoadStatement
from ..config import LoquoraConfig
from ..parser import parse
from ..types import type_from_decl
from ..errors import (
    error_module_not_found,
    error_circular_import,
    error_module_read,
)

logger = logging.getLogger(__name__)


@dataclass
class LoadedModule:
    """A cache entry. ``initialized`` is False while the module is mid-load."""
    name: str
    path: Path
    source: str
    program: Program
    exports: ModuleExports
    initialized: bool = False
    executed: bool = False


@dataclass
class CacheStats:
    cached_modules: int
    stdlib_modules: int
    search_paths: int
    total_exports: int


def extract_exports(program: Program, name: str) -> ModuleExports:
    """Collect the tools and types a program wraps in export declarations."""
    exports = ModuleExports(name)
    for stmt in program.statements:
        if not isinstance(stmt, ExportDecl):
            continue
        decl = stmt.declaration
        if isinstance(decl, ToolDecl):
            exports.tools[decl.name] = ToolRef(decl.name, list(decl.parameters), decl.body)
        else:
            type_def = type_from_decl(decl)
            exports.types[type_def.name] = type_def
    return exports


class ModuleLoader:
    """
    Resolves, loads, and caches modules for one interpreter session.

    Usage:
        loader = ModuleLoader(config, base_dir="project")
        exports = loader.load_module(["geo", "shapes"])
    """

    def __init__(self, config: Optional[LoquoraConfig] = None,
                 base_dir: Union[str, Path, None] = None):
        self.config = config or LoquoraConfig()
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()
        self.extension = self.config.extension
        self.search_paths: List[Path] = [self._root(p) for p in self.config.search_paths]
        self.stdlib: Dict[str, Path] = self.config.stdlib_registry()
        self._cache: Dict[Path, LoadedModule] = {}
        self._loading: List[Path] = []

    def _root(self, path: Path) -> Path:
        path = Path(path)
        return path if path.is_absolute() else self.base_dir / path

    # --- Resolution ---

    def resolve(self, segments: Sequence[str]) -> Path:
        """Find the file for a module path, returning its canonical path."""
        name = "/".join(segments)

        stdlib_path = self.stdlib.get(name)
        if stdlib_path is not None and stdlib_path.is_file():
            logger.debug("resolved %s from stdlib registry: %s", name, stdlib_path)
            return stdlib_path.resolve()

        relative = Path(*segments[:-1], segments[-1] + self.extension)
        for root in self.search_paths:
            candidate = root / relative
            if candidate.is_file():
                logger.debug("resolved %s to %s", name, candidate)
                return candidate.resolve()

        raise error_module_not_found(name, [str(root) for root in self.search_paths])

    # --- Loading ---

    def load_module(self, segments: Sequence[str], run: bool = False,
                    output: Optional[TextIO] = None) -> ModuleExports:
        """
        Load a module and return its exports.

        The module's own top-level load statements are loaded first. With
        ``run`` set, its statements are executed once in a child interpreter
        that shares this loader.

        Raises:
            ModuleNotFound: No search root holds the module
            CircularImportError: The module is already being loaded
            ModuleReadError: The file exists but cannot be read
            ParserError: The module does not parse
        """
        name = "/".join(segments)
        path = self.resolve(segments)

        cached = self._cache.get(path)
        if path in self._loading or (cached is not None and not cached.initialized):
            start = self._loading.index(path) if path in self._loading else len(self._loading)
            chain = [self._cache[p].name for p in self._loading[start:] if p in self._cache]
            raise error_circular_import(chain + [name])

        if cached is not None:
            logger.debug("cache hit for module %s", name)
            if run and not cached.executed:
                self._run(cached, output)
            return cached.exports

        logger.debug("loading module %s from %s", name, path)
        self._loading.append(path)
        try:
            try:
                source = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise error_module_read(str(path), str(exc)) from exc

            program = parse(source, str(path))
            module = LoadedModule(name, path, source, program, ModuleExports(name))
            self._cache[path] = module

            for stmt in program.statements:
                if isinstance(stmt, LoadStatement):
                    self.load_module(stmt.module_path, stmt.run, output)

            module.exports = extract_exports(program, name)
            if run:
                self._run(module, output)
            module.initialized = True
        except Exception:
            self._cache.pop(path, None)
            raise
        finally:
            self._loading.pop()

        return module.exports

    def _run(self, module: LoadedModule, output: Optional[TextIO]) -> None:
        from .interpreter import Interpreter

        logger.debug("running module %s", module.name)
        module.executed = True
        Interpreter(loader=self, output=output).execute_program(module.program, module.source)

    # --- Cache maintenance ---

    def _find(self, module: Union[str, Path]) -> Optional[Path]:
        if isinstance(module, Path):
            key = module.resolve()
            return key if key in self._cache else None
        for path, entry in self._cache.items():
            if entry.name == module:
                return path
        return None

    def is_cached(self, module: Union[str, Path]) -> bool:
        """Check by module name ("a/b") or file path."""
        return self._find(module) is not None

    def remove_module(self, module: Union[str, Path]) -> bool:
        """Evict one module; returns False if it was not cached."""
        path = self._find(module)
        if path is None:
            return False
        del self._cache[path]
        return True

    def clear_cache(self) -> None:
        self._cache.clear()

    def list_cached_modules(self) -> List[str]:
        return sorted(entry.name for entry in self._cache.values())

    def list_search_paths(self) -> List[Path]:
        return list(self.search_paths)

    def add_search_path(self, path: Union[str, Path]) -> None:
        root = self._root(Path(path))
        if root not in self.search_paths:
            self.search_paths.append(root)

    def cache_stats(self) -> CacheStats:
        return CacheStats(
            cached_modules=len(self._cache),
            stdlib_modules=len(self.stdlib),
            search_paths=len(self.search_paths),
            total_exports=sum(e.exports.export_count for e in self._cache.values()),
        )
