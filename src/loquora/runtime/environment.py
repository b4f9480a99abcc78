"""
Execution environment for the Loquora interpreter.

Holds the scope stack, the global tool and type registries, and the
loop/tool context used to validate break, continue and return. One
Environment belongs to one interpreter run.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
from contextlib import contextmanager

from .values import (
    Value, ValueKind, ToolRef, ModuleExports,
    tool_val, type_val, list_val, object_val, replace_path,
)
from ..types import TypeDef
from ..errors import (
    error_undefined_variable,
    error_undefined_type,
    error_empty_path,
    error_field_not_found,
    error_required_field_missing,
    error_type_mismatch,
    error_invalid_arguments,
)


# Names that resolve ahead of every user binding. nil is a value; the rest
# are builtin tools.
BUILTIN_NAMES = (
    "print", "panic", "list", "cons", "nil", "object", "pair",
    "get", "lookup", "int", "float", "bool", "str",
)


def builtin_value(name: str) -> Value:
    if name == "nil":
        return list_val([])
    return tool_val(ToolRef(name))


@dataclass
class Scope:
    """A single frame of variable bindings."""
    variables: Dict[str, Value] = field(default_factory=dict)
    name: str = "block"  # For debugging

    def get(self, name: str) -> Optional[Value]:
        return self.variables.get(name)

    def set(self, name: str, value: Value) -> None:
        self.variables[name] = value

    def contains(self, name: str) -> bool:
        return name in self.variables


@dataclass
class Environment:
    """
    Scopes, registries, and control-flow context.

    Lookup order for a name: builtins, scope frames innermost first,
    global tools, global types. Assignment always binds in the innermost
    frame.
    """
    frames: List[Scope] = field(default_factory=lambda: [Scope(name="global")])
    tools: Dict[str, ToolRef] = field(default_factory=dict)
    types: Dict[str, TypeDef] = field(default_factory=dict)

    # Control flow context
    in_loop: int = 0
    in_tool: bool = False

    # --- Variables ---

    @property
    def current_scope(self) -> Scope:
        return self.frames[-1]

    @property
    def depth(self) -> int:
        return len(self.frames)

    def lookup(self, name: str) -> Value:
        """Resolve a name, raising UndefinedVariableError if nothing matches."""
        if name in BUILTIN_NAMES:
            return builtin_value(name)
        for scope in reversed(self.frames):
            value = scope.get(name)
            if value is not None:
                return value
        if name in self.tools:
            return tool_val(self.tools[name])
        if name in self.types:
            return type_val(self.types[name])
        raise error_undefined_variable(name)

    def set(self, name: str, value: Value) -> None:
        """Bind a name in the innermost frame."""
        self.current_scope.set(name, value)

    def set_path(self, path: Sequence[str], value: Value) -> None:
        """
        Assign to a dotted path. ``a`` rebinds a variable; ``a.b.c`` rebuilds
        the Object bound to ``a`` with the nested field replaced and rebinds
        ``a`` in the innermost frame.
        """
        if not path:
            raise error_empty_path()
        if len(path) == 1:
            self.set(path[0], value)
            return
        root = self.lookup(path[0])
        self.set(path[0], replace_path(root, path[1:], value))

    # --- Scopes and context ---

    def push_scope(self, name: str = "block") -> Scope:
        scope = Scope(name=name)
        self.frames.append(scope)
        return scope

    def pop_scope(self) -> None:
        """Drop the innermost frame; the global frame is never popped."""
        if len(self.frames) > 1:
            self.frames.pop()

    @contextmanager
    def new_scope(self, name: str = "block"):
        """
        Context manager for a nested frame, popped on every exit path.

        Usage:
            with env.new_scope("for"):
                env.set("i", int_val(0))
        """
        scope = self.push_scope(name)
        try:
            yield scope
        finally:
            self.pop_scope()

    @contextmanager
    def loop_context(self):
        self.in_loop += 1
        try:
            yield
        finally:
            self.in_loop -= 1

    @contextmanager
    def tool_context(self):
        """Enter a tool body, restoring the previous in_tool flag on exit."""
        previous = self.in_tool
        self.in_tool = True
        try:
            yield
        finally:
            self.in_tool = previous

    # --- Registries ---

    def define_tool(self, tool: ToolRef) -> None:
        self.tools[tool.name] = tool

    def define_type(self, type_def: TypeDef) -> None:
        self.types[type_def.name] = type_def

    def get_type(self, name: str) -> TypeDef:
        if name not in self.types:
            raise error_undefined_type(name)
        return self.types[name]

    def merge_exports(self, exports: ModuleExports) -> None:
        """Merge a module's exports into the global registries, overwriting same names."""
        self.tools.update(exports.tools)
        self.types.update(exports.types)

    # --- Object construction ---

    def instantiate(self, type_def: TypeDef, supplied: Dict[str, Value],
                    members: Optional[Dict[str, Value]] = None) -> Value:
        """
        Build an Object of ``type_def`` from supplied field values.

        ``members`` holds values the type contributes itself (tool members,
        model defaults); supplied values take precedence. Each declared field
        is validated: a missing non-optional field fails, and a null value
        fails unless the field is nullable.
        """
        if not type_def.instantiable:
            raise error_invalid_arguments(f"cannot instantiate template {type_def.name}")

        members = members or {}
        declared = frozenset([f.name for f in type_def.fields] + list(members))

        for name in supplied:
            if name not in declared:
                raise error_field_not_found(name, type_def.name)

        for field_decl in type_def.fields:
            value = supplied.get(field_decl.name)
            if value is None:
                if not field_decl.optional:
                    raise error_required_field_missing(field_decl.name, type_def.name)
                continue
            if value.kind == ValueKind.NULL and not field_decl.nullable:
                raise error_type_mismatch(f"non-null {field_decl.type_annotation}", "Null")

        fields = dict(members)
        fields.update(supplied)
        return object_val(type_def.name, fields, declared)
