"""
Runtime values for the Loquora interpreter.

A Value pairs a Python payload with a ValueKind tag. The kinds form a
closed set; operator and coercion logic dispatches on the tag.

Payloads by kind:
    INT, FLOAT, STRING, CHAR, BOOL  - the Python int/float/str/str/bool
    NULL                            - None
    LIST                            - a Python list of Values
    OBJECT                          - ObjectData
    TOOL                            - ToolRef
    TYPE                            - a TypeDef
    MODULE                          - ModuleExports

Objects are never mutated after construction; field updates build new
Values.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Sequence
from enum import Enum

from ..ast import Parameter, Block
from ..types import TypeDef, TemplateType
from ..errors import (
    error_type_mismatch,
    error_field_not_found,
    error_not_an_object,
)


INT_BITS = 64
INT_MIN = -(2 ** (INT_BITS - 1))
INT_MAX = 2 ** (INT_BITS - 1) - 1


class ValueKind(Enum):
    """Runtime value kinds; the value is the user-facing type name."""
    INT = "Int"
    FLOAT = "Float"
    STRING = "String"
    CHAR = "Char"
    BOOL = "Bool"
    NULL = "Null"
    LIST = "List"
    OBJECT = "Object"
    TOOL = "Tool"
    TYPE = "Type"
    MODULE = "Module"


@dataclass
class ObjectData:
    """
    Payload of an Object value.

    ``declared`` lists the field names the object's type allows. Records
    built by the object() builtin are open and leave it as None.
    """
    type_name: str
    fields: Dict[str, "Value"]
    declared: Optional[FrozenSet[str]] = None

    def allows(self, name: str) -> bool:
        return self.declared is None or name in self.declared


@dataclass
class ToolRef:
    """A callable. Builtins have no body and are dispatched by name."""
    name: str
    parameters: List[Parameter] = field(default_factory=list)
    body: Optional[Block] = None

    @property
    def is_builtin(self) -> bool:
        return self.body is None

    @property
    def arity(self) -> int:
        return len(self.parameters)


@dataclass
class ModuleExports:
    """The export surface of a loaded module."""
    name: str
    tools: Dict[str, ToolRef] = field(default_factory=dict)
    types: Dict[str, TypeDef] = field(default_factory=dict)

    @property
    def templates(self) -> Dict[str, TypeDef]:
        return {k: t for k, t in self.types.items() if isinstance(t, TemplateType)}

    @property
    def export_count(self) -> int:
        return len(self.tools) + len(self.types)


@dataclass(frozen=True)
class Value:
    """A runtime value: payload plus kind tag."""
    data: Any
    kind: ValueKind

    def __repr__(self) -> str:
        return f"Value({self.data!r}, {self.kind.name})"

    def __str__(self) -> str:
        return display(self)

    @property
    def type_name(self) -> str:
        return self.kind.value

    @property
    def is_null(self) -> bool:
        return self.kind == ValueKind.NULL

    @property
    def is_numeric(self) -> bool:
        return self.kind in (ValueKind.INT, ValueKind.FLOAT)

    def is_truthy(self) -> bool:
        """false, null, 0, 0.0, "" and [] are falsy; everything else is truthy."""
        if self.kind == ValueKind.BOOL:
            return self.data
        if self.kind == ValueKind.NULL:
            return False
        if self.kind in (ValueKind.INT, ValueKind.FLOAT):
            return self.data != 0
        if self.kind in (ValueKind.STRING, ValueKind.LIST):
            return len(self.data) > 0
        return True


# Convenience constructors

def wrap_int(n: int) -> int:
    """Wrap an integer to signed 64-bit two's complement."""
    n &= (1 << INT_BITS) - 1
    if n > INT_MAX:
        n -= 1 << INT_BITS
    return n


def int_val(n: int) -> Value:
    """Create an integer value, wrapped to 64 bits."""
    return Value(wrap_int(int(n)), ValueKind.INT)


def float_val(x: float) -> Value:
    return Value(float(x), ValueKind.FLOAT)


def string_val(s: str) -> Value:
    return Value(str(s), ValueKind.STRING)


def char_val(c: str) -> Value:
    return Value(c, ValueKind.CHAR)


def bool_val(b: bool) -> Value:
    return Value(bool(b), ValueKind.BOOL)


NULL = Value(None, ValueKind.NULL)


def list_val(items: Sequence[Value]) -> Value:
    return Value(list(items), ValueKind.LIST)


def object_val(type_name: str, fields: Dict[str, Value],
               declared: Optional[FrozenSet[str]] = None) -> Value:
    return Value(ObjectData(type_name, dict(fields), declared), ValueKind.OBJECT)


def tool_val(tool: ToolRef) -> Value:
    return Value(tool, ValueKind.TOOL)


def type_val(type_def: TypeDef) -> Value:
    return Value(type_def, ValueKind.TYPE)


def module_val(exports: ModuleExports) -> Value:
    return Value(exports, ValueKind.MODULE)


# Coercions

def to_int(value: Value) -> int:
    """Convert Int, Float (truncating), Bool, Char, or a numeric String to int."""
    if value.kind == ValueKind.INT:
        return value.data
    if value.kind == ValueKind.FLOAT:
        if math.isnan(value.data) or math.isinf(value.data):
            raise error_type_mismatch("finite Float", display(value))
        return wrap_int(int(value.data))
    if value.kind == ValueKind.BOOL:
        return 1 if value.data else 0
    if value.kind == ValueKind.CHAR:
        return ord(value.data)
    if value.kind == ValueKind.STRING:
        try:
            return wrap_int(int(value.data.strip()))
        except ValueError:
            raise error_type_mismatch("Int or numeric string", f'String("{value.data}")')
    raise error_type_mismatch("Int-convertible type", value.type_name)


def to_float(value: Value) -> float:
    """Convert Int, Float, Bool, or a numeric String to float."""
    if value.kind in (ValueKind.INT, ValueKind.FLOAT):
        return float(value.data)
    if value.kind == ValueKind.BOOL:
        return 1.0 if value.data else 0.0
    if value.kind == ValueKind.STRING:
        try:
            return float(value.data.strip())
        except ValueError:
            raise error_type_mismatch("Float or numeric string", f'String("{value.data}")')
    raise error_type_mismatch("Float-convertible type", value.type_name)


def as_string(value: Value) -> str:
    """Strings as-is; everything else in display form."""
    if value.kind == ValueKind.STRING:
        return value.data
    return display(value)


def display(value: Value, nested: bool = False) -> str:
    """Render a value. Strings are quoted only when nested in a container."""
    kind = value.kind
    if kind == ValueKind.INT:
        return str(value.data)
    if kind == ValueKind.FLOAT:
        return repr(value.data)
    if kind == ValueKind.STRING:
        return f'"{value.data}"' if nested else value.data
    if kind == ValueKind.CHAR:
        return f"'{value.data}'"
    if kind == ValueKind.BOOL:
        return "true" if value.data else "false"
    if kind == ValueKind.NULL:
        return "null"
    if kind == ValueKind.LIST:
        return "[" + ", ".join(display(item, True) for item in value.data) + "]"
    if kind == ValueKind.OBJECT:
        obj = value.data
        if not obj.fields:
            return f"{obj.type_name} {{}}"
        body = ", ".join(f"{k}: {display(v, True)}" for k, v in obj.fields.items())
        return f"{obj.type_name} {{ {body} }}"
    if kind == ValueKind.TOOL:
        return f"tool<{value.data.name}>"
    if kind == ValueKind.TYPE:
        return str(value.data)
    if kind == ValueKind.MODULE:
        exports = value.data
        templates = len(exports.templates)
        return (f"module<{len(exports.tools)} tools, "
                f"{len(exports.types) - templates} types, {templates} templates>")
    raise ValueError(f"unknown value kind {kind}")


def values_equal(left: Value, right: Value) -> bool:
    """
    Structural equality. Int and Float compare by numeric value; values
    of unrelated kinds are unequal.
    """
    if left.is_numeric and right.is_numeric:
        return left.data == right.data
    if left.kind != right.kind:
        return False
    if left.kind == ValueKind.LIST:
        return (len(left.data) == len(right.data)
                and all(values_equal(a, b) for a, b in zip(left.data, right.data)))
    if left.kind == ValueKind.OBJECT:
        a, b = left.data, right.data
        return (a.type_name == b.type_name
                and a.fields.keys() == b.fields.keys()
                and all(values_equal(a.fields[k], b.fields[k]) for k in a.fields))
    if left.kind == ValueKind.TOOL:
        return left.data.name == right.data.name
    if left.kind == ValueKind.TYPE:
        return left.data.name == right.data.name
    if left.kind == ValueKind.MODULE:
        return left.data is right.data
    return left.data == right.data


# Property access

def get_property(value: Value, name: str) -> Value:
    """Read a field of an Object or an export of a Module."""
    if value.kind == ValueKind.OBJECT:
        obj = value.data
        if name not in obj.fields:
            raise error_field_not_found(name, obj.type_name)
        return obj.fields[name]
    if value.kind == ValueKind.MODULE:
        exports = value.data
        if name in exports.tools:
            return tool_val(exports.tools[name])
        if name in exports.types:
            return type_val(exports.types[name])
        raise error_field_not_found(name, f"module {exports.name}")
    raise error_not_an_object(value.type_name)


def with_field(value: Value, name: str, field_value: Value) -> Value:
    """A copy of an Object with one field replaced."""
    if value.kind != ValueKind.OBJECT:
        raise error_not_an_object(value.type_name)
    obj = value.data
    if not obj.allows(name):
        raise error_field_not_found(name, obj.type_name)
    fields = dict(obj.fields)
    fields[name] = field_value
    return Value(ObjectData(obj.type_name, fields, obj.declared), ValueKind.OBJECT)


def replace_path(root: Value, path: Sequence[str], new_value: Value) -> Value:
    """
    Rebuild ``root`` with the field at ``path`` set to ``new_value``.

    Every Object along the path is copied; nothing is mutated.
    """
    if not path:
        return new_value
    if root.kind != ValueKind.OBJECT:
        raise error_not_an_object(root.type_name)
    head = path[0]
    if len(path) == 1:
        return with_field(root, head, new_value)
    child = get_property(root, head)
    return with_field(root, head, replace_path(child, path[1:], new_value))
