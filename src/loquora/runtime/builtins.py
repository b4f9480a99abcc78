"""
Built-in tool registry for the Loquora interpreter.

Builtins are dispatched by name from a body-less ToolRef. Each one checks
its own argument count. A registry belongs to one interpreter, and print
writes to that interpreter's output stream.
"""

import sys
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, TextIO

from .values import (
    Value, ValueKind, NULL,
    int_val, float_val, bool_val, string_val, list_val, object_val,
    to_int, to_float, as_string, display,
)
from ..errors import (
    error_invalid_arguments,
    error_undefined_tool,
    error_type_mismatch,
    error_panic,
)


@dataclass
class BuiltinFunction:
    """A built-in tool with its implementation and accepted argument counts."""
    name: str
    implementation: Callable[..., Value]
    min_args: int = 0
    max_args: Optional[int] = None  # None = variadic
    doc: str = ""

    def check_arity(self, count: int) -> None:
        if count < self.min_args or (self.max_args is not None and count > self.max_args):
            if self.max_args is None:
                expected = f"at least {self.min_args}"
            elif self.min_args == self.max_args:
                expected = str(self.min_args)
            else:
                expected = f"{self.min_args} to {self.max_args}"
            raise error_invalid_arguments(
                f"{self.name}() expects {expected} argument(s), got {count}"
            )


class BuiltinRegistry:
    """
    Registry of all built-in tools.

    Tools are registered by name and looked up for execution.
    """

    def __init__(self, output: Optional[TextIO] = None):
        self.output = output
        self._functions: Dict[str, BuiltinFunction] = {}
        self._register_all()

    @property
    def names(self) -> List[str]:
        return sorted(self._functions)

    def get_function(self, name: str) -> Optional[BuiltinFunction]:
        """Look up a tool by name."""
        return self._functions.get(name)

    def register(self, func: BuiltinFunction) -> None:
        """Register a tool."""
        self._functions[func.name] = func

    def call(self, name: str, args: List[Value]) -> Value:
        """Call a built-in tool by name."""
        func = self.get_function(name)
        if func is None:
            raise error_undefined_tool(name)
        func.check_arity(len(args))
        return func.implementation(*args)

    def _register_all(self) -> None:
        """Register all built-in tools."""
        self._register_io_functions()
        self._register_list_functions()
        self._register_record_functions()
        self._register_conversion_functions()

    # --- I/O and failure ---

    def _register_io_functions(self) -> None:

        def _print(*args: Value) -> Value:
            stream = self.output if self.output is not None else sys.stdout
            stream.write(" ".join(display(arg) for arg in args) + "\n")
            return NULL

        def _panic(*args: Value) -> Value:
            message = as_string(args[0]) if args else "panic"
            raise error_panic(message)

        self.register(BuiltinFunction("print", _print, 0, None,
                                      "Write values separated by spaces, then a newline"))
        self.register(BuiltinFunction("panic", _panic, 0, 1,
                                      "Abort the program with a message"))

    # --- Lists ---

    def _register_list_functions(self) -> None:

        def _list(*args: Value) -> Value:
            return list_val(args)

        def _cons(head: Value, tail: Value) -> Value:
            if tail.kind == ValueKind.LIST:
                return list_val([head] + tail.data)
            return list_val([head, tail])

        def _get(items: Value, index: Value) -> Value:
            if items.kind != ValueKind.LIST:
                raise error_type_mismatch("List", items.type_name)
            i = to_int(index)
            if 0 <= i < len(items.data):
                return items.data[i]
            return NULL

        def _pair(first: Value, second: Value) -> Value:
            return list_val([first, second])

        self.register(BuiltinFunction("list", _list, 0, None, "Build a list"))
        self.register(BuiltinFunction("cons", _cons, 2, 2, "Prepend to a list"))
        self.register(BuiltinFunction("get", _get, 2, 2,
                                      "Element at index, or null when out of range"))
        self.register(BuiltinFunction("pair", _pair, 2, 2, "Two-element list"))

    # --- Records ---

    def _register_record_functions(self) -> None:

        def _object(*pairs: Value) -> Value:
            fields = {}
            for pair in pairs:
                if pair.kind != ValueKind.LIST or len(pair.data) != 2:
                    raise error_invalid_arguments("object() expects pair(key, value) arguments")
                key, value = pair.data
                if key.kind != ValueKind.STRING:
                    raise error_type_mismatch("String key", key.type_name)
                fields[key.data] = value
            return object_val("object", fields)

        def _lookup(obj: Value, key: Value) -> Value:
            if obj.kind != ValueKind.OBJECT:
                raise error_type_mismatch("Object", obj.type_name)
            return obj.data.fields.get(as_string(key), NULL)

        self.register(BuiltinFunction("object", _object, 0, None,
                                      "Build an open record from pairs"))
        self.register(BuiltinFunction("lookup", _lookup, 2, 2,
                                      "Field by name, or null when missing"))

    # --- Conversions ---

    def _register_conversion_functions(self) -> None:

        def _int(value: Value) -> Value:
            return int_val(to_int(value))

        def _float(value: Value) -> Value:
            return float_val(to_float(value))

        def _bool(value: Value) -> Value:
            return bool_val(value.is_truthy())

        def _str(value: Value) -> Value:
            return string_val(as_string(value))

        self.register(BuiltinFunction("int", _int, 1, 1, "Convert to Int"))
        self.register(BuiltinFunction("float", _float, 1, 1, "Convert to Float"))
        self.register(BuiltinFunction("bool", _bool, 1, 1, "Truthiness as Bool"))
        self.register(BuiltinFunction("str", _str, 1, 1, "Convert to String"))
