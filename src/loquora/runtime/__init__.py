"""
Loquora runtime - tree-walking interpreter and module system.

This module provides:
- Value: Tagged runtime values and their constructors
- Environment: Scope frames and tool/type registries
- BuiltinRegistry: The builtin tools
- ModuleLoader: Module resolution, caching, and cycle detection
- Interpreter: Executes parsed programs
"""

from .values import (
    Value,
    ValueKind,
    ObjectData,
    ToolRef,
    ModuleExports,
    NULL,
    int_val,
    float_val,
    string_val,
    char_val,
    bool_val,
    list_val,
    object_val,
    tool_val,
    type_val,
    module_val,
    display,
    values_equal,
)

from .environment import (
    Scope,
    Environment,
    BUILTIN_NAMES,
)

from .builtins import (
    BuiltinFunction,
    BuiltinRegistry,
)

from .loader import (
    LoadedModule,
    CacheStats,
    ModuleLoader,
    extract_exports,
)

from .interpreter import (
    Interpreter,
    Signal,
    SignalKind,
    ExecutionResult,
    execute,
    run_source,
)

__all__ = [
    # Values
    "Value",
    "ValueKind",
    "ObjectData",
    "ToolRef",
    "ModuleExports",
    "NULL",
    "int_val",
    "float_val",
    "string_val",
    "char_val",
    "bool_val",
    "list_val",
    "object_val",
    "tool_val",
    "type_val",
    "module_val",
    "display",
    "values_equal",
    # Environment
    "Scope",
    "Environment",
    "BUILTIN_NAMES",
    # Builtins
    "BuiltinFunction",
    "BuiltinRegistry",
    # Modules
    "LoadedModule",
    "CacheStats",
    "ModuleLoader",
    "extract_exports",
    # Interpreter
    "Interpreter",
    "Signal",
    "SignalKind",
    "ExecutionResult",
    "execute",
    "run_source",
]
