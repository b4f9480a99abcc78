"""
Loquora language interpreter.

This package provides:
- Lexer: Tokenizes Loquora source code
- Parser: Builds an AST from the token stream
- Interpreter: Executes programs against a scoped environment
- ModuleLoader: Resolves and caches load/import statements
- LoquoraConfig: Module search settings from loquora.yaml

Usage:
    from loquora import tokenize, parse, run_source

    tokens = tokenize('x = 40 + 2;')

    source = '''
    struct Point { x: Int, y: Int }
    tool norm1(p: Point) -> Int { return p.x + p.y; }
    norm1(Point { x: 3, y: 4 });
    '''
    result = run_source(source)
    if result.success:
        print(result.value)
    else:
        print(result.error_message)
"""

import logging

from .tokens import (
    Token,
    TokenType,
    SourceLocation,
    SourceSpan,
    KEYWORDS,
    is_keyword,
)

from .lexer import (
    Lexer,
    tokenize,
)

from .parser import (
    Parser,
    parse,
)

from .ast import (
    AstNode,
    AstVisitor,
    Program,
    PrintVisitor,
    format_ast,
    print_ast,
)

from .errors import (
    ErrorSeverity,
    Diagnostic,
    DiagnosticCollector,
    LoquoraError,
    ParserError,
    RuntimeFailure,
    ModuleError,
)

from .config import (
    ConfigError,
    LoquoraConfig,
    load_config,
)

from .runtime import (
    Value,
    ValueKind,
    Interpreter,
    ModuleLoader,
    ExecutionResult,
    execute,
    run_source,
)

__version__ = "0.1.0"

__all__ = [
    # Tokens
    "Token",
    "TokenType",
    "SourceLocation",
    "SourceSpan",
    "KEYWORDS",
    "is_keyword",
    # Lexer
    "Lexer",
    "tokenize",
    # Parser
    "Parser",
    "parse",
    # AST
    "AstNode",
    "AstVisitor",
    "Program",
    "PrintVisitor",
    "format_ast",
    "print_ast",
    # Errors
    "ErrorSeverity",
    "Diagnostic",
    "DiagnosticCollector",
    "LoquoraError",
    "ParserError",
    "RuntimeFailure",
    "ModuleError",
    # Configuration
    "ConfigError",
    "LoquoraConfig",
    "load_config",
    # Runtime
    "Value",
    "ValueKind",
    "Interpreter",
    "ModuleLoader",
    "ExecutionResult",
    "execute",
    "run_source",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())
