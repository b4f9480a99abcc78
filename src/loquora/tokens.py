"""
Token types for the Loquora lexer.

Tokens carry their raw lexeme and a span; literal values are decoded by
the parser, not the lexer.
"""

from enum import Enum, auto
from dataclasses import dataclass
from typing import Dict, Optional


class TokenType(Enum):
    """All token types recognized by the lexer."""

    # --- Literals ---
    INT_LITERAL = auto()        # 42
    FLOAT_LITERAL = auto()      # 3.14, .5, 2.5e-3, 1e3
    STRING_LITERAL = auto()     # "hello"
    CHAR_LITERAL = auto()       # 'c'
    HEREDOC = auto()            # <<~END ... END
    BOOL_LITERAL = auto()       # true, false
    NULL_LITERAL = auto()       # null

    # --- Identifiers ---
    IDENTIFIER = auto()

    # --- Keywords ---
    IMPORT = auto()
    LOAD = auto()
    LOAD_AND_RUN = auto()       # load-and-run
    EXPORT = auto()
    SCHEMA = auto()
    STRUCT = auto()
    TEMPLATE = auto()
    MODEL = auto()
    TOOL = auto()
    IF = auto()
    ELIF = auto()
    ELSE = auto()
    WHILE = auto()
    FOR = auto()
    IN = auto()
    LOOP = auto()
    WITH = auto()
    AS = auto()
    RETURN = auto()
    BREAK = auto()
    CONTINUE = auto()

    # --- Arithmetic operators ---
    PLUS = auto()               # +
    MINUS = auto()              # -
    STAR = auto()               # *
    SLASH = auto()              # /
    PERCENT = auto()            # %
    AT = auto()                 # @

    # --- Bitwise operators ---
    AMPERSAND = auto()          # &
    PIPE = auto()               # |
    CARET = auto()              # ^
    TILDE = auto()              # ~
    SHL = auto()                # <<
    SHR = auto()                # >>

    # --- Logical operators ---
    BANG = auto()               # !
    AND_AND = auto()            # &&
    OR_OR = auto()              # ||

    # --- Comparison operators ---
    EQ = auto()                 # ==
    NE = auto()                 # !=
    LT = auto()                 # <
    GT = auto()                 # >
    LE = auto()                 # <=
    GE = auto()                 # >=

    # --- Conditional operators ---
    QUESTION = auto()           # ?
    COLON = auto()              # :
    DOUBLE_QUESTION = auto()    # ??
    DOUBLE_COLON = auto()       # ::
    DOUBLE_BANG = auto()        # !!

    # --- Other operators ---
    ASSIGN = auto()             # =
    ARROW = auto()              # ->
    DOT = auto()                # .

    # --- Delimiters ---
    LPAREN = auto()             # (
    RPAREN = auto()             # )
    LBRACE = auto()             # {
    RBRACE = auto()             # }
    COMMA = auto()              # ,
    SEMICOLON = auto()          # ;

    # --- Special ---
    EOF = auto()


@dataclass(frozen=True)
class SourceLocation:
    """Represents a position in source code."""
    line: int           # 1-indexed line number
    column: int         # 1-indexed column number
    offset: int         # 0-indexed character offset from start
    filename: Optional[str] = None

    def __str__(self) -> str:
        if self.filename:
            return f"{self.filename}:{self.line}:{self.column}"
        return f"{self.line}:{self.column}"


@dataclass(frozen=True)
class SourceSpan:
    """A half-open [start, end) range in source code."""
    start: SourceLocation
    end: SourceLocation

    @property
    def length(self) -> int:
        return self.end.offset - self.start.offset

    def text(self, source: str) -> str:
        """Slice the spanned text out of the source it was produced from."""
        return source[self.start.offset:self.end.offset]

    def __str__(self) -> str:
        if self.start.filename:
            return f"{self.start.filename}:{self.start.line}:{self.start.column}-{self.end.line}:{self.end.column}"
        return f"{self.start.line}:{self.start.column}-{self.end.line}:{self.end.column}"


@dataclass(frozen=True)
class Token:
    """A single token from the lexer."""
    type: TokenType
    lexeme: str             # The original source text (heredoc: body lines only)
    span: SourceSpan

    def __str__(self) -> str:
        if self.type in (TokenType.INT_LITERAL, TokenType.FLOAT_LITERAL,
                         TokenType.STRING_LITERAL, TokenType.CHAR_LITERAL,
                         TokenType.HEREDOC, TokenType.IDENTIFIER):
            return f"{self.type.name}({self.lexeme!r})"
        return self.type.name


# Keyword mapping - maps string to token type.
# "load-and-run" is not a plain identifier and is matched by the lexer directly.
KEYWORDS: Dict[str, TokenType] = {
    "import": TokenType.IMPORT,
    "load": TokenType.LOAD,
    "export": TokenType.EXPORT,
    "schema": TokenType.SCHEMA,
    "struct": TokenType.STRUCT,
    "template": TokenType.TEMPLATE,
    "model": TokenType.MODEL,
    "tool": TokenType.TOOL,
    "if": TokenType.IF,
    "elif": TokenType.ELIF,
    "else": TokenType.ELSE,
    "while": TokenType.WHILE,
    "for": TokenType.FOR,
    "in": TokenType.IN,
    "loop": TokenType.LOOP,
    "with": TokenType.WITH,
    "as": TokenType.AS,
    "return": TokenType.RETURN,
    "break": TokenType.BREAK,
    "continue": TokenType.CONTINUE,

    "true": TokenType.BOOL_LITERAL,
    "false": TokenType.BOOL_LITERAL,
    "null": TokenType.NULL_LITERAL,
}

LOAD_AND_RUN_SUFFIX = "-and-run"


# Two-character operators, matched before single characters
TWO_CHAR_OPERATORS: Dict[str, TokenType] = {
    "&&": TokenType.AND_AND,
    "||": TokenType.OR_OR,
    "==": TokenType.EQ,
    "!=": TokenType.NE,
    "<=": TokenType.LE,
    ">=": TokenType.GE,
    "<<": TokenType.SHL,
    ">>": TokenType.SHR,
    "??": TokenType.DOUBLE_QUESTION,
    "::": TokenType.DOUBLE_COLON,
    "!!": TokenType.DOUBLE_BANG,
    "->": TokenType.ARROW,
}

SINGLE_CHAR_OPERATORS: Dict[str, TokenType] = {
    '+': TokenType.PLUS,
    '-': TokenType.MINUS,
    '*': TokenType.STAR,
    '/': TokenType.SLASH,
    '%': TokenType.PERCENT,
    '@': TokenType.AT,
    '&': TokenType.AMPERSAND,
    '|': TokenType.PIPE,
    '^': TokenType.CARET,
    '~': TokenType.TILDE,
    '!': TokenType.BANG,
    '<': TokenType.LT,
    '>': TokenType.GT,
    '=': TokenType.ASSIGN,
    '?': TokenType.QUESTION,
    ':': TokenType.COLON,
    '.': TokenType.DOT,
    ',': TokenType.COMMA,
    ';': TokenType.SEMICOLON,
    '(': TokenType.LPAREN,
    ')': TokenType.RPAREN,
    '{': TokenType.LBRACE,
    '}': TokenType.RBRACE,
}


def is_keyword(name: str) -> bool:
    """Check if a name is a reserved keyword."""
    return name in KEYWORDS
