"""
Abstract Syntax Tree (AST) node definitions for Loquora.

The parser produces a Program, an ordered list of statements. Nodes are
plain dataclasses; every node carries the span it was parsed from.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Union, Any
from abc import ABC
from .tokens import SourceSpan, TokenType


# =============================================================================
# Base Classes
# =============================================================================

@dataclass
class AstNode(ABC):
    """Base class for all AST nodes."""
    span: SourceSpan  # Source location for error reporting

    def accept(self, visitor: "AstVisitor") -> Any:
        """Accept a visitor for traversal."""
        method_name = f"visit_{self.__class__.__name__}"
        method = getattr(visitor, method_name, visitor.generic_visit)
        return method(self)


class AstVisitor(ABC):
    """Base class for AST visitors."""

    def generic_visit(self, node: AstNode) -> Any:
        """Default visit method."""
        raise NotImplementedError(f"No visitor for {node.__class__.__name__}")


# =============================================================================
# Type Nodes
# =============================================================================

@dataclass
class TypeNode(AstNode):
    """Base class for type annotations."""
    pass


@dataclass
class SimpleType(TypeNode):
    """A named type like 'Int' or 'Point'."""
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass
class GenericType(TypeNode):
    """A parameterized type like 'List<Int>'."""
    name: str
    type_args: List[TypeNode]

    def __str__(self) -> str:
        return f"{self.name}<{', '.join(str(arg) for arg in self.type_args)}>"


# =============================================================================
# Expression Nodes
# =============================================================================

@dataclass
class Expression(AstNode):
    """Base class for all expressions."""
    pass


@dataclass
class Literal(Expression):
    """A literal value."""
    value: Union[int, float, str, bool, None]
    literal_type: TokenType  # INT_LITERAL, FLOAT_LITERAL, STRING_LITERAL, CHAR_LITERAL,
                             # BOOL_LITERAL, NULL_LITERAL


@dataclass
class Identifier(Expression):
    """A variable, tool, or type name."""
    name: str


@dataclass
class BinaryOp(Expression):
    """A binary operation."""
    left: Expression
    operator: TokenType
    right: Expression


@dataclass
class UnaryOp(Expression):
    """A unary operation (-x, +x, !x, ~x)."""
    operator: TokenType
    operand: Expression


@dataclass
class ConditionalExpr(Expression):
    """Ternary: cond ? true_expr : false_expr"""
    condition: Expression
    true_expr: Expression
    false_expr: Expression


@dataclass
class QuaternaryExpr(Expression):
    """
    Three-way conditional: cond ?? true_expr :: false_expr !! null_expr

    A null condition selects null_expr, so "null" and "false" are
    distinguished.
    """
    condition: Expression
    true_expr: Expression
    false_expr: Expression
    null_expr: Expression


@dataclass
class FunctionCall(Expression):
    """A call: callee(args)."""
    callee: Expression
    arguments: List[Expression]


@dataclass
class MemberAccess(Expression):
    """Property access: object.member"""
    object: Expression
    member: str


@dataclass
class FieldInit(AstNode):
    """One 'name: value' entry of an object initializer."""
    name: str
    value: Expression


@dataclass
class ObjectInit(Expression):
    """Object literal: Type { name: value, ... } or alias.Type { ... }"""
    type_expr: Expression
    fields: List[FieldInit]


# =============================================================================
# Statement Nodes
# =============================================================================

@dataclass
class Statement(AstNode):
    """Base class for all statements."""
    pass


@dataclass
class Block(AstNode):
    """A braced sequence of statements."""
    statements: List[Statement]


@dataclass
class AssignmentStatement(Statement):
    """Assignment to a variable or a dotted field path: a.b.c = value"""
    target: List[str]
    value: Expression


@dataclass
class ExpressionStatement(Statement):
    """An expression evaluated for its effect."""
    expression: Expression


@dataclass
class WithStatement(Statement):
    """with expr { ... } - evaluates expr, then runs the body in a new scope."""
    expression: Expression
    body: Block


@dataclass
class LoopStatement(Statement):
    """Unconditional loop: loop { ... }"""
    body: Block


@dataclass
class WhileStatement(Statement):
    """while cond { ... }"""
    condition: Expression
    body: Block


@dataclass
class ForStatement(Statement):
    """for x in iterable { ... }"""
    variable: str
    iterable: Expression
    body: Block


@dataclass
class IfArm(AstNode):
    """One condition/body arm of an if chain."""
    condition: Expression
    body: Block


@dataclass
class IfStatement(Statement):
    """if / elif* / else. The first arm whose condition is truthy runs."""
    arms: List[IfArm]
    else_body: Optional[Block] = None


@dataclass
class ReturnStatement(Statement):
    value: Optional[Expression] = None


@dataclass
class BreakStatement(Statement):
    pass


@dataclass
class ContinueStatement(Statement):
    pass


# =============================================================================
# Declarations
# =============================================================================

@dataclass
class Parameter(AstNode):
    """A tool or template parameter: name: Type"""
    name: str
    type_annotation: TypeNode


@dataclass
class ToolDecl(Statement):
    """tool name(params) -> ReturnType { body }"""
    name: str
    parameters: List[Parameter]
    return_type: Optional[TypeNode]
    body: Block


@dataclass
class FieldDecl(AstNode):
    """
    A record field: name: Type suffix

    The suffix is None, '?', '!' or '?!'. '?' lets the field be omitted and
    hold null; '!' is the explicit form of the default, required and
    non-null; '?!' lets the field be omitted, but never set to null.
    """
    name: str
    type_annotation: TypeNode
    suffix: Optional[str] = None

    @property
    def optional(self) -> bool:
        return self.suffix is not None and '?' in self.suffix

    @property
    def nullable(self) -> bool:
        """Only a bare '?' admits null; '?!' is optional but never null."""
        return self.suffix == '?'


@dataclass
class SchemaDecl(Statement):
    """schema Name { fields }"""
    name: str
    fields: List[FieldDecl]


@dataclass
class StructDecl(Statement):
    """struct Name { fields and tools }"""
    name: str
    fields: List[FieldDecl]
    tools: List[ToolDecl] = field(default_factory=list)


@dataclass
class ModelDecl(Statement):
    """model Name : Base { tools and field assignments }"""
    name: str
    base: Optional[str]
    members: List[Union[ToolDecl, AssignmentStatement]]


@dataclass
class TemplateDecl(Statement):
    """template Name(params) { "body" }"""
    name: str
    parameters: List[Parameter]
    body: str


@dataclass
class ExportDecl(Statement):
    """export wrapping a tool, struct, or template declaration."""
    declaration: Union[ToolDecl, StructDecl, TemplateDecl]


@dataclass
class LoadStatement(Statement):
    """
    load a/b/c as alias;

    ``run`` is set for load-and-run. ``keyword`` records which keyword was
    written (load, load-and-run, import).
    """
    module_path: List[str]
    run: bool = False
    alias: Optional[str] = None
    keyword: str = "load"

    @property
    def path_string(self) -> str:
        return "/".join(self.module_path)


@dataclass
class Program(AstNode):
    """A parsed source unit."""
    statements: List[Statement]
    filename: Optional[str] = None


# =============================================================================
# Visitor Helpers
# =============================================================================

class PrintVisitor(AstVisitor):
    """Debug visitor that renders the AST structure as indented lines."""

    def __init__(self, indent: int = 0):
        self.indent = indent
        self.lines: List[str] = []

    def _emit(self, text: str) -> None:
        self.lines.append("  " * self.indent + text)

    def _child(self, node: AstNode) -> None:
        child = PrintVisitor(self.indent + 2)
        child.generic_visit(node)
        self.lines.extend(child.lines)

    def generic_visit(self, node: AstNode) -> None:
        self._emit(f"{node.__class__.__name__}")
        for name, value in node.__dict__.items():
            if name == "span":
                continue
            if isinstance(value, AstNode):
                self._emit(f"  {name}:")
                self._child(value)
            elif isinstance(value, list):
                self._emit(f"  {name}: [")
                for item in value:
                    if isinstance(item, AstNode):
                        self._child(item)
                    else:
                        self._emit(f"    {item!r}")
                self._emit("  ]")
            elif isinstance(value, TokenType):
                self._emit(f"  {name}: {value.name}")
            else:
                self._emit(f"  {name}: {value!r}")


def format_ast(node: AstNode) -> str:
    """Render an AST node as an indented tree."""
    visitor = PrintVisitor()
    visitor.generic_visit(node)
    return "\n".join(visitor.lines)


def print_ast(node: AstNode) -> None:
    """Print an AST node for debugging."""
    print(format_ast(node))
