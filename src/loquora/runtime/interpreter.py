"""
Tree-walking interpreter for Loquora.

Statements return an optional Signal (return, break, continue) that
blocks pass upward until a loop or tool call consumes it. Failures are
LoquoraError exceptions; the interpreter never catches them, so any
failure aborts the program run.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import Dict, List, Optional, TextIO, Union

from .values import (
    Value, ValueKind, NULL, ToolRef,
    int_val, float_val, bool_val, string_val, char_val,
    tool_val, module_val, get_property, replace_path, values_equal,
)
from .environment import Environment
from .builtins import BuiltinRegistry
from .loader import ModuleLoader

from ..ast import (
    Program, Statement, Block,
    LoadStatement, ExportDecl, ToolDecl, SchemaDecl, StructDecl, ModelDecl, TemplateDecl,
    AssignmentStatement, ExpressionStatement, WithStatement, LoopStatement,
    WhileStatement, ForStatement, IfStatement, ReturnStatement, BreakStatement,
    ContinueStatement,
    Expression, Literal, Identifier, BinaryOp, UnaryOp, ConditionalExpr,
    QuaternaryExpr, FunctionCall, MemberAccess, ObjectInit,
)
from ..config import LoquoraConfig
from ..errors import (
    LoquoraError,
    error_type_mismatch,
    error_division_by_zero,
    error_not_callable,
    error_invalid_arguments,
    error_field_not_found,
    error_break_outside_loop,
    error_continue_outside_loop,
    error_return_outside_tool,
)
from ..parser import parse
from ..tokens import SourceSpan, TokenType
from ..types import TypeDef, ModelType, type_from_decl

logger = logging.getLogger(__name__)


class SignalKind(Enum):
    RETURN = auto()
    BREAK = auto()
    CONTINUE = auto()


@dataclass(frozen=True)
class Signal:
    """Non-local control flow produced by a statement."""
    kind: SignalKind
    value: Value = NULL


BREAK = Signal(SignalKind.BREAK)
CONTINUE = Signal(SignalKind.CONTINUE)


@dataclass
class ExecutionResult:
    """Result of running a program."""
    success: bool
    value: Value = NULL
    error: Optional[LoquoraError] = None

    @property
    def error_message(self) -> Optional[str]:
        if self.error is None:
            return None
        return str(self.error)


# =============================================================================
# Operators
# =============================================================================

OPERATOR_SYMBOLS = {
    TokenType.PLUS: "+", TokenType.MINUS: "-", TokenType.STAR: "*",
    TokenType.SLASH: "/", TokenType.PERCENT: "%", TokenType.AT: "@",
    TokenType.AMPERSAND: "&", TokenType.PIPE: "|", TokenType.CARET: "^",
    TokenType.SHL: "<<", TokenType.SHR: ">>", TokenType.TILDE: "~",
    TokenType.BANG: "!", TokenType.EQ: "==", TokenType.NE: "!=",
    TokenType.LT: "<", TokenType.GT: ">", TokenType.LE: "<=", TokenType.GE: ">=",
}

ARITHMETIC_OPERATORS = (TokenType.PLUS, TokenType.MINUS, TokenType.STAR,
                        TokenType.SLASH, TokenType.PERCENT)
BITWISE_OPERATORS = (TokenType.AMPERSAND, TokenType.PIPE, TokenType.CARET,
                     TokenType.SHL, TokenType.SHR)
COMPARISON_OPERATORS = (TokenType.LT, TokenType.GT, TokenType.LE, TokenType.GE)


def _operands(op: TokenType, left: Value, right: Value) -> str:
    return f"{left.type_name} {OPERATOR_SYMBOLS[op]} {right.type_name}"


def _trunc_div(a: int, b: int) -> int:
    """Integer division rounding toward zero."""
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def arithmetic(op: TokenType, left: Value, right: Value) -> Value:
    """
    + - * / % on numbers, and + on two strings.

    Int with Int stays Int (wrapping at 64 bits); any Float operand makes
    the result Float. A zero divisor fails for both kinds.
    """
    if op == TokenType.PLUS and left.kind == ValueKind.STRING and right.kind == ValueKind.STRING:
        return string_val(left.data + right.data)
    if not (left.is_numeric and right.is_numeric):
        raise error_type_mismatch("numeric operands", _operands(op, left, right))

    if left.kind == ValueKind.INT and right.kind == ValueKind.INT:
        a, b = left.data, right.data
        if op == TokenType.PLUS:
            return int_val(a + b)
        if op == TokenType.MINUS:
            return int_val(a - b)
        if op == TokenType.STAR:
            return int_val(a * b)
        if b == 0:
            raise error_division_by_zero()
        if op == TokenType.SLASH:
            return int_val(_trunc_div(a, b))
        return int_val(a - b * _trunc_div(a, b))

    x, y = float(left.data), float(right.data)
    if op == TokenType.PLUS:
        return float_val(x + y)
    if op == TokenType.MINUS:
        return float_val(x - y)
    if op == TokenType.STAR:
        return float_val(x * y)
    if y == 0.0:
        raise error_division_by_zero()
    if op == TokenType.SLASH:
        return float_val(x / y)
    return float_val(math.fmod(x, y))


def bitwise(op: TokenType, left: Value, right: Value) -> Value:
    """& | ^ << >> on two Ints."""
    if left.kind != ValueKind.INT or right.kind != ValueKind.INT:
        raise error_type_mismatch("Int operands", _operands(op, left, right))
    a, b = left.data, right.data
    if op == TokenType.AMPERSAND:
        return int_val(a & b)
    if op == TokenType.PIPE:
        return int_val(a | b)
    if op == TokenType.CARET:
        return int_val(a ^ b)
    if not 0 <= b < 64:
        raise error_invalid_arguments(f"shift amount {b} out of range 0..63")
    if op == TokenType.SHL:
        return int_val(a << b)
    return int_val(a >> b)


def compare(op: TokenType, left: Value, right: Value) -> Value:
    """< > <= >= on numbers."""
    if not (left.is_numeric and right.is_numeric):
        raise error_type_mismatch("numeric operands", _operands(op, left, right))
    a, b = left.data, right.data
    if op == TokenType.LT:
        return bool_val(a < b)
    if op == TokenType.GT:
        return bool_val(a > b)
    if op == TokenType.LE:
        return bool_val(a <= b)
    return bool_val(a >= b)


def binary_operation(op: TokenType, left: Value, right: Value) -> Value:
    """Apply a strict (non-short-circuit) binary operator."""
    if op in ARITHMETIC_OPERATORS:
        return arithmetic(op, left, right)
    if op in BITWISE_OPERATORS:
        return bitwise(op, left, right)
    if op in COMPARISON_OPERATORS:
        return compare(op, left, right)
    if op == TokenType.EQ:
        return bool_val(values_equal(left, right))
    if op == TokenType.NE:
        return bool_val(not values_equal(left, right))
    if op == TokenType.AT:
        return left
    raise ValueError(f"unknown binary operator {op}")


def unary_operation(op: TokenType, operand: Value) -> Value:
    if op == TokenType.BANG:
        return bool_val(not operand.is_truthy())
    if op == TokenType.TILDE:
        if operand.kind != ValueKind.INT:
            raise error_type_mismatch("Int", operand.type_name)
        return int_val(~operand.data)
    if not operand.is_numeric:
        raise error_type_mismatch("numeric operand", operand.type_name)
    if op == TokenType.MINUS:
        if operand.kind == ValueKind.INT:
            return int_val(-operand.data)
        return float_val(-operand.data)
    return operand


# =============================================================================
# Interpreter
# =============================================================================

class Interpreter:
    """
    Tree-walking interpreter.

    One instance owns one Environment, builtin registry, and module
    loader; successive programs run against the same state, which is
    what the REPL relies on.

    Usage:
        interp = Interpreter()
        value = interp.run('x = 2 + 7 * 4; x;')
    """

    def __init__(self, loader: Optional[ModuleLoader] = None,
                 output: Optional[TextIO] = None,
                 config: Optional[LoquoraConfig] = None,
                 base_dir: Union[str, Path, None] = None):
        self.env = Environment()
        self.output = output
        self.builtins = BuiltinRegistry(output)
        self.loader = loader or ModuleLoader(config, base_dir)
        self._source_lines: Optional[List[str]] = None
        self._filename: Optional[str] = None
        self._last_value: Value = NULL

    # --- Entry points ---

    def run(self, source: str, filename: Optional[str] = None) -> Value:
        """Parse and execute source, returning the program's value."""
        program = parse(source, filename)
        return self.execute_program(program, source)

    def execute_program(self, program: Program, source: Optional[str] = None) -> Value:
        """
        Execute a program. Its value is that of the last top-level
        expression statement, or null.
        """
        self._source_lines = source.splitlines() if source is not None else None
        self._filename = program.filename

        result = NULL
        for stmt in program.statements:
            signal = self._execute_statement(stmt)
            if signal is not None:
                self._reject_signal(signal, stmt.span)
            if isinstance(stmt, ExpressionStatement):
                result = self._last_value
        return result

    def call_tool(self, tool: ToolRef, args: List[Value]) -> Value:
        """Invoke a user tool with evaluated arguments."""
        if len(args) != tool.arity:
            raise error_invalid_arguments(
                f"{tool.name} expects {tool.arity} argument(s), got {len(args)}"
            )
        logger.debug("calling tool %s", tool.name)
        with self.env.new_scope(f"tool {tool.name}"), self.env.tool_context():
            for param, arg in zip(tool.parameters, args):
                self.env.set(param.name, arg)
            signal = self._execute_block(tool.body)

        if signal is None:
            return NULL
        if signal.kind == SignalKind.RETURN:
            return signal.value
        self._reject_signal(signal, None)

    def _reject_signal(self, signal: Signal, span: Optional[SourceSpan]):
        if signal.kind == SignalKind.BREAK:
            raise error_break_outside_loop(span)
        if signal.kind == SignalKind.CONTINUE:
            raise error_continue_outside_loop(span)
        raise error_return_outside_tool(span)

    def _source_line(self, span: SourceSpan) -> Optional[str]:
        if self._source_lines is None or span.start.filename != self._filename:
            return None
        index = span.start.line - 1
        if 0 <= index < len(self._source_lines):
            return self._source_lines[index]
        return None

    # --- Statements ---

    def _execute_statement(self, stmt: Statement) -> Optional[Signal]:
        """Execute one statement, locating any unlocated failure at it."""
        try:
            return self._dispatch_statement(stmt)
        except LoquoraError as exc:
            exc.locate(stmt.span, self._source_line(stmt.span))
            raise

    def _dispatch_statement(self, stmt: Statement) -> Optional[Signal]:
        if isinstance(stmt, ExpressionStatement):
            self._last_value = self._evaluate(stmt.expression)
        elif isinstance(stmt, AssignmentStatement):
            self.env.set_path(stmt.target, self._evaluate(stmt.value))
        elif isinstance(stmt, IfStatement):
            return self._execute_if_statement(stmt)
        elif isinstance(stmt, WhileStatement):
            return self._execute_while(stmt)
        elif isinstance(stmt, LoopStatement):
            return self._execute_loop(stmt)
        elif isinstance(stmt, ForStatement):
            return self._execute_for(stmt)
        elif isinstance(stmt, WithStatement):
            self._evaluate(stmt.expression)
            with self.env.new_scope("with"):
                return self._execute_block(stmt.body)
        elif isinstance(stmt, ReturnStatement):
            if not self.env.in_tool:
                raise error_return_outside_tool(stmt.span)
            value = self._evaluate(stmt.value) if stmt.value is not None else NULL
            return Signal(SignalKind.RETURN, value)
        elif isinstance(stmt, BreakStatement):
            if self.env.in_loop == 0:
                raise error_break_outside_loop(stmt.span)
            return BREAK
        elif isinstance(stmt, ContinueStatement):
            if self.env.in_loop == 0:
                raise error_continue_outside_loop(stmt.span)
            return CONTINUE
        elif isinstance(stmt, ExportDecl):
            return self._dispatch_statement(stmt.declaration)
        elif isinstance(stmt, ToolDecl):
            self.env.define_tool(ToolRef(stmt.name, list(stmt.parameters), stmt.body))
        elif isinstance(stmt, (SchemaDecl, StructDecl, ModelDecl, TemplateDecl)):
            self.env.define_type(type_from_decl(stmt))
        elif isinstance(stmt, LoadStatement):
            self._execute_load(stmt)
        else:
            raise ValueError(f"unknown statement type: {stmt.__class__.__name__}")
        return None

    def _execute_block(self, block: Block) -> Optional[Signal]:
        """Run statements until one produces a signal."""
        for stmt in block.statements:
            signal = self._execute_statement(stmt)
            if signal is not None:
                return signal
        return None

    def _execute_if_statement(self, stmt: IfStatement) -> Optional[Signal]:
        for arm in stmt.arms:
            if self._evaluate(arm.condition).is_truthy():
                return self._execute_block(arm.body)
        if stmt.else_body is not None:
            return self._execute_block(stmt.else_body)
        return None

    def _execute_while(self, stmt: WhileStatement) -> Optional[Signal]:
        with self.env.loop_context():
            while self._evaluate(stmt.condition).is_truthy():
                signal = self._execute_block(stmt.body)
                if signal is BREAK:
                    break
                if signal is not None and signal.kind == SignalKind.RETURN:
                    return signal
        return None

    def _execute_loop(self, stmt: LoopStatement) -> Optional[Signal]:
        with self.env.loop_context():
            while True:
                signal = self._execute_block(stmt.body)
                if signal is BREAK:
                    break
                if signal is not None and signal.kind == SignalKind.RETURN:
                    return signal
        return None

    def _execute_for(self, stmt: ForStatement) -> Optional[Signal]:
        iterable = self._evaluate(stmt.iterable)
        if iterable.kind != ValueKind.LIST:
            raise error_type_mismatch("List", iterable.type_name)

        with self.env.new_scope("for"), self.env.loop_context():
            for item in list(iterable.data):
                self.env.set(stmt.variable, item)
                signal = self._execute_block(stmt.body)
                if signal is BREAK:
                    break
                if signal is not None and signal.kind == SignalKind.RETURN:
                    return signal
        return None

    def _execute_load(self, stmt: LoadStatement) -> None:
        exports = self.loader.load_module(stmt.module_path, run=stmt.run, output=self.output)
        if stmt.alias is not None:
            self.env.set(stmt.alias, module_val(exports))
        else:
            self.env.merge_exports(exports)

    # --- Expressions ---

    def _evaluate(self, expr: Expression) -> Value:
        """Evaluate an expression."""
        if isinstance(expr, Literal):
            return self._eval_literal(expr)
        if isinstance(expr, Identifier):
            return self.env.lookup(expr.name)
        if isinstance(expr, BinaryOp):
            return self._eval_binary_op(expr)
        if isinstance(expr, UnaryOp):
            return unary_operation(expr.operator, self._evaluate(expr.operand))
        if isinstance(expr, FunctionCall):
            return self._eval_function_call(expr)
        if isinstance(expr, MemberAccess):
            return get_property(self._evaluate(expr.object), expr.member)
        if isinstance(expr, ObjectInit):
            return self._eval_object_init(expr)
        if isinstance(expr, ConditionalExpr):
            if self._evaluate(expr.condition).is_truthy():
                return self._evaluate(expr.true_expr)
            return self._evaluate(expr.false_expr)
        if isinstance(expr, QuaternaryExpr):
            condition = self._evaluate(expr.condition)
            if condition.is_null:
                return self._evaluate(expr.null_expr)
            if condition.is_truthy():
                return self._evaluate(expr.true_expr)
            return self._evaluate(expr.false_expr)
        raise ValueError(f"unknown expression type: {expr.__class__.__name__}")

    def _eval_literal(self, lit: Literal) -> Value:
        if lit.literal_type == TokenType.INT_LITERAL:
            return int_val(lit.value)
        if lit.literal_type == TokenType.FLOAT_LITERAL:
            return float_val(lit.value)
        if lit.literal_type == TokenType.STRING_LITERAL:
            return string_val(lit.value)
        if lit.literal_type == TokenType.CHAR_LITERAL:
            return char_val(lit.value)
        if lit.literal_type == TokenType.BOOL_LITERAL:
            return bool_val(lit.value)
        return NULL

    def _eval_binary_op(self, op: BinaryOp) -> Value:
        # && || ?? evaluate their right operand only when needed
        if op.operator == TokenType.AND_AND:
            left = self._evaluate(op.left)
            return self._evaluate(op.right) if left.is_truthy() else left
        if op.operator == TokenType.OR_OR:
            left = self._evaluate(op.left)
            return left if left.is_truthy() else self._evaluate(op.right)
        if op.operator == TokenType.DOUBLE_QUESTION:
            left = self._evaluate(op.left)
            return self._evaluate(op.right) if left.is_null else left

        left = self._evaluate(op.left)
        right = self._evaluate(op.right)
        return binary_operation(op.operator, left, right)

    def _eval_function_call(self, call: FunctionCall) -> Value:
        callee = self._evaluate(call.callee)
        if callee.kind != ValueKind.TOOL:
            raise error_not_callable(callee.type_name)
        tool = callee.data

        if tool.is_builtin:
            args = [self._evaluate(arg) for arg in call.arguments]
            return self.builtins.call(tool.name, args)

        if len(call.arguments) != tool.arity:
            raise error_invalid_arguments(
                f"{tool.name} expects {tool.arity} argument(s), got {len(call.arguments)}"
            )
        args = [self._evaluate(arg) for arg in call.arguments]
        return self.call_tool(tool, args)

    def _eval_object_init(self, init: ObjectInit) -> Value:
        type_value = self._evaluate(init.type_expr)
        if type_value.kind != ValueKind.TYPE:
            raise error_type_mismatch("type", type_value.type_name)
        type_def = type_value.data

        supplied = {}
        for field_init in init.fields:
            supplied[field_init.name] = self._evaluate(field_init.value)

        members = self._instance_members(type_def) if type_def.instantiable else {}
        return self.env.instantiate(type_def, supplied, members)

    def _instance_members(self, type_def: TypeDef) -> Dict[str, Value]:
        """Values a type contributes to each instance: tool members and model defaults."""
        members: Dict[str, Value] = {}
        if isinstance(type_def, ModelType):
            chain = self._model_chain(type_def)
        else:
            chain = [type_def]

        with self.env.new_scope(f"init {type_def.name}"):
            for member_type in chain:
                for tool in member_type.tools:
                    members[tool.name] = tool_val(ToolRef(tool.name, list(tool.parameters), tool.body))
                if not isinstance(member_type, ModelType):
                    continue
                for assignment in member_type.defaults:
                    value = self._evaluate(assignment.value)
                    root = assignment.target[0]
                    if len(assignment.target) > 1:
                        if root not in members:
                            raise error_field_not_found(root, member_type.name)
                        value = replace_path(members[root], assignment.target[1:], value)
                    members[root] = value
                    self.env.set(root, value)
        return members

    def _model_chain(self, model: ModelType) -> List[ModelType]:
        """A model and its bases, root base first."""
        chain = [model]
        seen = {model.name}
        current = model
        while current.base is not None:
            base = self.env.get_type(current.base)
            if not isinstance(base, ModelType):
                raise error_type_mismatch("model", f"{base.kind.value} {base.name}")
            if base.name in seen:
                raise error_invalid_arguments(f"model {base.name} is its own base")
            seen.add(base.name)
            chain.append(base)
            current = base
        chain.reverse()
        return chain


def execute(program: Program, source: Optional[str] = None,
            interpreter: Optional[Interpreter] = None) -> ExecutionResult:
    """
    Execute a parsed program, capturing failures in the result.

    This is a convenience wrapper around Interpreter.execute_program().
    """
    interpreter = interpreter or Interpreter()
    try:
        value = interpreter.execute_program(program, source)
    except LoquoraError as exc:
        return ExecutionResult(success=False, error=exc)
    return ExecutionResult(success=True, value=value)


def run_source(source: str, filename: Optional[str] = None,
               output: Optional[TextIO] = None,
               config: Optional[LoquoraConfig] = None,
               base_dir: Union[str, Path, None] = None) -> ExecutionResult:
    """
    Parse and run source code in one call.

        from loquora import run_source

        result = run_source('tool double(n: Int) -> Int { return n * 2; } double(21);')
        if result.success:
            print(result.value)
        else:
            print(f"Error: {result.error_message}")

    Returns:
        ExecutionResult with the program's value or the error
    """
    try:
        program = parse(source, filename)
    except LoquoraError as exc:
        return ExecutionResult(success=False, error=exc)
    interpreter = Interpreter(output=output, config=config, base_dir=base_dir)
    return execute(program, source, interpreter)
