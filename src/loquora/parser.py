"""
Recursive descent parser for Loquora.

Pulls tokens from a Lexer on demand and builds a Program. Lookahead is
done by snapshotting the lexer cursor, scanning ahead, and restoring it.
A syntax error is fatal for the parse unit; there is no recovery.
"""

from typing import List, Optional, Tuple, Union
from .tokens import Token, TokenType, SourceLocation, SourceSpan
from .lexer import Lexer
from .ast import (
    # Types
    TypeNode, SimpleType, GenericType,
    # Expressions
    Expression, Literal, Identifier, BinaryOp, UnaryOp, ConditionalExpr,
    QuaternaryExpr, FunctionCall, MemberAccess, FieldInit, ObjectInit,
    # Statements
    Statement, Block, AssignmentStatement, ExpressionStatement, WithStatement,
    LoopStatement, WhileStatement, ForStatement, IfArm, IfStatement,
    ReturnStatement, BreakStatement, ContinueStatement,
    # Declarations
    Parameter, ToolDecl, FieldDecl, SchemaDecl, StructDecl, ModelDecl,
    TemplateDecl, ExportDecl, LoadStatement, Program,
)
from .errors import (
    error_unexpected_token,
    error_unexpected_eof,
    error_invalid_expression,
    error_invalid_export,
    error_invalid_literal,
)


INT64_MAX = 2 ** 63 - 1

ESCAPES = {
    'n': '\n',
    't': '\t',
    'r': '\r',
    '0': '\0',
    '\\': '\\',
    '"': '"',
    "'": "'",
}


def decode_escapes(text: str) -> str:
    """Decode backslash escapes. Unknown escapes stand for the escaped character."""
    if '\\' not in text:
        return text
    chars = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == '\\' and i + 1 < len(text):
            nxt = text[i + 1]
            chars.append(ESCAPES.get(nxt, nxt))
            i += 2
        else:
            chars.append(ch)
            i += 1
    return ''.join(chars)


class Parser:
    """
    Recursive descent parser.

    Usage:
        parser = Parser(Lexer(source))
        program = parser.parse_program()

    Expression precedence, lowest to highest:
        Lowest:  cond ?? a :: b !! c, a ?? b
                 cond ? a : b
                 ||
                 &&
                 |
                 ^
                 &
                 == !=
                 < > <= >=
                 << >>
                 + -
                 * / % @
                 unary (~ - + !)
        Highest: postfix (.member, call)

    Every binary tier is left-associative.
    """

    # Binary operator tiers, lowest precedence first
    BINARY_LEVELS: Tuple[Tuple[TokenType, ...], ...] = (
        (TokenType.OR_OR,),
        (TokenType.AND_AND,),
        (TokenType.PIPE,),
        (TokenType.CARET,),
        (TokenType.AMPERSAND,),
        (TokenType.EQ, TokenType.NE),
        (TokenType.LT, TokenType.GT, TokenType.LE, TokenType.GE),
        (TokenType.SHL, TokenType.SHR),
        (TokenType.PLUS, TokenType.MINUS),
        (TokenType.STAR, TokenType.SLASH, TokenType.PERCENT, TokenType.AT),
    )

    UNARY_OPERATORS = (TokenType.TILDE, TokenType.MINUS, TokenType.PLUS, TokenType.BANG)

    LOAD_KEYWORDS = (TokenType.LOAD, TokenType.LOAD_AND_RUN, TokenType.IMPORT)

    def __init__(self, lexer: Lexer):
        self.lexer = lexer
        self.filename = lexer.filename
        self._token = lexer.next_token()
        self._previous: Optional[Token] = None

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def _is_at_end(self) -> bool:
        return self._token.type == TokenType.EOF

    def _check(self, token_type: TokenType) -> bool:
        """Check if current token is of given type."""
        return self._token.type == token_type

    def _check_any(self, *token_types: TokenType) -> bool:
        """Check if current token is any of given types."""
        return self._token.type in token_types

    def _advance(self) -> Token:
        """Consume and return current token."""
        token = self._token
        if token.type != TokenType.EOF:
            self._previous = token
            self._token = self.lexer.next_token()
        return token

    def _consume(self, token_type: TokenType, expected: str) -> Token:
        """Consume token of expected type, or raise error."""
        if self._check(token_type):
            return self._advance()
        self._error(expected)

    def _match(self, *token_types: TokenType) -> Optional[Token]:
        """Consume token if it matches any of the given types."""
        if self._token.type in token_types:
            return self._advance()
        return None

    def _source_line(self, token: Token) -> Optional[str]:
        return self.lexer.get_source_line(token.span.start.line)

    def _describe(self, token: Token) -> str:
        if token.type == TokenType.EOF:
            return "end of input"
        return f"'{token.lexeme}'"

    def _error(self, expected: str) -> None:
        """Raise a parser error at the current token."""
        token = self._token
        if token.type == TokenType.EOF:
            raise error_unexpected_eof(expected, token.span)
        raise error_unexpected_token(expected, self._describe(token), token.span,
                                     self._source_line(token))

    def _span_from(self, start: Union[Token, SourceSpan]) -> SourceSpan:
        """Create a span from a start token (or span) to the last consumed token."""
        start_span = start.span if isinstance(start, Token) else start
        end = self._previous.span.end if self._previous is not None else start_span.end
        return SourceSpan(start_span.start, end)

    def _expect_terminator(self) -> None:
        """
        A statement ends with ';'. The terminator may be left off before a
        closing brace or at the end of input.
        """
        if self._match(TokenType.SEMICOLON):
            return
        if self._check_any(TokenType.RBRACE, TokenType.EOF):
            return
        self._error("';'")

    # =========================================================================
    # Lookahead
    # =========================================================================

    def _is_object_init_start(self) -> bool:
        """
        With the current token on '{', decide whether an object initializer
        follows: '{' '}' or '{' IDENTIFIER ':'.
        """
        if not self._check(TokenType.LBRACE):
            return False
        mark = self.lexer.mark()
        try:
            first = self.lexer.next_token()
            if first.type == TokenType.RBRACE:
                return True
            return (first.type == TokenType.IDENTIFIER
                    and self.lexer.next_token().type == TokenType.COLON)
        finally:
            self.lexer.reset(mark)

    def _is_assignment_start(self) -> bool:
        """Check for IDENTIFIER ('.' IDENTIFIER)* '=' without consuming input."""
        if not self._check(TokenType.IDENTIFIER):
            return False
        mark = self.lexer.mark()
        try:
            token = self.lexer.next_token()
            while token.type == TokenType.DOT:
                if self.lexer.next_token().type != TokenType.IDENTIFIER:
                    return False
                token = self.lexer.next_token()
            return token.type == TokenType.ASSIGN
        finally:
            self.lexer.reset(mark)

    # =========================================================================
    # Type Parsing
    # =========================================================================

    def _parse_type(self) -> TypeNode:
        """Parse a type annotation: Name or Name<T, ...>."""
        start = self._consume(TokenType.IDENTIFIER, "type name")

        if self._match(TokenType.LT):
            type_args = [self._parse_type()]
            while self._match(TokenType.COMMA):
                type_args.append(self._parse_type())
            self._consume_closing_angle()
            return GenericType(self._span_from(start), start.lexeme, type_args)

        return SimpleType(start.span, start.lexeme)

    def _consume_closing_angle(self) -> None:
        """Consume '>', splitting a '>>' token closing two nested generics."""
        if self._match(TokenType.GT):
            return
        if self._check(TokenType.SHR):
            shr = self._token
            first = SourceSpan(shr.span.start, _shift(shr.span.start, 1))
            second = SourceSpan(first.end, shr.span.end)
            self._previous = Token(TokenType.GT, ">", first)
            self._token = Token(TokenType.GT, ">", second)
            return
        self._error("'>'")

    def _parse_parameters(self) -> List[Parameter]:
        """Parse '(' [name: Type (, name: Type)*] ')'."""
        self._consume(TokenType.LPAREN, "'('")
        params = []
        while not self._check(TokenType.RPAREN):
            name_tok = self._consume(TokenType.IDENTIFIER, "parameter name")
            self._consume(TokenType.COLON, "':' after parameter name")
            type_node = self._parse_type()
            params.append(Parameter(self._span_from(name_tok), name_tok.lexeme, type_node))
            if not self._match(TokenType.COMMA):
                break
        self._consume(TokenType.RPAREN, "')'")
        return params

    # =========================================================================
    # Statements
    # =========================================================================

    def parse_program(self) -> Program:
        """Parse statements until end of input."""
        start = self._token
        statements = []
        while not self._is_at_end():
            statements.append(self._parse_statement())
        return Program(SourceSpan(start.span.start, self._token.span.end),
                       statements, self.filename)

    def _parse_statement(self) -> Statement:
        """Parse one statement or declaration."""
        token_type = self._token.type

        if token_type in self.LOAD_KEYWORDS:
            return self._parse_load_statement()
        if token_type == TokenType.EXPORT:
            return self._parse_export()
        if token_type == TokenType.TOOL:
            decl = self._parse_tool_decl()
            self._match(TokenType.SEMICOLON)
            return decl
        if token_type == TokenType.STRUCT:
            return self._parse_struct_decl()
        if token_type == TokenType.SCHEMA:
            return self._parse_schema_decl()
        if token_type == TokenType.MODEL:
            return self._parse_model_decl()
        if token_type == TokenType.TEMPLATE:
            return self._parse_template_decl()
        if token_type == TokenType.WITH:
            return self._parse_with_statement()
        if token_type == TokenType.LOOP:
            return self._parse_loop_statement()
        if token_type == TokenType.WHILE:
            return self._parse_while_statement()
        if token_type == TokenType.FOR:
            return self._parse_for_statement()
        if token_type == TokenType.IF:
            return self._parse_if_statement()
        if token_type == TokenType.RETURN:
            return self._parse_return_statement()
        if token_type == TokenType.BREAK:
            start = self._advance()
            self._expect_terminator()
            return BreakStatement(start.span)
        if token_type == TokenType.CONTINUE:
            start = self._advance()
            self._expect_terminator()
            return ContinueStatement(start.span)
        if self._is_assignment_start():
            stmt = self._parse_assignment()
            self._expect_terminator()
            return stmt

        start = self._token
        expr = self._parse_expression()
        self._expect_terminator()
        return ExpressionStatement(self._span_from(start), expr)

    def _parse_block(self) -> Block:
        """Parse '{' statement* '}'."""
        start = self._consume(TokenType.LBRACE, "'{'")
        statements = []
        while not self._check(TokenType.RBRACE):
            if self._is_at_end():
                self._error("'}'")
            statements.append(self._parse_statement())
        self._advance()  # '}'
        return Block(self._span_from(start), statements)

    def _parse_load_statement(self) -> LoadStatement:
        """Parse: (load | load-and-run | import) a/b/c [as alias] ;"""
        keyword = self._advance()
        segments = [self._consume(TokenType.IDENTIFIER, "module name").lexeme]
        while self._match(TokenType.SLASH, TokenType.DOT):
            segments.append(self._consume(TokenType.IDENTIFIER, "module name").lexeme)

        alias = None
        if self._match(TokenType.AS):
            alias = self._consume(TokenType.IDENTIFIER, "alias name").lexeme
        self._expect_terminator()

        return LoadStatement(
            self._span_from(keyword), segments,
            run=keyword.type == TokenType.LOAD_AND_RUN,
            alias=alias,
            keyword=keyword.lexeme,
        )

    def _parse_export(self) -> ExportDecl:
        """Parse: export (tool | struct | template) ..."""
        start = self._advance()
        if self._check(TokenType.TOOL):
            decl = self._parse_tool_decl()
            self._match(TokenType.SEMICOLON)
        elif self._check(TokenType.STRUCT):
            decl = self._parse_struct_decl()
        elif self._check(TokenType.TEMPLATE):
            decl = self._parse_template_decl()
        else:
            raise error_invalid_export(self._describe(self._token), self._token.span,
                                       self._source_line(self._token))
        return ExportDecl(self._span_from(start), decl)

    def _parse_tool_decl(self) -> ToolDecl:
        """Parse: tool name(params) [-> Type] { body }"""
        start = self._consume(TokenType.TOOL, "'tool'")
        name = self._consume(TokenType.IDENTIFIER, "tool name").lexeme
        params = self._parse_parameters()
        return_type = None
        if self._match(TokenType.ARROW):
            return_type = self._parse_type()
        body = self._parse_block()
        return ToolDecl(self._span_from(start), name, params, return_type, body)

    def _parse_field_decl(self) -> FieldDecl:
        """Parse: name: Type [? | ?! | !]"""
        name_tok = self._consume(TokenType.IDENTIFIER, "field name")
        self._consume(TokenType.COLON, "':' after field name")
        type_node = self._parse_type()

        suffix = None
        question = self._match(TokenType.QUESTION)
        if question is not None:
            suffix = '?'
            bang = self._token
            if bang.type == TokenType.BANG and bang.span.start.offset == question.span.end.offset:
                self._advance()
                suffix = '?!'
        elif self._match(TokenType.BANG):
            suffix = '!'

        return FieldDecl(self._span_from(name_tok), name_tok.lexeme, type_node, suffix)

    def _parse_struct_decl(self) -> StructDecl:
        """Parse: struct Name { (field | tool)* } with optional separators."""
        start = self._consume(TokenType.STRUCT, "'struct'")
        name = self._consume(TokenType.IDENTIFIER, "struct name").lexeme
        self._consume(TokenType.LBRACE, "'{'")

        fields = []
        tools = []
        while not self._match(TokenType.RBRACE):
            if self._check(TokenType.TOOL):
                tools.append(self._parse_tool_decl())
            elif self._check(TokenType.IDENTIFIER):
                fields.append(self._parse_field_decl())
            else:
                self._error("field, tool, or '}'")
            self._match(TokenType.COMMA, TokenType.SEMICOLON)

        self._match(TokenType.SEMICOLON)
        return StructDecl(self._span_from(start), name, fields, tools)

    def _parse_schema_decl(self) -> SchemaDecl:
        """Parse: schema Name { field* }"""
        start = self._consume(TokenType.SCHEMA, "'schema'")
        name = self._consume(TokenType.IDENTIFIER, "schema name").lexeme
        self._consume(TokenType.LBRACE, "'{'")

        fields = []
        while not self._match(TokenType.RBRACE):
            if not self._check(TokenType.IDENTIFIER):
                self._error("field or '}'")
            fields.append(self._parse_field_decl())
            self._match(TokenType.COMMA, TokenType.SEMICOLON)

        self._match(TokenType.SEMICOLON)
        return SchemaDecl(self._span_from(start), name, fields)

    def _parse_model_decl(self) -> ModelDecl:
        """Parse: model Name [: Base] { (tool | path = expr;)* }"""
        start = self._consume(TokenType.MODEL, "'model'")
        name = self._consume(TokenType.IDENTIFIER, "model name").lexeme
        base = None
        if self._match(TokenType.COLON):
            base = self._consume(TokenType.IDENTIFIER, "base model name").lexeme
        self._consume(TokenType.LBRACE, "'{'")

        members = []
        while not self._match(TokenType.RBRACE):
            if self._check(TokenType.TOOL):
                members.append(self._parse_tool_decl())
                self._match(TokenType.SEMICOLON)
            elif self._is_assignment_start():
                members.append(self._parse_assignment())
                self._expect_terminator()
            else:
                self._error("tool or field assignment")

        self._match(TokenType.SEMICOLON)
        return ModelDecl(self._span_from(start), name, base, members)

    def _parse_template_decl(self) -> TemplateDecl:
        """Parse: template Name(params) { "body" | heredoc }"""
        start = self._consume(TokenType.TEMPLATE, "'template'")
        name = self._consume(TokenType.IDENTIFIER, "template name").lexeme
        params = self._parse_parameters()
        self._consume(TokenType.LBRACE, "'{'")

        if self._check(TokenType.STRING_LITERAL):
            body = _string_value(self._advance().lexeme)
        elif self._check(TokenType.HEREDOC):
            body = _heredoc_value(self._advance().lexeme)
        else:
            self._error("template body string")
        self._match(TokenType.SEMICOLON)
        self._consume(TokenType.RBRACE, "'}'")
        self._match(TokenType.SEMICOLON)

        return TemplateDecl(self._span_from(start), name, params, body)

    def _parse_assignment(self) -> AssignmentStatement:
        """Parse: a.b.c = expr (terminator handled by caller)."""
        start = self._token
        target = [self._consume(TokenType.IDENTIFIER, "variable name").lexeme]
        while self._match(TokenType.DOT):
            target.append(self._consume(TokenType.IDENTIFIER, "field name").lexeme)
        self._consume(TokenType.ASSIGN, "'='")
        value = self._parse_expression()
        return AssignmentStatement(self._span_from(start), target, value)

    def _parse_with_statement(self) -> WithStatement:
        start = self._advance()
        expr = self._parse_expression()
        body = self._parse_block()
        self._match(TokenType.SEMICOLON)
        return WithStatement(self._span_from(start), expr, body)

    def _parse_loop_statement(self) -> LoopStatement:
        start = self._advance()
        body = self._parse_block()
        self._match(TokenType.SEMICOLON)
        return LoopStatement(self._span_from(start), body)

    def _parse_while_statement(self) -> WhileStatement:
        start = self._advance()
        condition = self._parse_expression()
        body = self._parse_block()
        self._match(TokenType.SEMICOLON)
        return WhileStatement(self._span_from(start), condition, body)

    def _parse_for_statement(self) -> ForStatement:
        """Parse: for name in expr { body }"""
        start = self._advance()
        variable = self._consume(TokenType.IDENTIFIER, "loop variable").lexeme
        self._consume(TokenType.IN, "'in'")
        iterable = self._parse_expression()
        body = self._parse_block()
        self._match(TokenType.SEMICOLON)
        return ForStatement(self._span_from(start), variable, iterable, body)

    def _parse_if_statement(self) -> IfStatement:
        """Parse: if cond { } (elif cond { })* [else { }]"""
        start = self._advance()
        arms = []
        condition = self._parse_expression()
        body = self._parse_block()
        arms.append(IfArm(self._span_from(start), condition, body))

        while self._check(TokenType.ELIF):
            elif_start = self._advance()
            condition = self._parse_expression()
            body = self._parse_block()
            arms.append(IfArm(self._span_from(elif_start), condition, body))

        else_body = None
        if self._match(TokenType.ELSE):
            else_body = self._parse_block()

        self._match(TokenType.SEMICOLON)
        return IfStatement(self._span_from(start), arms, else_body)

    def _parse_return_statement(self) -> ReturnStatement:
        start = self._advance()
        value = None
        if not self._check_any(TokenType.SEMICOLON, TokenType.RBRACE, TokenType.EOF):
            value = self._parse_expression()
        self._expect_terminator()
        return ReturnStatement(self._span_from(start), value)

    # =========================================================================
    # Expressions
    # =========================================================================

    def _parse_expression(self) -> Expression:
        return self._parse_quaternary()

    def _parse_quaternary(self) -> Expression:
        """
        cond ?? a :: b !! c  (the null branch chains to the right)
        a ?? b               (null-coalescing when no '::' follows)
        """
        expr = self._parse_ternary()
        if not self._match(TokenType.DOUBLE_QUESTION):
            return expr

        true_expr = self._parse_expression()
        if not self._match(TokenType.DOUBLE_COLON):
            return BinaryOp(self._span_from(expr.span), expr,
                            TokenType.DOUBLE_QUESTION, true_expr)

        false_expr = self._parse_expression()
        self._consume(TokenType.DOUBLE_BANG, "'!!'")
        null_expr = self._parse_quaternary()
        return QuaternaryExpr(self._span_from(expr.span), expr, true_expr, false_expr, null_expr)

    def _parse_ternary(self) -> Expression:
        """cond ? a : b"""
        condition = self._parse_binary(0)
        if not self._match(TokenType.QUESTION):
            return condition
        true_expr = self._parse_expression()
        self._consume(TokenType.COLON, "':' in conditional expression")
        false_expr = self._parse_ternary()
        return ConditionalExpr(self._span_from(condition.span), condition, true_expr, false_expr)

    def _parse_binary(self, level: int) -> Expression:
        """Parse one binary tier, folding left while its operators follow."""
        if level == len(self.BINARY_LEVELS):
            return self._parse_unary()

        operators = self.BINARY_LEVELS[level]
        left = self._parse_binary(level + 1)
        while self._check_any(*operators):
            op = self._advance()
            right = self._parse_binary(level + 1)
            left = BinaryOp(self._span_from(left.span), left, op.type, right)
        return left

    def _parse_unary(self) -> Expression:
        op = self._match(*self.UNARY_OPERATORS)
        if op is not None:
            operand = self._parse_unary()
            return UnaryOp(self._span_from(op), op.type, operand)
        return self._parse_postfix()

    def _parse_postfix(self) -> Expression:
        """Member access, calls, and qualified object initializers."""
        expr = self._parse_primary()

        while True:
            if self._match(TokenType.DOT):
                member = self._consume(TokenType.IDENTIFIER, "member name").lexeme
                expr = MemberAccess(self._span_from(expr.span), expr, member)
                if self._is_object_init_start():
                    expr = self._parse_object_init(expr)
            elif self._match(TokenType.LPAREN):
                args = []
                while not self._check(TokenType.RPAREN):
                    args.append(self._parse_expression())
                    if not self._match(TokenType.COMMA):
                        break
                self._consume(TokenType.RPAREN, "')'")
                expr = FunctionCall(self._span_from(expr.span), expr, args)
            else:
                return expr

    def _parse_object_init(self, type_expr: Expression) -> ObjectInit:
        """Parse '{' (name: expr),* [,] '}' following a type expression."""
        self._consume(TokenType.LBRACE, "'{'")
        fields = []
        while not self._check(TokenType.RBRACE):
            name_tok = self._consume(TokenType.IDENTIFIER, "field name")
            self._consume(TokenType.COLON, "':'")
            value = self._parse_expression()
            fields.append(FieldInit(self._span_from(name_tok), name_tok.lexeme, value))
            if not self._match(TokenType.COMMA):
                break
        self._consume(TokenType.RBRACE, "'}'")
        return ObjectInit(self._span_from(type_expr.span), type_expr, fields)

    def _parse_primary(self) -> Expression:
        token = self._token

        if token.type == TokenType.IDENTIFIER:
            self._advance()
            expr = Identifier(token.span, token.lexeme)
            if self._is_object_init_start():
                return self._parse_object_init(expr)
            return expr

        if token.type == TokenType.INT_LITERAL:
            self._advance()
            value = int(token.lexeme)
            if value > INT64_MAX:
                raise error_invalid_literal(token.lexeme, "integer literal out of range",
                                            token.span, self._source_line(token))
            return Literal(token.span, value, TokenType.INT_LITERAL)

        if token.type == TokenType.FLOAT_LITERAL:
            self._advance()
            return Literal(token.span, float(token.lexeme), TokenType.FLOAT_LITERAL)

        if token.type == TokenType.STRING_LITERAL:
            self._advance()
            return Literal(token.span, _string_value(token.lexeme), TokenType.STRING_LITERAL)

        if token.type == TokenType.HEREDOC:
            self._advance()
            return Literal(token.span, _heredoc_value(token.lexeme), TokenType.STRING_LITERAL)

        if token.type == TokenType.CHAR_LITERAL:
            self._advance()
            body = token.lexeme[1:]
            if body.endswith("'") and len(body) > 1:
                body = body[:-1]
            value = decode_escapes(body)
            if len(value) != 1:
                raise error_invalid_literal(token.lexeme, "char literal must hold one character",
                                            token.span, self._source_line(token))
            return Literal(token.span, value, TokenType.CHAR_LITERAL)

        if token.type == TokenType.BOOL_LITERAL:
            self._advance()
            return Literal(token.span, token.lexeme == "true", TokenType.BOOL_LITERAL)

        if token.type == TokenType.NULL_LITERAL:
            self._advance()
            return Literal(token.span, None, TokenType.NULL_LITERAL)

        if token.type == TokenType.LPAREN:
            self._advance()
            expr = self._parse_expression()
            self._consume(TokenType.RPAREN, "')'")
            return expr

        if token.type == TokenType.EOF:
            raise error_unexpected_eof("expression", token.span)
        raise error_invalid_expression(self._describe(token), token.span,
                                       self._source_line(token))


def _shift(location: SourceLocation, columns: int) -> SourceLocation:
    """A location ``columns`` characters further along the same line."""
    return SourceLocation(location.line, location.column + columns,
                          location.offset + columns, location.filename)


def _string_value(lexeme: str) -> str:
    """Strip the quotes from a string lexeme and decode its escapes."""
    body = lexeme[1:]
    end = len(body)
    i = 0
    while i < len(body):
        if body[i] == '\\':
            i += 2
        elif body[i] == '"':
            end = i
            break
        else:
            i += 1
    return decode_escapes(body[:end])


def _heredoc_value(lexeme: str) -> str:
    """A heredoc's text without the final line break."""
    if lexeme.endswith('\r\n'):
        return lexeme[:-2]
    if lexeme.endswith('\n'):
        return lexeme[:-1]
    return lexeme


def parse(source: str, filename: Optional[str] = None) -> Program:
    """
    Parse source text into a Program.

    Args:
        source: The source code to parse
        filename: Optional filename for error messages

    Raises:
        ParserError: On the first syntax error
    """
    return Parser(Lexer(source, filename)).parse_program()
