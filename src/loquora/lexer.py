"""
Lexer for Loquora.

Converts source text into a stream of tokens for the parser.
Supports:
- Whitespace and comments (// line, /* block */) skipped silently
- Integer and float literals (optional fraction, optional exponent)
- String literals ("...") and char literals ('c'), escapes left undecoded
- Heredoc literals (<<~DELIM ... DELIM)
- Keywords, including the hyphenated load-and-run
- Two-character operators matched ahead of single-character ones

The lexer never raises. An unterminated block comment or string runs to
the end of input, and characters that start no token are skipped.
"""

from typing import Iterator, List, Optional
from .tokens import (
    Token, TokenType, SourceLocation, SourceSpan, KEYWORDS,
    LOAD_AND_RUN_SUFFIX, TWO_CHAR_OPERATORS, SINGLE_CHAR_OPERATORS,
)


def _is_digit(ch: str) -> bool:
    return '0' <= ch <= '9'


class Lexer:
    """
    Cursor-based tokenizer.

    Usage:
        lexer = Lexer(source_code)
        tokens = lexer.tokenize()

    Or on demand:
        lexer = Lexer(source_code)
        token = lexer.next_token()

    ``mark()`` and ``reset()`` save and restore the cursor, so callers can
    peek ahead without consuming input. Once the input is exhausted every
    call to ``next_token()`` returns a zero-length EOF token.
    """

    def __init__(self, source: str, filename: Optional[str] = None):
        self.source = source
        self.filename = filename
        self.pos = 0            # Current position in source
        self.line = 1           # Current line (1-indexed)
        self.column = 1         # Current column (1-indexed)
        self._lines: Optional[List[str]] = None  # Cached line list

    @property
    def lines(self) -> List[str]:
        """Lazy-load line list for error reporting."""
        if self._lines is None:
            self._lines = self.source.splitlines()
        return self._lines

    def get_source_line(self, line_num: int) -> Optional[str]:
        """Get a specific line of source (1-indexed)."""
        if 1 <= line_num <= len(self.lines):
            return self.lines[line_num - 1]
        return None

    def mark(self) -> SourceLocation:
        """Snapshot the cursor."""
        return self._location()

    def reset(self, mark: SourceLocation) -> None:
        """Restore a cursor snapshot taken with mark()."""
        self.pos = mark.offset
        self.line = mark.line
        self.column = mark.column

    def _location(self) -> SourceLocation:
        """Get current source location."""
        return SourceLocation(self.line, self.column, self.pos, self.filename)

    def _span(self, start: SourceLocation) -> SourceSpan:
        """Create a span from start to current position."""
        return SourceSpan(start, self._location())

    def _peek(self, offset: int = 0) -> str:
        """Look at character at current position + offset without consuming."""
        idx = self.pos + offset
        if idx >= len(self.source):
            return '\0'
        return self.source[idx]

    def _advance(self) -> str:
        """Consume and return current character."""
        if self.pos >= len(self.source):
            return '\0'
        ch = self.source[self.pos]
        self.pos += 1
        if ch == '\n':
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return ch

    def _is_at_end(self) -> bool:
        """Check if we've reached end of source."""
        return self.pos >= len(self.source)

    def _skip_trivia(self) -> None:
        """Skip whitespace and comments."""
        while not self._is_at_end():
            ch = self._peek()
            if ch.isspace():
                self._advance()
            elif ch == '/' and self._peek(1) == '/':
                while self._peek() != '\n' and not self._is_at_end():
                    self._advance()
            elif ch == '/' and self._peek(1) == '*':
                self._advance()
                self._advance()
                # Unterminated comments run to EOF
                while not self._is_at_end():
                    if self._peek() == '*' and self._peek(1) == '/':
                        self._advance()
                        self._advance()
                        break
                    self._advance()
            else:
                return

    def _make_token(self, token_type: TokenType, start: SourceLocation,
                    lexeme: Optional[str] = None) -> Token:
        """Create a token."""
        if lexeme is None:
            lexeme = self.source[start.offset:self.pos]
        return Token(token_type, lexeme, self._span(start))

    def _scan_string(self) -> Token:
        """Scan a string literal; the lexeme keeps both quotes."""
        start = self._location()
        self._advance()  # opening quote
        while not self._is_at_end() and self._peek() != '"':
            if self._advance() == '\\':
                self._advance()
        self._advance()  # closing quote, no-op at EOF
        return self._make_token(TokenType.STRING_LITERAL, start)

    def _scan_char(self) -> Token:
        """Scan a char literal: one possibly escaped character."""
        start = self._location()
        self._advance()  # opening quote
        if self._advance() == '\\':
            self._advance()
        if self._peek() == "'":
            self._advance()
        return self._make_token(TokenType.CHAR_LITERAL, start)

    def _scan_heredoc(self) -> Token:
        """
        Scan a heredoc literal.

        ``<<~DELIM`` is followed by a line break, then body lines verbatim up to
        a line that is exactly DELIM (consumed) or DELIM; (the ';' is left for
        the next token). The token's span and lexeme cover the body lines only,
        including the final line's newline.
        """
        for _ in range(3):
            self._advance()  # <<~
        delim_start = self.pos
        while self._peek().isalnum() or self._peek() == '_':
            self._advance()
        delimiter = self.source[delim_start:self.pos]
        if self._peek() == '\r':
            self._advance()
        if self._peek() == '\n':
            self._advance()

        body_start = self._location()
        body_end = body_start
        while not self._is_at_end():
            line_end = self.source.find('\n', self.pos)
            if line_end == -1:
                line_end = len(self.source)
            line = self.source[self.pos:line_end].rstrip('\r')

            if line == delimiter:
                token = self._heredoc_token(body_start, body_end)
                while self.pos < line_end:
                    self._advance()
                self._advance()  # newline after the delimiter, no-op at EOF
                return token
            if line == delimiter + ';':
                token = self._heredoc_token(body_start, body_end)
                for _ in delimiter:
                    self._advance()
                return token

            while self.pos < line_end:
                self._advance()
            self._advance()
            body_end = self._location()

        return self._heredoc_token(body_start, body_end)

    def _heredoc_token(self, start: SourceLocation, end: SourceLocation) -> Token:
        return Token(TokenType.HEREDOC, self.source[start.offset:end.offset],
                     SourceSpan(start, end))

    def _scan_number(self) -> Token:
        """
        Scan a numeric literal.

        Digits with at most one '.', then an optional exponent. A literal with
        a '.' or an exponent is a FLOAT_LITERAL, so ``1e3`` is a float.
        """
        start = self._location()
        is_float = False
        saw_dot = False

        while True:
            ch = self._peek()
            if _is_digit(ch):
                self._advance()
            elif ch == '.' and not saw_dot:
                saw_dot = True
                is_float = True
                self._advance()
            else:
                break

        # An 'e' not followed by digits belongs to the next token
        if self._peek() in ('e', 'E'):
            sign = 1 if self._peek(1) in ('+', '-') else 0
            if _is_digit(self._peek(1 + sign)):
                is_float = True
                for _ in range(1 + sign):
                    self._advance()
                while _is_digit(self._peek()):
                    self._advance()

        token_type = TokenType.FLOAT_LITERAL if is_float else TokenType.INT_LITERAL
        return self._make_token(token_type, start)

    def _scan_identifier_or_keyword(self) -> Token:
        """Scan an identifier or keyword."""
        start = self._location()

        while self._peek().isascii() and (self._peek().isalnum() or self._peek() == '_'):
            self._advance()

        lexeme = self.source[start.offset:self.pos]

        if lexeme == "load" and self.source.startswith(LOAD_AND_RUN_SUFFIX, self.pos):
            after = self._peek(len(LOAD_AND_RUN_SUFFIX))
            if not (after.isalnum() or after == '_'):
                for _ in LOAD_AND_RUN_SUFFIX:
                    self._advance()
                return self._make_token(TokenType.LOAD_AND_RUN, start)

        if lexeme in KEYWORDS:
            return self._make_token(KEYWORDS[lexeme], start)

        return self._make_token(TokenType.IDENTIFIER, start)

    def next_token(self) -> Token:
        """Scan and return the next token."""
        while True:
            self._skip_trivia()

            if self._is_at_end():
                return self._make_token(TokenType.EOF, self._location(), "")

            start = self._location()
            ch = self._peek()

            if ch == '"':
                return self._scan_string()
            if ch == "'":
                return self._scan_char()
            if _is_digit(ch) or (ch == '.' and _is_digit(self._peek(1))):
                return self._scan_number()
            if ch.isascii() and (ch.isalpha() or ch == '_'):
                return self._scan_identifier_or_keyword()
            if ch == '<' and self._peek(1) == '<' and self._peek(2) == '~':
                return self._scan_heredoc()

            pair = ch + self._peek(1)
            if pair in TWO_CHAR_OPERATORS:
                self._advance()
                self._advance()
                return self._make_token(TWO_CHAR_OPERATORS[pair], start)

            self._advance()
            if ch in SINGLE_CHAR_OPERATORS:
                return self._make_token(SINGLE_CHAR_OPERATORS[ch], start)
            # Unknown character: skipped without a diagnostic

    def tokenize(self) -> List[Token]:
        """Tokenize the remaining source, returning a list ending in EOF."""
        tokens = []
        while True:
            token = self.next_token()
            tokens.append(token)
            if token.type == TokenType.EOF:
                break
        return tokens

    def __iter__(self) -> Iterator[Token]:
        """Iterate over tokens, ending with EOF."""
        while True:
            token = self.next_token()
            yield token
            if token.type == TokenType.EOF:
                break


def tokenize(source: str, filename: Optional[str] = None) -> List[Token]:
    """
    Convenience function to tokenize source code.

    Args:
        source: The source code to tokenize
        filename: Optional filename for error messages

    Returns:
        List of tokens, always ending with an EOF token
    """
    lexer = Lexer(source, filename)
    return lexer.tokenize()
