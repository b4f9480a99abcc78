#!/usr/bin/env python3
"""
CLI for the Loquora interpreter.

Usage:
    python -m loquora run FILE.loq [-I DIR ...] [--config FILE]
    python -m loquora check FILE.loq [FILE.loq ...]
    python -m loquora tokens FILE.loq
    python -m loquora ast FILE.loq
    python -m loquora repl

Examples:
    # Run a program, searching lib/ for modules as well
    python -m loquora run examples/shapes.loq -I lib

    # Report parse errors in several files at once
    python -m loquora check src/*.loq

    # Debug module resolution
    python -m loquora -v run main.loq
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

REPL_PROMPT = "loq> "
REPL_CONTINUATION = "...> "
REPL_QUIT = (":quit", ":q")


def read_source(path: Path) -> Optional[str]:
    """Read a source file, reporting failures on stderr."""
    if not path.exists():
        print(f"Error: File not found: {path}", file=sys.stderr)
        return None
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: cannot read {path}: {e}", file=sys.stderr)
        return None


def cmd_run(args):
    """Run a Loquora program."""
    from . import Interpreter, LoquoraError, ConfigError, load_config

    source_path = Path(args.file)
    source = read_source(source_path)
    if source is None:
        return 1

    try:
        config = load_config(args.config)
    except (ConfigError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    interpreter = Interpreter(config=config, base_dir=source_path.parent)
    for include in args.include or []:
        interpreter.loader.add_search_path(Path(include).resolve())

    try:
        interpreter.run(source, str(source_path))
    except LoquoraError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


def cmd_check(args):
    """Parse files and report every diagnostic."""
    from . import parse, LoquoraError, DiagnosticCollector

    collector = DiagnosticCollector()
    checked = 0

    for name in args.files:
        source_path = Path(name)
        source = read_source(source_path)
        if source is None:
            return 1
        try:
            program = parse(source, str(source_path))
        except LoquoraError as e:
            collector.add_error(e)
            if collector.should_stop:
                break
            continue
        checked += 1
        print(f"OK: {source_path.name} - {len(program.statements)} statement(s)")

    if collector.has_errors:
        print(collector.format_all(), file=sys.stderr)
        return 1

    print(f"{checked} file(s) checked, no errors")
    return 0


def cmd_tokens(args):
    """Print the token stream of a file."""
    from . import tokenize

    source_path = Path(args.file)
    source = read_source(source_path)
    if source is None:
        return 1

    for token in tokenize(source, str(source_path)):
        start = token.span.start
        print(f"{start.line}:{start.column}\t{token.type.name}\t{token.lexeme!r}")
    return 0


def cmd_ast(args):
    """Pretty-print the syntax tree of a file."""
    from . import parse, format_ast, LoquoraError

    source_path = Path(args.file)
    source = read_source(source_path)
    if source is None:
        return 1

    try:
        program = parse(source, str(source_path))
    except LoquoraError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(format_ast(program))
    return 0


def is_complete(buffer: str) -> bool:
    """
    True when buffered REPL input forms a whole statement: brackets are
    balanced and the last token is ';' or '}'.
    """
    from . import tokenize, TokenType

    depth = 0
    last = None
    for token in tokenize(buffer):
        if token.type in (TokenType.LBRACE, TokenType.LPAREN):
            depth += 1
        elif token.type in (TokenType.RBRACE, TokenType.RPAREN):
            depth -= 1
        if token.type != TokenType.EOF:
            last = token.type
    return depth <= 0 and last in (TokenType.SEMICOLON, TokenType.RBRACE)


def cmd_repl(args):
    """Read-eval-print loop over one persistent interpreter."""
    from . import Interpreter, LoquoraError, ConfigError, load_config
    from .runtime.values import display

    try:
        config = load_config(args.config)
    except (ConfigError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    interpreter = Interpreter(config=config)
    lines: List[str] = []

    while True:
        try:
            line = input(REPL_CONTINUATION if lines else REPL_PROMPT)
        except EOFError:
            print()
            return 0
        except KeyboardInterrupt:
            print()
            lines = []
            continue

        if not lines and line.strip() in REPL_QUIT:
            return 0
        if not lines and not line.strip():
            continue

        lines.append(line)
        buffer = "\n".join(lines)
        if not is_complete(buffer):
            continue
        lines = []

        try:
            value = interpreter.run(buffer, "<repl>")
        except LoquoraError as e:
            print(f"Error: {e}", file=sys.stderr)
            continue
        if not value.is_null:
            print(display(value, nested=True))


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        prog='python -m loquora',
        description='Loquora interpreter',
    )
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Log module resolution and tool calls')

    subparsers = parser.add_subparsers(dest='action', required=True)

    # run command
    run_parser = subparsers.add_parser('run', help='Run a Loquora program')
    run_parser.add_argument('file', help='Loquora source file')
    run_parser.add_argument('-I', '--include', action='append', metavar='DIR',
                            help='Extra module search directory (can be repeated)')
    run_parser.add_argument('--config', metavar='FILE',
                            help='Configuration file (default: ./loquora.yaml)')

    # check command
    check_parser = subparsers.add_parser('check', help='Check files for parse errors')
    check_parser.add_argument('files', nargs='+', metavar='FILE', help='Loquora source files')

    # tokens command
    tokens_parser = subparsers.add_parser('tokens', help='Print the token stream')
    tokens_parser.add_argument('file', help='Loquora source file')

    # ast command
    ast_parser = subparsers.add_parser('ast', help='Print the syntax tree')
    ast_parser.add_argument('file', help='Loquora source file')

    # repl command
    repl_parser = subparsers.add_parser('repl', help='Interactive interpreter')
    repl_parser.add_argument('--config', metavar='FILE',
                             help='Configuration file (default: ./loquora.yaml)')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    if args.action == 'run':
        return cmd_run(args)
    elif args.action == 'check':
        return cmd_check(args)
    elif args.action == 'tokens':
        return cmd_tokens(args)
    elif args.action == 'ast':
        return cmd_ast(args)
    elif args.action == 'repl':
        return cmd_repl(args)
    else:
        parser.print_help()
        return 1


if __name__ == '__main__':
    sys.exit(main())
