"""
Tests for the Loquora interpreter.
"""

import io
import textwrap

import pytest

from loquora import (
    parse, Interpreter, ExecutionResult, execute, run_source, ValueKind,
)
from loquora.errors import (
    LoquoraError, PanicError, TypeMismatchError, DivisionByZeroError,
    UndefinedVariableError,
)
from loquora.runtime import display
from loquora.runtime.values import INT_MIN


def run(source):
    """Run source in a fresh interpreter, returning (value, printed output)."""
    output = io.StringIO()
    interp = Interpreter(output=output)
    value = interp.run(textwrap.dedent(source))
    return value, output.getvalue()


def value_of(source):
    return run(source)[0]


def error_of(source):
    with pytest.raises(LoquoraError) as exc_info:
        run(source)
    return exc_info.value


class TestArithmetic:
    """Test arithmetic and numeric coercion."""

    def test_precedence(self):
        assert value_of("2 + 7 * 4;").data == 30

    def test_integer_division_truncates(self):
        assert value_of("7 / 2;").data == 3
        assert value_of("-7 / 2;").data == -3

    def test_remainder_takes_dividend_sign(self):
        assert value_of("-7 % 3;").data == -1
        assert value_of("7 % -3;").data == 1

    def test_float_remainder(self):
        assert value_of("7.5 % 2;").data == 1.5

    def test_mixed_promotes_to_float(self):
        value = value_of("1 + 2.5;")
        assert value.kind == ValueKind.FLOAT
        assert value.data == 3.5

    def test_integer_overflow_wraps(self):
        assert value_of("9223372036854775807 + 1;").data == INT_MIN

    def test_division_by_zero(self):
        with pytest.raises(DivisionByZeroError) as exc_info:
            run("1 / 0;")
        assert exc_info.value.code == "E410"

    def test_float_division_by_zero(self):
        assert error_of("1.0 / 0.0;").code == "E410"
        assert error_of("5 % 0;").code == "E410"

    def test_string_concatenation(self):
        assert value_of('"ab" + "cd";').data == "abcd"

    def test_string_plus_number_fails(self):
        with pytest.raises(TypeMismatchError) as exc_info:
            run('"a" + 1;')
        assert exc_info.value.code == "E404"

    def test_bitwise(self):
        assert value_of("6 & 3;").data == 2
        assert value_of("6 | 3;").data == 7
        assert value_of("6 ^ 3;").data == 5
        assert value_of("1 << 4;").data == 16
        assert value_of("-16 >> 2;").data == -4
        assert value_of("~0;").data == -1

    def test_shift_out_of_range(self):
        assert error_of("1 << 64;").code == "E409"

    def test_bitwise_requires_ints(self):
        assert error_of("1.5 & 1;").code == "E404"

    def test_unary(self):
        assert value_of("-(3);").data == -3
        assert value_of("!0;").data is True
        assert value_of("+2.5;").data == 2.5

    def test_at_yields_left_operand(self):
        assert value_of("3 @ 4;").data == 3


class TestComparisonAndLogic:
    """Test comparisons, equality, and short-circuit operators."""

    def test_numeric_comparison(self):
        assert value_of("1 < 2.5;").data is True
        assert value_of("3 >= 3;").data is True

    def test_comparison_requires_numbers(self):
        assert error_of('"a" < "b";').code == "E404"

    def test_structural_equality(self):
        assert value_of("list(1, 2) == list(1, 2);").data is True
        assert value_of("1 == 1.0;").data is True
        assert value_of('"1" != 1;').data is True

    def test_and_short_circuits(self):
        assert value_of('false && panic("unreachable");').data is False

    def test_or_returns_operand(self):
        assert value_of('0 || "y";').data == "y"

    def test_null_coalescing(self):
        assert value_of("null ?? 5;").data == 5
        assert value_of("3 ?? panic();").data == 3

    def test_ternary(self):
        assert value_of("true ? 1 : 2;").data == 1
        assert value_of('"" ? 1 : 2;').data == 2

    def test_quaternary(self):
        """A null condition selects the fourth branch."""
        assert value_of("null ?? 1 :: 2 !! 3;").data == 3
        assert value_of("false ?? 1 :: 2 !! 3;").data == 2
        assert value_of("true ?? 1 :: 2 !! 3;").data == 1


class TestControlFlow:
    """Test statements, loops, and scoping."""

    def test_program_value_is_last_expression(self):
        assert value_of("1; 2; x = 3;").data == 2
        assert value_of("").is_null

    def test_reassignment(self):
        assert value_of("x = 1; x = x + 1; x;").data == 2

    def test_if_elif_else(self):
        source = """
        x = 5;
        if x > 10 { r = 1; } elif x > 3 { r = 2; } else { r = 3; }
        r;
        """
        assert value_of(source).data == 2

    def test_while(self):
        assert value_of("i = 0; while i < 5 { i = i + 1; } i;").data == 5

    def test_loop_break(self):
        source = "i = 0; loop { i = i + 1; if i == 3 { break; } } i;"
        assert value_of(source).data == 3

    def test_continue(self):
        source = """
        s = 0;
        i = 0;
        while i < 5 {
            i = i + 1;
            if i % 2 == 0 { continue; }
            s = s + i;
        }
        s;
        """
        assert value_of(source).data == 9

    def test_break_leaves_only_inner_loop(self):
        source = """
        for i in list(1, 2, 3) {
            for j in list(1, 2, 3) {
                if j == 2 { break; }
                print(i, j);
            }
        }
        """
        _, output = run(source)
        assert output == "1 1\n2 1\n3 1\n"

    def test_continue_after_inner_loop(self):
        """An inner loop's break does not leak into the outer loop's continue."""
        source = """
        i = 0;
        while i < 3 {
            i = i + 1;
            loop { break; }
            if i == 2 { continue; }
            print(i);
        }
        """
        _, output = run(source)
        assert output == "1\n3\n"

    def test_continue_skips_only_inner_iteration(self):
        source = """
        for i in list(1, 2) {
            for j in list(1, 2, 3) {
                if j == 2 { continue; }
                print(i, j);
            }
            print("end", i);
        }
        """
        _, output = run(source)
        assert output == "1 1\n1 3\nend 1\n2 1\n2 3\nend 2\n"

    def test_for_over_list(self):
        _, output = run("for x in list(1, 2) { print(x); }")
        assert output == "1\n2\n"

    def test_for_binds_in_its_own_frame(self):
        """Assignments in a for body land in the loop's frame."""
        source = "n = 0; for i in list(1, 2, 3) { n = n + i; } n;"
        assert value_of(source).data == 0
        assert error_of("for i in list(1) { } i;").code == "E401"

    def test_for_requires_list(self):
        exc = error_of("for x in 5 { }")
        assert exc.code == "E404"
        assert "expected List" in str(exc)

    def test_with_scope(self):
        assert error_of("with 1 { y = 2; } y;").code == "E401"

    def test_break_outside_loop(self):
        assert error_of("break;").code == "E411"
        assert error_of("tool f() { break; } f();").code == "E411"

    def test_continue_outside_loop(self):
        assert error_of("continue;").code == "E412"

    def test_return_outside_tool(self):
        assert error_of("return 1;").code == "E413"
        assert error_of("while true { return 1; }").code == "E413"


class TestTools:
    """Test tool declaration and invocation."""

    def test_call(self):
        assert value_of("tool add(a: Int, b: Int) -> Int { return a + b; } add(2, 3);").data == 5

    def test_no_return_yields_null(self):
        assert value_of("tool f() { x = 1; } f();").is_null

    def test_empty_body(self):
        """A tool with an empty body is still a user tool."""
        assert value_of("tool noop() { } noop();").is_null

    def test_recursion(self):
        source = """
        tool fact(n: Int) -> Int {
            if n <= 1 { return 1; }
            return n * fact(n - 1);
        }
        fact(10);
        """
        assert value_of(source).data == 3628800

    def test_return_from_inside_loop(self):
        source = """
        tool first(xs: List) -> Int {
            for x in xs {
                if x > 1 { return x; }
            }
            return 0;
        }
        first(list(1, 5, 7));
        """
        output = io.StringIO()
        interp = Interpreter(output=output)
        assert interp.run(textwrap.dedent(source)).data == 5
        assert interp.env.depth == 1
        assert interp.env.in_loop == 0
        assert not interp.env.in_tool

    def test_arity_mismatch(self):
        exc = error_of("tool f(a: Int) { } f();")
        assert exc.code == "E409"
        assert "f expects 1 argument(s), got 0" in str(exc)

    def test_not_callable(self):
        assert error_of("x = 1; x();").code == "E408"

    def test_tools_are_values(self):
        source = """
        tool twice(f: Tool, v: Int) -> Int { return f(f(v)); }
        tool inc(n: Int) -> Int { return n + 1; }
        twice(inc, 1);
        """
        assert value_of(source).data == 3

    def test_locals_do_not_leak(self):
        assert error_of("tool f() { secret = 1; } f(); secret;").code == "E401"

    def test_builtin_call(self):
        assert value_of('int("4") + 1;').data == 5

    def test_print_output(self):
        _, output = run('print("x =", 1, list("a"));')
        assert output == 'x = 1 ["a"]\n'

    def test_panic(self):
        with pytest.raises(PanicError) as exc_info:
            run('panic("boom");')
        assert exc_info.value.code == "E420"
        assert "boom" in str(exc_info.value)


class TestRecords:
    """Test schemas, structs, models, and templates."""

    def test_struct_fields(self):
        source = "struct Point { x: Int, y: Int } p = Point { x: 1, y: 2 }; p.x + p.y;"
        assert value_of(source).data == 3

    def test_struct_display(self):
        _, output = run("struct Point { x: Int, y: Int } print(Point { x: 1, y: 2 });")
        assert output == "Point { x: 1, y: 2 }\n"

    def test_type_display(self):
        _, output = run("struct P { x: Int } print(P);")
        assert output == "type<P>\n"

    def test_required_field_missing(self):
        assert error_of("struct P { x: Int } P {};").code == "E406"

    def test_undeclared_field(self):
        assert error_of("struct P { x: Int } P { x: 1, z: 2 };").code == "E405"

    def test_nullable_field(self):
        assert value_of("schema S { v: Int? } s = S { v: null }; s.v ?? 7;").data == 7

    def test_omitted_optional_field(self):
        """Omitted optional fields are absent until assigned."""
        source = 'schema U { name: String, age: Int? } u = U { name: "a" };'
        assert error_of(source + " u.age;").code == "E405"
        assert value_of(source + " u.age = 3; u.age;").data == 3

    def test_path_assignment_undeclared(self):
        source = 'schema U { name: String } u = U { name: "a" }; u.email = 1;'
        assert error_of(source).code == "E405"

    def test_nested_path_assignment_copies(self):
        """Updating through a path does not affect aliases of the old value."""
        source = """
        struct In { v: Int }
        struct Out { inner: In }
        o = Out { inner: In { v: 1 } };
        alias = o;
        o.inner.v = 2;
        list(o.inner.v, alias.inner.v);
        """
        assert display(value_of(source)) == "[2, 1]"

    def test_open_record(self):
        assert value_of('r = object(pair("a", 1)); r.b = 2; r.a + r.b;').data == 3

    def test_struct_tools(self):
        source = """
        struct Counter {
            n: Int
            tool bump(c: Counter) -> Int { return c.n + 1; }
        }
        c = Counter { n: 1 };
        c.bump(c);
        """
        assert value_of(source).data == 2

    def test_model_composition(self):
        """Base members come first, own members override, supplied fields win."""
        source = """
        model Shape {
            sides = 0;
            tool describe(s: Shape) -> String { return "shape"; }
        }
        model Square : Shape {
            sides = 4;
            side = 1;
            area = sides * 10;
        }
        sq = Square { side: 3 };
        list(sq.sides, sq.side, sq.area, sq.describe(sq));
        """
        assert display(value_of(source)) == '[4, 3, 40, "shape"]'

    def test_model_defaults_do_not_leak(self):
        assert error_of("model M { d = 1; } M {}; d;").code == "E401"

    def test_model_unknown_base(self):
        assert error_of("model M : Missing { } M {};").code == "E403"

    def test_model_base_cycle(self):
        assert error_of("model A : B { } model B : A { } A {};").code == "E409"

    def test_model_base_must_be_model(self):
        assert error_of("struct S { x: Int } model M : S { } M {};").code == "E404"

    def test_template_not_instantiable(self):
        source = 'template Page(t: String) { "x" } Page {};'
        assert error_of(source).code == "E409"
        _, output = run('template Page(t: String) { "x" } print(Page);')
        assert output == "template<Page>\n"

    def test_init_requires_type(self):
        assert error_of("x = 1; x { a: 1 };").code == "E404"


class TestDiagnostics:
    """Test failure locations and the result wrappers."""

    def test_failure_located_at_statement(self):
        exc = error_of("x = 1;\ny;")
        assert exc.span.start.line == 2
        assert "2:1" in str(exc)

    def test_failure_located_inside_tool(self):
        source = "tool f() {\n    return 1 / 0;\n}\nf();"
        with pytest.raises(DivisionByZeroError) as exc_info:
            Interpreter().run(source)
        assert exc_info.value.span.start.line == 2
        assert "return 1 / 0;" in str(exc_info.value)

    def test_diagnostic_severity(self):
        exc = error_of("missing;")
        assert "error[E401]" in exc.diagnostic.format()
        assert exc.diagnostic.to_json()["severity"] == "error"

    def test_state_clean_after_failure(self):
        interp = Interpreter(output=io.StringIO())
        with pytest.raises(DivisionByZeroError):
            interp.run("tool f() { for x in list(1) { return 1 / 0; } } f();")
        assert interp.env.depth == 1
        assert interp.env.in_loop == 0
        assert not interp.env.in_tool

    def test_state_persists_between_runs(self):
        interp = Interpreter()
        interp.run("x = 1; tool inc(n: Int) -> Int { return n + 1; }")
        assert interp.run("inc(x);").data == 2

    def test_run_source_success(self):
        result = run_source("x = 2; x * 21;")
        assert isinstance(result, ExecutionResult)
        assert result.success
        assert result.value.data == 42
        assert result.error_message is None

    def test_run_source_parse_error(self):
        result = run_source("1 +;")
        assert not result.success
        assert result.error.code == "E103"

    def test_run_source_runtime_error(self):
        result = run_source("y;")
        assert not result.success
        assert isinstance(result.error, UndefinedVariableError)
        assert "E401" in result.error_message

    def test_execute(self):
        source = "40 + 2;"
        result = execute(parse(source), source)
        assert result.success
        assert result.value.data == 42
