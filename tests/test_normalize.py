"""Tests for the text rewriting stages."""

import pytest

from graphspace.normalize import (
    insert_implicit_multiplication,
    normalize,
    prepare_expression,
    resolve_names,
    rewrite_stages,
)


class TestNormalize:
    def test_glyphs_replaced(self):
        assert normalize("2 × x ÷ y − 1") == "2 * x / y - 1"

    def test_middle_dot(self):
        assert normalize("x·y") == "x*y"

    def test_superscripts(self):
        assert normalize("x² + y³") == "x^2 + y^3"

    def test_pi_parenthesized(self):
        assert normalize("2π") == "2(pi)"

    def test_sqrt_glyph(self):
        assert normalize("√(x)") == "sqrt(x)"

    def test_whitespace_collapsed_and_trimmed(self):
        assert normalize("  x  +\t y \n") == "x + y"

    def test_empty(self):
        assert normalize("") == ""
        assert normalize("   ") == ""

    @pytest.mark.parametrize(
        "text", ["x² + √(y)", "  2π x  ", "x·y − 3÷2", "sin(x)cos(y)", ""]
    )
    def test_idempotent(self, text):
        once = normalize(text)
        assert normalize(once) == once


class TestImplicitMultiplication:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("2x", "2*x"),
            ("3sin(x)", "3*sin(x)"),
            ("2(x+1)", "2*(x+1)"),
            ("x(y+1)", "x*(y+1)"),
            ("(x+1)(y-1)", "(x+1)*(y-1)"),
            ("(x+1)2", "(x+1)*2"),
            ("(x)y", "(x)*y"),
            ("xy", "x*y"),
            ("2xy", "2*x*y"),
            ("xy(x)", "x*y*(x)"),
            ("xsqrt(y)", "x*sqrt(y)"),
            ("2xsqrt(y)", "2*x*sqrt(y)"),
            ("ysin(x)", "y*sin(x)"),
            ("xysqrt(x)", "x*y*sqrt(x)"),
        ],
    )
    def test_inserts_products(self, text, expected):
        assert insert_implicit_multiplication(text) == expected

    @pytest.mark.parametrize("text", ["1e5", "2e-3", "1.5E+2", "2.5"])
    def test_scientific_notation_untouched(self, text):
        assert insert_implicit_multiplication(text) == text

    @pytest.mark.parametrize("text", ["max(x, y)", "exp(x)", "sin(x)", "min(y)"])
    def test_function_names_untouched(self, text):
        assert insert_implicit_multiplication(text) == text

    def test_sqrt_glyph_after_variable(self):
        assert prepare_expression("x√(y)") == "x*math.sqrt(y)"
        assert prepare_expression("2x√(y)") == "2*x*math.sqrt(y)"

    def test_standalone_e_after_digit(self):
        assert insert_implicit_multiplication("2e") == "2*e"

    def test_idempotent(self):
        once = insert_implicit_multiplication("2x(y+1)(x-1)")
        assert insert_implicit_multiplication(once) == once


class TestResolveNames:
    def test_function_qualified(self):
        assert resolve_names("sin(x)") == "math.sin(x)"

    def test_ln_is_natural_log(self):
        assert resolve_names("ln(x)") == "math.log(x)"
        assert resolve_names("log(x)") == "math.log(x)"

    def test_case_insensitive(self):
        assert resolve_names("SIN(x)+Cos(y)") == "math.sin(x)+math.cos(y)"

    def test_longest_name_wins(self):
        assert resolve_names("sinh(x)") == "math.sinh(x)"
        assert resolve_names("asin(x)") == "math.asin(x)"

    def test_constants(self):
        assert resolve_names("(pi)*e") == "(math.pi)*math.e"

    def test_e_inside_names_untouched(self):
        assert resolve_names("exp(x)") == "math.exp(x)"
        assert resolve_names("ceil(x)") == "math.ceil(x)"

    def test_idempotent(self):
        once = resolve_names("sin(x)*e+sqrt(pi)")
        assert resolve_names(once) == once


class TestPipeline:
    def test_stages_recorded(self):
        stages = rewrite_stages("2x² + sin(xy)")
        assert stages.raw == "2x² + sin(xy)"
        assert stages.normalized == "2x^2 + sin(xy)"
        assert stages.multiplied == "2*x^2 + sin(x*y)"
        assert stages.resolved == "2*x^2 + math.sin(x*y)"

    def test_pi_product(self):
        assert prepare_expression("2πx") == "2*(math.pi)*x"

    def test_ln_of_product(self):
        assert prepare_expression("ln(2x)") == "math.log(2*x)"
