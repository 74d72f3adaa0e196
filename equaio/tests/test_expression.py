"""Tests for expression trees, addressing and the Context."""

import pytest
from equaio import (
    Context, Expression, ExpressionType, ExpressionError, InvalidAddressError,
    ArityError, arithmetic_context, parse_expression, parse_statement,
)

V = Expression.value


class TestConstruction:
    """Tests for building nodes."""

    def test_value_node(self):
        """Value nodes have no children."""
        x = V("x")
        assert x.exp_type is ExpressionType.VALUE
        assert x.children == ()
        assert not x.bracketed

    def test_binary_node(self):
        """Binary nodes keep children in order."""
        expr = Expression.binary("+", V("x"), V("3"))
        assert expr.is_binary()
        assert expr.children == (V("x"), V("3"))

    def test_arity_mismatch_raises(self):
        """A child count that does not match the tag is rejected."""
        with pytest.raises(ArityError):
            Expression(ExpressionType.BINARY_OPERATOR, "+", children=[V("x")])
        with pytest.raises(ArityError):
            Expression(ExpressionType.VALUE, "x", children=[V("y")])

    def test_arity_error_is_value_error(self):
        """ArityError can be caught as ValueError."""
        with pytest.raises(ValueError):
            Expression(ExpressionType.UNARY_OPERATOR, "-")

    def test_create_equality(self):
        """create_equality builds an '=' node."""
        eq = Expression.create_equality(V("x"), V("5"))
        assert eq.is_equation()
        assert eq.lhs == V("x")
        assert eq.rhs == V("5")

    def test_create_symbol(self):
        assert Expression.create_symbol("y") == V("y")

    def test_with_bracketed(self):
        """with_bracketed returns a copy, leaving the original alone."""
        x = V("x")
        bx = x.with_bracketed(True)
        assert bx.bracketed
        assert not x.bracketed
        assert x.with_bracketed(False) is x


class TestEquality:
    """Tests for structural equality."""

    def test_structural_equality(self):
        a = Expression.binary("+", V("x"), V("1"))
        b = Expression.binary("+", V("x"), V("1"))
        assert a == b
        assert hash(a) == hash(b)

    def test_bracket_flag_counts(self):
        """'(x)' and 'x' are different expressions."""
        assert V("x") != V("x", bracketed=True)

    def test_type_counts(self):
        """A value and an operator with the same symbol differ."""
        assert V("-") != Expression.unary("-", V("x"))

    def test_not_equal_to_other_types(self):
        assert V("x") != "x"


class TestAddressing:
    """Tests for at, has_address, get_all_address and replace_at."""

    def setup_method(self):
        self.ctx = arithmetic_context()
        self.expr = parse_statement("x + 3 = 5", "=", self.ctx)

    def test_at_root(self):
        assert self.expr.at(()) is self.expr

    def test_at_path(self):
        assert self.expr.at((0, 1)) == V("3")
        assert self.expr.at((1,)) == V("5")

    def test_at_out_of_range_raises(self):
        """Unresolvable addresses fail fast."""
        with pytest.raises(InvalidAddressError):
            self.expr.at((2,))
        with pytest.raises(InvalidAddressError):
            self.expr.at((1, 0))

    def test_invalid_address_is_index_error(self):
        with pytest.raises(IndexError):
            self.expr.at((0, 5))

    def test_has_address(self):
        assert self.expr.has_address((0, 0))
        assert not self.expr.has_address((0, 2))
        assert not self.expr.has_address((1, 0))
        assert not self.expr.has_address((-1,))

    def test_all_addresses_preorder(self):
        """Root first, then children left to right."""
        assert self.expr.get_all_address() == [(), (0,), (0, 0), (0, 1), (1,)]

    def test_all_addresses_resolve(self):
        for address in self.expr.get_all_address():
            assert self.expr.has_address(address)

    def test_parent_and_child_address(self):
        assert Expression.parent_address_of((0, 1)) == (0,)
        assert Expression.child_address_of((0,), 1) == (0, 1)
        with pytest.raises(InvalidAddressError):
            Expression.parent_address_of(())

    def test_replace_at(self):
        """replace_at returns a new tree and leaves the original untouched."""
        new = self.expr.replace_at((0, 1), V("4"))
        assert str(new) == "x + 4 = 5"
        assert str(self.expr) == "x + 3 = 5"

    def test_replace_at_shares_untouched_subtrees(self):
        new = self.expr.replace_at((0, 1), V("4"))
        assert new.children[1] is self.expr.children[1]

    def test_replace_at_root(self):
        assert self.expr.replace_at((), V("y")) == V("y")

    def test_replace_at_invalid_raises(self):
        with pytest.raises(InvalidAddressError):
            self.expr.replace_at((3,), V("y"))


class TestExtractVariables:
    """Tests for extract_variables."""

    def test_first_occurrence_order(self):
        ctx = Context(variables=["a", "b", "c"], binary_operators=["+", "*"])
        expr = parse_expression("b + a * b + c", ctx)
        assert expr.extract_variables(ctx) == ["b", "a", "c"]

    def test_only_declared_symbols(self):
        ctx = Context(variables=["a"], binary_operators=["+"])
        expr = parse_expression("a + x", ctx)
        assert expr.extract_variables(ctx) == ["a"]

    def test_no_variables(self):
        ctx = Context(binary_operators=["+"])
        assert parse_expression("x + y", ctx).extract_variables(ctx) == []


class TestToString:
    """Tests for infix text output."""

    def setup_method(self):
        self.ctx = Context(binary_operators=["+", "-", "*", ","],
                           unary_operators=["-", "sin", "f"],
                           handle_numerics=True)

    @pytest.mark.parametrize("text", [
        "x + 3 = 5",
        "2 * (a + b)",
        "(a + b) + c",
        "-x + 1",
        "sin(x)",
        "f(x, y)",
        "-(a + b)",
    ])
    def test_round_trip(self, text):
        """Parenthesized text prints back as written."""
        expr = parse_statement(text, "=", self.ctx) if "=" in text \
            else parse_expression(text, self.ctx)
        assert expr.to_string() == text

    def test_function_without_bracketed_argument(self):
        """Function symbols wrap a bare argument in parentheses."""
        expr = Expression.unary("sin", V("x"))
        assert str(expr) == "sin(x)"

    def test_repr(self):
        assert repr(V("x")) == "Expression('x')"


class TestContext:
    """Tests for Context."""

    def test_membership(self):
        ctx = Context(variables=["a"], binary_operators=["+"], unary_operators=["-"],
                      associative_operators=["+"], commutative_operators=["+"])
        assert ctx.is_variable("a")
        assert not ctx.is_variable("b")
        assert ctx.is_binary_operator("+")
        assert ctx.is_unary_operator("-")
        assert ctx.is_associative("+")
        assert ctx.is_commutative("+")
        assert not ctx.is_commutative("-")

    def test_with_variables(self):
        ctx = Context(variables=["a"])
        extended = ctx.with_variables("b", "a")
        assert extended.variables == ("a", "b")
        assert ctx.variables == ("a",)

    def test_equality(self):
        assert arithmetic_context() == arithmetic_context()
        assert arithmetic_context() != Context()

    def test_repr_shows_operator_laws(self):
        ctx = Context(binary_operators=["+", "-"], associative_operators=["+"],
                      commutative_operators=["+"])
        text = repr(ctx)
        assert "associative_operators=['+']" in text
        assert "commutative_operators=['+']" in text

    def test_repr_tells_law_sets_apart(self):
        plain = Context(binary_operators=["+"])
        assert plain != Context(binary_operators=["+"], commutative_operators=["+"])
        assert repr(plain) != repr(Context(binary_operators=["+"], commutative_operators=["+"]))

    def test_arithmetic_laws(self):
        ctx = arithmetic_context()
        assert ctx.is_associative("+") and ctx.is_associative("*")
        assert not ctx.is_associative("-")
        assert not ctx.is_commutative("/")


class TestExpressionError:
    """Tests for the error hierarchy."""

    def test_hierarchy(self):
        assert issubclass(InvalidAddressError, ExpressionError)
        assert issubclass(ArityError, ExpressionError)
