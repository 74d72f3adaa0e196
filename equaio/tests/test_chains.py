"""Tests for operator chain analysis: chains, swaps and parenthesis stripping."""

import pytest
from equaio import Context, Expression, ExpressionError, parse_expression, parse_statement


def ctx():
    return Context(binary_operators=["+", "-", "*", ","], unary_operators=["-"],
                   handle_numerics=True)


class TestOperatorChains:
    """Tests for get_operator_chains_from."""

    def test_left_nested_chain(self):
        """a + b + c flattens to three operands."""
        expr = parse_expression("a + b + c", ctx())
        chain = expr.get_operator_chains_from(())
        assert [str(expr.at(a)) for a in chain] == ["a", "b", "c"]
        assert chain == [(0, 0), (0, 1), (1,)]

    @pytest.mark.parametrize("text", ["a + b + c + d", "(a + b) + (c + d)", "a + (b + (c + d))"])
    def test_any_grouping(self, text):
        """Parenthesization does not change the operand list."""
        expr = parse_expression(text, ctx())
        operands = [str(expr.at(a)) for a in expr.get_operator_chains_from(())]
        assert operands == ["a", "b", "c", "d"]

    def test_stops_at_other_operators(self):
        expr = parse_expression("a + b * c + d", ctx())
        operands = [str(expr.at(a)) for a in expr.get_operator_chains_from(())]
        assert operands == ["a", "b * c", "d"]

    def test_non_binary_node(self):
        """A value is its own single-element chain."""
        expr = parse_expression("a + b", ctx())
        assert expr.get_operator_chains_from((0,)) == [(0,)]

    def test_chain_below_root(self):
        expr = parse_statement("a * b * c = d", "=", ctx())
        assert expr.get_operator_chains_from((0,)) == [(0, 0, 0), (0, 0, 1), (0, 1)]


class TestChainMembership:
    """Tests for chain_root_of and is_in_same_operator_chain."""

    def setup_method(self):
        self.expr = parse_statement("a + b + c = d * e", "=", ctx())

    def test_same_chain(self):
        """b at (0, 0, 1) and c at (0, 1) share the chain rooted at (0,)."""
        assert self.expr.chain_root_of((0, 0, 1)) == (0,)
        assert self.expr.chain_root_of((0, 1)) == (0,)
        assert self.expr.is_in_same_operator_chain((0, 0, 1), (0, 1))

    def test_symmetric(self):
        pairs = [((0, 0, 0), (0, 1)), ((0, 1), (1, 0)), ((1, 0), (1, 1)), ((0,), (1,))]
        for a1, a2 in pairs:
            assert self.expr.is_in_same_operator_chain(a1, a2) == \
                self.expr.is_in_same_operator_chain(a2, a1)

    def test_different_chains(self):
        assert not self.expr.is_in_same_operator_chain((0, 1), (1, 0))

    def test_unresolvable_address(self):
        assert not self.expr.is_in_same_operator_chain((0, 1), (4,))
        assert self.expr.chain_root_of((0, 5)) is None

    def test_root_has_no_chain(self):
        assert self.expr.chain_root_of(()) is None

    def test_inner_chain_node_is_not_an_operand(self):
        """(0, 0) is the inner a + b, part of the chain structure itself."""
        assert self.expr.chain_root_of((0, 0)) is None


class TestSwap:
    """Tests for swap_two_element."""

    def test_swap_in_chain(self):
        """a + b + c with b and c exchanged reads a + c + b."""
        expr = parse_expression("a + b + c", ctx())
        assert str(expr.swap_two_element((0, 1), (1,))) == "a + c + b"

    def test_swap_across_grouping(self):
        expr = parse_expression("(a + b) + (c + d)", ctx())
        swapped = expr.swap_two_element((0, 0), (1, 1))
        assert str(swapped) == "(d + b) + (c + a)"

    def test_swap_subtrees(self):
        expr = parse_expression("a * b + c", ctx())
        assert str(expr.swap_two_element((0,), (1,))) == "c + a * b"

    def test_swap_is_involutive(self):
        expr = parse_expression("a + b * c + d", ctx())
        once = expr.swap_two_element((0, 0), (1,))
        assert once.swap_two_element((0, 0), (1,)) == expr

    def test_swap_outside_chain_raises(self):
        expr = parse_expression("a + b * c", ctx())
        with pytest.raises(ExpressionError):
            expr.swap_two_element((0,), (1, 0))

    def test_original_untouched(self):
        expr = parse_expression("a + b", ctx())
        expr.swap_two_element((0,), (1,))
        assert str(expr) == "a + b"


class TestStripParentheses:
    """Tests for strip_parentheses_for_associative_op."""

    @pytest.mark.parametrize("text", ["(a + b) + c", "a + (b + c)", "a + b + c"])
    def test_display_equivalent(self, text):
        expr = parse_expression(text, ctx())
        assert str(expr.strip_parentheses_for_associative_op("+")) == "a + b + c"

    def test_other_brackets_kept(self):
        expr = parse_expression("a * (b + c)", ctx())
        assert expr.strip_parentheses_for_associative_op("+") == expr

    def test_only_named_operator(self):
        expr = parse_expression("(a * b) * c + (d + e)", ctx())
        stripped = expr.strip_parentheses_for_associative_op("+")
        assert str(stripped) == "(a * b) * c + d + e"

    def test_outer_bracket_of_chain_kept(self):
        """A bracketed chain under a different operator keeps its bracket."""
        expr = parse_expression("-((a + b) + c)", ctx())
        assert str(expr.strip_parentheses_for_associative_op("+")) == "-(a + b + c)"

    def test_chain_shape_unchanged(self):
        expr = parse_expression("a + (b + c)", ctx())
        stripped = expr.strip_parentheses_for_associative_op("+")
        assert stripped.get_operator_chains_from(()) == expr.get_operator_chains_from(())
        assert stripped.at((1,)).symbol == "+"


def test_value_chain_from_expression_builders():
    """Chains work on hand-built trees too."""
    v = Expression.value
    expr = Expression.binary("*", Expression.binary("*", v("x"), v("y")), v("z"))
    assert expr.get_operator_chains_from(()) == [(0, 0), (0, 1), (1,)]
