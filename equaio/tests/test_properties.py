"""Cross-module properties of rewriting and derivations."""

import pytest
from equaio import (
    Context, Operator, Task, apply_rule_equal, apply_variable_map, arithmetic_context,
    can_pattern_match, create_calculation, load_algebra_rules, parse_expression,
    parse_statement, try_match_pattern,
)


def expr(text):
    return parse_expression(text, arithmetic_context())


class TestScenarios:
    """End-to-end derivation examples."""

    def test_subtract_both_sides(self):
        task = Task(arithmetic_context())
        task.set_current_eq("x + 3 = 5")
        assert task.apply_arithmetic_to_both_side(Operator.SUBTRACT, "3")
        assert str(task.current) == "(x + 3) - 3 = 5 - 3"
        assert task.history[-1].label == "subtract both side by 3"

    def test_swap_in_chain(self):
        e = expr("a + b + c")
        assert e.is_in_same_operator_chain((0, 1), (1,))
        assert str(e.swap_two_element((0, 1), (1,))) == "a + c + b"

    def test_single_candidate(self):
        ctx = Context(variables=["a"], binary_operators=["+"], handle_numerics=True)
        rule = parse_statement("a + 0 = a", "=", ctx)
        candidates = apply_rule_equal(parse_expression("x + 0", ctx), rule, ctx)
        assert [str(c) for c in candidates] == ["x"]

    def test_nothing_set(self):
        task = Task(arithmetic_context())
        assert task.apply_rule("anything", "") is False
        assert task.error_messages == ["current statement is not set"]
        assert task.rules == {}
        assert task.history == []

    def test_calculation(self):
        assert str(create_calculation("5", "3", Operator.SUBTRACT)) == "5 - 3 = 2"
        assert create_calculation("x", "3", Operator.SUBTRACT) is None


class TestMatchSubstitute:
    """Matching then instantiating a pattern rebuilds the matched tree."""

    @pytest.mark.parametrize("pattern, text", [
        ("X + Y", "a + (b * c)"),
        ("X * (Y + Z)", "2 * (x + 1)"),
        ("X - X", "(a + 1) - (a + 1)"),
        ("-X", "-(y / 2)"),
    ])
    def test_inverse(self, pattern, text):
        ctx = arithmetic_context()
        p, e = expr(pattern), expr(text)
        assert can_pattern_match(e, p, ctx)
        bindings = try_match_pattern(e, p, ctx)
        assert bindings
        assert apply_variable_map(p, bindings, ctx) == e

    def test_repeated_variable_mismatch(self):
        ctx = arithmetic_context()
        assert not try_match_pattern(expr("a - b"), expr("X - X"), ctx)


class TestChains:
    """Operator chain properties."""

    @pytest.mark.parametrize("text, addr1, addr2", [
        ("a + b + c", (0, 0), (1,)),
        ("a * b * c * d", (0, 0, 1), (0, 1)),
        ("(a + b) + c", (0, 1), (1,)),
    ])
    def test_swap_is_involution(self, text, addr1, addr2):
        e = expr(text)
        assert e.swap_two_element(addr1, addr2).swap_two_element(addr1, addr2) == e

    @pytest.mark.parametrize("text, addr1, addr2", [
        ("a + b + c", (0, 0), (1,)),
        ("a + b * c", (0,), (1, 0)),
        ("a + b = c", (0, 0), (1,)),
    ])
    def test_same_chain_is_symmetric(self, text, addr1, addr2):
        e = expr(text) if "=" not in text else parse_statement(text, "=", arithmetic_context())
        assert e.is_in_same_operator_chain(addr1, addr2) == e.is_in_same_operator_chain(addr2, addr1)


class TestTaskInvariants:
    """Failures leave state untouched; successes add one step."""

    def setup_method(self):
        self.task = Task(arithmetic_context())
        self.task.add_rules(load_algebra_rules())
        self.task.set_current_eq("a - b = c")

    def snapshot(self):
        return (self.task.current, self.task.target, dict(self.task.rules), list(self.task.history))

    @pytest.mark.parametrize("operation", [
        lambda t: t.apply_rule("algebra/add_zero"),
        lambda t: t.apply_rule("missing"),
        lambda t: t.apply_rule_at("algebra/add_zero", (0,)),
        lambda t: t.apply_rule_at("algebra/add_zero", (5, 5)),
        lambda t: t.try_swap_two_element((0, 0), (0, 1)),
        lambda t: t.try_swap_two_element((0, 0), (1,)),
        lambda t: t.apply_arithmetic_calculation("x", "1", Operator.ADD),
        lambda t: t.apply_arithmetic_calculation("x", "1", "+"),
        lambda t: t.apply_arithmetic_calculation("5", "3", "modulo"),
        lambda t: t.apply_arithmetic_to_both_side("^", "2"),
        lambda t: t.apply_function_to_both_side("X +", "X"),
        lambda t: t.add_rule_eq("intro", "X = X + Y - Y"),
        lambda t: t.add_rule_eq("intro", "X = Y => Z = Y"),
        lambda t: t.apply_fraction_simplification_at(0, 0, (0,)),
        lambda t: t.set_current_eq("a +"),
        lambda t: t.init_current_with_target_lhs(),
    ])
    def test_no_partial_mutation(self, operation):
        before = self.snapshot()
        errors = len(self.task.error_messages)
        assert operation(self.task) is False
        assert self.snapshot() == before
        assert len(self.task.error_messages) == errors + 1

    def test_history_grows_by_one_per_success(self):
        task = self.task
        steps = [
            lambda: task.apply_arithmetic_turn_subtraction_to_addition(),
            lambda: task.apply_arithmetic_to_both_side(Operator.ADD, "b"),
            lambda: task.apply_rule("missing"),
            lambda: task.apply_arithmetic_turn_addition_to_subtraction(),
        ]
        for step in steps:
            before = len(task.history)
            ok = step()
            assert len(task.history) == before + (1 if ok else 0)
            assert task.current == task.history[-1].expression

    def test_earlier_steps_unchanged(self):
        first = self.task.history[0].expression
        self.task.apply_arithmetic_turn_subtraction_to_addition()
        assert self.task.history[0].expression is first
        assert str(first) == "a - b = c"
