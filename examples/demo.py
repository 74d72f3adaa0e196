#!/usr/bin/env python3
"""
equaio Feature Demonstration

This script walks through the major features of the equaio library.
"""

from pathlib import Path
from equaio import (
    Context, Operator, Task,
    arithmetic_context, apply_rule_equal, load_algebra_rules,
    load_rules_from_file, parse_expression, parse_statement, render,
)


def section(title: str):
    """Print a section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def demo_expressions():
    """Demonstrate parsing and addressing."""
    section("Expressions and Addresses")

    ctx = arithmetic_context()
    expr = parse_statement("2 * (x + 1) = y / 3", "=", ctx)
    print(f"  Statement: {expr}")
    for address, node in expr.walk():
        print(f"    {str(address):12} {node}")


def demo_rules():
    """Demonstrate rewriting with a single rule."""
    section("Rule Rewriting")

    ctx = arithmetic_context()
    rule = parse_statement("X + 0 = X", "=", ctx)
    expr = parse_statement("a + 0 = b + 0", "=", ctx)

    print(f"  Rule: {rule}")
    print(f"  Expression: {expr}")
    for i, candidate in enumerate(apply_rule_equal(expr, rule, ctx)):
        print(f"    candidate {i}: {candidate}")


def demo_solve():
    """Demonstrate a derivation solving a linear equation."""
    section("Solving x + 3 = 5")

    task = Task(arithmetic_context())
    task.set_current_eq("x + 3 = 5")
    task.apply_arithmetic_to_both_side(Operator.SUBTRACT, "3")
    task.apply_arithmetic_calculation("5", "3", Operator.SUBTRACT)
    task.apply_rule_expr(parse_statement("(X + Y) - Y = X", "=", task.context),
                         "cancel addition")

    for line in task.format_history("verbose").split('\n'):
        print(f"  {line}")


def demo_target():
    """Demonstrate proving a target with the built-in rules."""
    section("Working Toward a Target")

    task = Task(arithmetic_context())
    task.add_rules(load_algebra_rules())
    task.set_target_eq("(a * 1) + 0 = a")
    task.init_current_with_target_lhs()
    task.apply_rule_at("algebra/add_zero", (1,))
    task.apply_rule_at("algebra/mul_one", (1,))

    print(f"  Target:  {task.target}")
    print(f"  Chain:   {task.format_history('compact')}")
    print(f"  Reached: {task.current == task.target}")


def demo_chains():
    """Demonstrate swapping operands in a commutative chain."""
    section("Operator Chains")

    task = Task(arithmetic_context())
    task.set_current_eq("a + b + c = d - e")
    task.try_swap_two_element((0, 0, 0), (0, 1))
    task.try_swap_two_element((1, 0), (1, 1))

    print(f"  Current: {task.current}")
    print(f"  Errors:  {task.error_messages}")


def demo_normalizations():
    """Demonstrate the arithmetic normal forms."""
    section("Normal Forms")

    task = Task(arithmetic_context())
    task.set_current_eq("x - (y / 2) = (a + b) + c")
    task.apply_arithmetic_turn_subtraction_to_addition()
    task.apply_arithmetic_turn_division_to_multiplication()
    task.apply_arithmetic_remove_assoc_parentheses()

    print(task.format_history("chain"))


def demo_functions():
    """Demonstrate applying a function to both sides."""
    section("Functions of Both Sides")

    ctx = Context(variables=["X"], binary_operators=["+", "*"],
                  unary_operators=["sqrt"], handle_numerics=True)
    task = Task(ctx)
    task.set_current_eq("x * x = 9")
    task.apply_function_to_both_side("sqrt(X)", "X")
    print(f"  {task.current}")


def demo_rendering():
    """Demonstrate the display layout."""
    section("Rendering")

    expr = parse_expression("(a + 1) / b - c", arithmetic_context())
    block = render(expr)
    print(f"  Layout: {block.to_string()}")
    for token in block.iter_values():
        print(f"    {token.value:3} at {token.address}")


def demo_file_loading():
    """Demonstrate loading rules from files."""
    section("Loading Rules from Files")

    examples_dir = Path(__file__).parent
    rules = load_rules_from_file(examples_dir / "algebra.rules")
    print(f"  Loaded {len(rules)} rules from algebra.rules")

    task = Task(arithmetic_context())
    task.add_rules(rules)
    task.set_current_eq("2 * (x + 1) = 6")
    task.apply_rule("distribute/left")
    task.apply_rule("identity/mul_one")
    print(f"  {task.format_history('compact')}")

    task = Task(arithmetic_context())
    task.add_rules(rules)
    task.set_current_eq("x + y = x")
    task.apply_rule("solve/cancel_term")
    print(f"  {task.format_history('compact')}")


def demo_fractions():
    """Demonstrate fraction simplification."""
    section("Fractions")

    task = Task(arithmetic_context())
    task.set_current_eq("x = (4 * 5) / (2 * 3)")
    task.apply_fraction_simplification_at(0, 0, (1,))
    print(f"  {task.format_history('compact')}")


def main():
    """Run all demonstrations."""
    print("equaio - step-by-step equation rewriting")
    print("Feature Demonstration")

    demo_expressions()
    demo_rules()
    demo_solve()
    demo_target()
    demo_chains()
    demo_normalizations()
    demo_functions()
    demo_rendering()
    demo_file_loading()
    demo_fractions()

    print("\n" + "="*60)
    print(" Demo complete!")
    print("="*60)


if __name__ == "__main__":
    main()
