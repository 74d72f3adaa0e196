"""
Pattern matching, substitution and rule application for equaio.

A pattern is an ordinary Expression in which the variables declared by the
Context act as wildcards:

    ctx = Context(variables=["a"], binary_operators=["+"], handle_numerics=True)
    rule = parse_statement("a + 0 = a", "=", ctx)

    apply_rule_equal(parse_expression("x + 0", ctx), rule, ctx)
    # => [Expression('x')]

Matching happens in two passes. can_pattern_match() is a cheap shape check
over operators and arities; try_match_pattern() then unifies and produces
the variable bindings, requiring repeated variables to bind equal subtrees.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from .expression import Address, Context, Expression

# Type aliases
BindingsType = Union[Dict[str, Expression], str]  # name -> subtree, or "failed"
FAILED = "failed"


# ============================================================
# Bindings Class - Dict-like interface for match results
# ============================================================

class Bindings:
    """
    Dict-like wrapper for pattern matching bindings.

    Bindings objects are truthy when a match succeeded, including the empty
    bindings of a pattern without variables. Use NoMatch (which is falsy) to
    represent failed matches.

        if bindings := try_match_pattern(expr, pattern, ctx):
            print(bindings["a"], bindings.get("b"))
    """

    __slots__ = ('_dict',)

    def __init__(self, mapping: Union[Dict[str, Expression], Iterable[Tuple[str, Expression]]] = ()):
        self._dict = dict(mapping)

    def __bool__(self) -> bool:
        """Bindings are always truthy (use NoMatch for failed matches)."""
        return True

    def __getitem__(self, key: str) -> Expression:
        return self._dict[key]

    def get(self, key: str, default=None):
        return self._dict.get(key, default)

    def __contains__(self, key: str) -> bool:
        return key in self._dict

    def keys(self):
        return self._dict.keys()

    def values(self):
        return self._dict.values()

    def items(self):
        return self._dict.items()

    def __iter__(self):
        return iter(self._dict)

    def __len__(self) -> int:
        return len(self._dict)

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}: {v}" for k, v in self._dict.items())
        return f"Bindings({{{inner}}})"

    def __eq__(self, other):
        if isinstance(other, Bindings):
            return self._dict == other._dict
        if isinstance(other, dict):
            return self._dict == other
        return False

    def to_dict(self) -> Dict[str, Expression]:
        """Convert to a plain dictionary."""
        return self._dict.copy()


class _NoMatch:
    """
    Singleton representing a failed pattern match.

    NoMatch is falsy and behaves like an empty mapping.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NoMatch"

    def __getitem__(self, key: str):
        raise KeyError(f"NoMatch has no binding for '{key}'")

    def get(self, key: str, default=None):
        return default

    def __contains__(self, key: str) -> bool:
        return False

    def __len__(self) -> int:
        return 0

    def __iter__(self):
        return iter([])


# Singleton instance
NoMatch = _NoMatch()


def wrap_bindings(result: BindingsType) -> Union[Bindings, _NoMatch]:
    """Convert the internal bindings representation to Bindings or NoMatch."""
    if result is FAILED:
        return NoMatch
    return Bindings(result)


# ============================================================
# Pattern Matching
# ============================================================

def is_pattern_variable(node: Expression, context: Context) -> bool:
    """Check if a pattern node is a wildcard (a declared variable leaf)."""
    return node.is_value() and context.is_variable(node.symbol)


def can_pattern_match(expr: Expression, pattern: Expression, context: Context) -> bool:
    """
    Check whether expr has the operator shape required by pattern.

    Only types, operator symbols and arities are compared: a variable matches
    anything and a literal value matches any value. A True result does not
    guarantee that try_match_pattern() succeeds.
    """
    if is_pattern_variable(pattern, context):
        return True
    if pattern.exp_type is not expr.exp_type:
        return False
    if pattern.is_value():
        return True
    if pattern.symbol != expr.symbol:
        return False
    return all(can_pattern_match(child, sub, context)
               for child, sub in zip(expr.children, pattern.children))


def extend_bindings(name: str, expr: Expression, bindings: BindingsType) -> BindingsType:
    """
    Extend the bindings with name -> expr.

    Returns:
        Extended bindings, the same bindings when name is already bound to an
        equal subtree, or "failed" on conflict.
    """
    if bindings is FAILED:
        return FAILED
    if name in bindings:
        return bindings if bindings[name] == expr else FAILED
    extended = dict(bindings)
    extended[name] = expr
    return extended


def match(pattern: Expression, expr: Expression, bindings: BindingsType,
          context: Context) -> BindingsType:
    """
    Match a pattern against an expression with bindings.

    Args:
        pattern: The pattern to match
        expr: The expression to match against
        bindings: Current bindings
        context: Declares which pattern leaves are variables

    Returns:
        Updated bindings on success, "failed" on failure
    """
    if bindings is FAILED:
        return FAILED

    if is_pattern_variable(pattern, context):
        return extend_bindings(pattern.symbol, expr, bindings)

    if pattern.exp_type is not expr.exp_type or pattern.symbol != expr.symbol:
        return FAILED

    for sub_pattern, child in zip(pattern.children, expr.children):
        bindings = match(sub_pattern, child, bindings, context)
        if bindings is FAILED:
            return FAILED
    return bindings


def try_match_pattern(expr: Expression, pattern: Expression,
                      context: Context) -> Union[Bindings, _NoMatch]:
    """
    Unify pattern with expr.

    Expects can_pattern_match(expr, pattern, context) to hold.

    Returns:
        Bindings (possibly empty) on success, NoMatch if the pattern's
        literals or repeated variables are inconsistent with expr.
    """
    return wrap_bindings(match(pattern, expr, {}, context))


# ============================================================
# Substitution
# ============================================================

def apply_variable_map(pattern: Expression, bindings: Any,
                       context: Optional[Context] = None) -> Expression:
    """
    Instantiate a pattern with bindings.

    Every variable leaf is replaced by its bound subtree; operator structure
    and literals are kept as they are. Subtrees are immutable, so the bound
    values can be placed in the new tree without copying.

    With a context, every declared variable of the pattern must be bound.
    Without one, leaves whose symbol is bound are substituted.

    Raises:
        KeyError: If a declared pattern variable has no binding.
    """
    if pattern.is_value():
        if context is not None and context.is_variable(pattern.symbol):
            if pattern.symbol not in bindings:
                raise KeyError(f"pattern variable '{pattern.symbol}' has no binding")
            return bindings[pattern.symbol]
        if context is None and pattern.symbol in bindings:
            return bindings[pattern.symbol]
        return pattern
    return pattern.with_children(apply_variable_map(child, bindings, context)
                                 for child in pattern.children)


def substitute_symbol(expr: Expression, symbol: str, replacement: Expression) -> Expression:
    """
    Replace every node whose symbol is `symbol` by `replacement`.

    This is plain textual substitution: the node's type and the context are
    not consulted, and a replaced node is not searched further. Operator
    replacements nested under a parent are bracketed so they keep their
    grouping, e.g. substituting x + 3 for X in "X - 3" gives "(x + 3) - 3".
    """
    if expr.symbol == symbol:
        return replacement
    nested = replacement if replacement.is_value() else replacement.with_bracketed(True)

    def loop(node: Expression) -> Expression:
        if node.symbol == symbol:
            return nested
        if node.is_value():
            return node
        return node.with_children(loop(child) for child in node.children)

    return loop(expr)


# ============================================================
# Rule Application
# ============================================================

def split_rule(rule: Expression) -> Tuple[Expression, Expression]:
    """
    Split an equality rule into (pattern, template).

    Raises:
        ValueError: If the rule is not an "=" node.
    """
    if not rule.is_equation():
        raise ValueError(f"rule must be an equality, got '{rule}'")
    return rule.children[0], rule.children[1]


def find_rewrite_sites(expr: Expression, rule: Expression,
                       context: Context) -> List[Tuple[Address, Bindings]]:
    """
    Every address where the rule's left side matches, in pre-order.

    Returns:
        List of (address, bindings) pairs.
    """
    pattern, _ = split_rule(rule)
    sites = []
    for address, node in expr.walk():
        if not can_pattern_match(node, pattern, context):
            continue
        bindings = try_match_pattern(node, pattern, context)
        if bindings:
            sites.append((address, bindings))
    return sites


def _rewrite_at(expr: Expression, address: Address, template: Expression,
                bindings: Bindings, context: Context) -> Expression:
    replacement = apply_variable_map(template, bindings, context)
    if expr.at(address).bracketed and replacement.is_operator():
        replacement = replacement.with_bracketed(True)
    return expr.replace_at(address, replacement)


def apply_rule_equal(expr: Expression, rule: Expression, context: Context) -> List[Expression]:
    """
    Rewrite expr with an equality rule at every site where it matches.

    Args:
        expr: Expression to rewrite
        rule: An "=" expression; left side is the pattern, right side the template
        context: Declares the rule's variables

    Returns:
        One candidate per matching site, in address (pre-order) order.
        An empty list means the rule applies nowhere.
    """
    _, template = split_rule(rule)
    return [_rewrite_at(expr, address, template, bindings, context)
            for address, bindings in find_rewrite_sites(expr, rule, context)]


def apply_rule_equal_at(expr: Expression, rule: Expression, address: Address,
                        context: Context) -> Optional[Expression]:
    """
    Rewrite expr with an equality rule at one address.

    Returns:
        The rewritten expression, or None if the rule does not match there.
    """
    pattern, template = split_rule(rule)
    node = expr.at(address)
    if not can_pattern_match(node, pattern, context):
        return None
    bindings = try_match_pattern(node, pattern, context)
    if not bindings:
        return None
    return _rewrite_at(expr, tuple(address), template, bindings, context)


def unbound_variables(rule: Expression, context: Context) -> List[str]:
    """
    Variables of the rule's result side that its pattern side never binds.

    For "lhs = rhs" these are rhs variables missing from lhs; for
    "premise => conclusion" conclusion variables missing from premise.
    A rule with unbound variables cannot be instantiated.
    """
    pattern, result = rule.children
    bound = set(pattern.extract_variables(context))
    return [name for name in result.extract_variables(context) if name not in bound]


def apply_implication(expr: Expression, rule: Expression,
                      context: Context) -> Optional[Expression]:
    """
    Rewrite a whole statement with a "premise => conclusion" rule.

    The premise must match expr itself (not a subtree); the conclusion is
    instantiated with the bindings:

        apply_implication("a + b = a", "X + Y = X => Y = 0")  -> b = 0

    Returns:
        The conclusion, or None if the premise does not match.

    Raises:
        ValueError: If the rule is not an implication.
    """
    if not rule.is_implication():
        raise ValueError(f"rule must be an implication, got '{rule}'")
    premise, conclusion = rule.children
    if not can_pattern_match(expr, premise, context):
        return None
    bindings = try_match_pattern(expr, premise, context)
    if not bindings:
        return None
    return apply_variable_map(conclusion, bindings, context)
