"""
Expression trees for equaio.

This module provides the immutable expression tree, path based addressing,
operator chain analysis and the Context that configures a derivation.

An Expression is a node tagged VALUE, UNARY_OPERATOR or BINARY_OPERATOR:

    x + 3 = 5   ->   (= (+ x 3) 5)

    Expression.binary("=",
        Expression.binary("+", Expression.value("x"), Expression.value("3")),
        Expression.value("5"))

Addresses are tuples of child indices from the root. () is the root, (0,) the
left side of an equation, (0, 1) the "3" above. An address is only meaningful
for the tree it was computed against.
"""

from enum import Enum
from typing import Iterable, Iterator, List, Optional, Tuple

# Type aliases
Address = Tuple[int, ...]


# ============================================================
# Errors
# ============================================================

class ExpressionError(Exception):
    """Base class for violated expression invariants."""


class InvalidAddressError(ExpressionError, IndexError):
    """An address does not resolve within the tree it was applied to."""


class ArityError(ExpressionError, ValueError):
    """A node's child count does not match its type."""


# ============================================================
# Context
# ============================================================

class Context:
    """
    Fixed configuration of a derivation.

    Declares which value symbols act as pattern variables, which symbols are
    binary operators (the argument separator "," included) and which are
    unary operators or functions. Numeric literals are only accepted by the
    parser when handle_numerics is set.

    Operators listed in associative_operators / commutative_operators may be
    regrouped / reordered inside an operator chain. Operators missing from
    those lists are treated as neither.

    Examples:
        ctx = Context(variables=["a", "b"], binary_operators=["+", "*", ","],
                      associative_operators=["+", "*"])
        ctx.is_variable("a")       # => True
        ctx.is_associative("+")    # => True
    """

    __slots__ = ('variables', 'binary_operators', 'unary_operators',
                 'handle_numerics', 'associative_operators',
                 'commutative_operators')

    def __init__(self, variables: Iterable[str] = (),
                 binary_operators: Iterable[str] = (),
                 unary_operators: Iterable[str] = (),
                 handle_numerics: bool = False,
                 associative_operators: Iterable[str] = (),
                 commutative_operators: Iterable[str] = ()):
        self.variables: Tuple[str, ...] = tuple(variables)
        self.binary_operators: Tuple[str, ...] = tuple(binary_operators)
        self.unary_operators: Tuple[str, ...] = tuple(unary_operators)
        self.handle_numerics = handle_numerics
        self.associative_operators: Tuple[str, ...] = tuple(associative_operators)
        self.commutative_operators: Tuple[str, ...] = tuple(commutative_operators)

    def is_variable(self, symbol: str) -> bool:
        return symbol in self.variables

    def is_binary_operator(self, symbol: str) -> bool:
        return symbol in self.binary_operators

    def is_unary_operator(self, symbol: str) -> bool:
        return symbol in self.unary_operators

    def is_associative(self, symbol: str) -> bool:
        return symbol in self.associative_operators

    def is_commutative(self, symbol: str) -> bool:
        return symbol in self.commutative_operators

    def with_variables(self, *names: str) -> 'Context':
        """Return a copy of this context with extra variables declared."""
        variables = list(self.variables)
        variables.extend(n for n in names if n not in variables)
        return Context(variables, self.binary_operators, self.unary_operators,
                       self.handle_numerics, self.associative_operators,
                       self.commutative_operators)

    def _key(self) -> tuple:
        return (self.variables, self.binary_operators, self.unary_operators,
                self.handle_numerics, self.associative_operators,
                self.commutative_operators)

    def __eq__(self, other):
        if isinstance(other, Context):
            return self._key() == other._key()
        return False

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        return (f"Context(variables={list(self.variables)}, "
                f"binary_operators={list(self.binary_operators)}, "
                f"unary_operators={list(self.unary_operators)}, "
                f"handle_numerics={self.handle_numerics}, "
                f"associative_operators={list(self.associative_operators)}, "
                f"commutative_operators={list(self.commutative_operators)})")


# ============================================================
# Expression
# ============================================================

class ExpressionType(Enum):
    VALUE = "value"
    UNARY_OPERATOR = "unary"
    BINARY_OPERATOR = "binary"


ARITY = {
    ExpressionType.VALUE: 0,
    ExpressionType.UNARY_OPERATOR: 1,
    ExpressionType.BINARY_OPERATOR: 2,
}


def _is_function_symbol(symbol: str) -> bool:
    """Alphanumeric unary symbols (sin, f, ...) print as function calls."""
    return bool(symbol) and (symbol[0].isalpha() or symbol[0] == "_")


class Expression:
    """
    An immutable expression tree node.

    Every transformation returns a new tree; unchanged subtrees are shared
    between the old and the new tree, which is safe because nothing mutates
    a node after construction.

    Equality is structural over type, symbol, bracketed flag and children,
    so "(x)" and "x" are different expressions.
    """

    __slots__ = ('exp_type', 'symbol', 'bracketed', 'children', '_hash')

    def __init__(self, exp_type: ExpressionType, symbol: str,
                 bracketed: bool = False, children: Iterable['Expression'] = ()):
        children = tuple(children)
        if len(children) != ARITY[exp_type]:
            raise ArityError(
                f"{exp_type.name} node '{symbol}' needs {ARITY[exp_type]} "
                f"children, got {len(children)}")
        self.exp_type = exp_type
        self.symbol = symbol
        self.bracketed = bracketed
        self.children: Tuple['Expression', ...] = children
        self._hash = None

    # ------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------

    @classmethod
    def value(cls, symbol: str, bracketed: bool = False) -> 'Expression':
        return cls(ExpressionType.VALUE, symbol, bracketed)

    @classmethod
    def unary(cls, symbol: str, operand: 'Expression',
              bracketed: bool = False) -> 'Expression':
        return cls(ExpressionType.UNARY_OPERATOR, symbol, bracketed, (operand,))

    @classmethod
    def binary(cls, symbol: str, left: 'Expression', right: 'Expression',
               bracketed: bool = False) -> 'Expression':
        return cls(ExpressionType.BINARY_OPERATOR, symbol, bracketed, (left, right))

    @staticmethod
    def create_symbol(symbol: str) -> 'Expression':
        return Expression.value(symbol)

    @staticmethod
    def create_equality(lhs: 'Expression', rhs: 'Expression') -> 'Expression':
        return Expression.binary("=", lhs, rhs)

    @staticmethod
    def parent_address_of(address: Address) -> Address:
        if not address:
            raise InvalidAddressError("the root has no parent")
        return tuple(address[:-1])

    @staticmethod
    def child_address_of(address: Address, child_index: int) -> Address:
        return tuple(address) + (child_index,)

    def with_bracketed(self, bracketed: bool) -> 'Expression':
        if bracketed == self.bracketed:
            return self
        return Expression(self.exp_type, self.symbol, bracketed, self.children)

    def with_children(self, children: Iterable['Expression']) -> 'Expression':
        return Expression(self.exp_type, self.symbol, self.bracketed, children)

    # ------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------

    def is_value(self) -> bool:
        return self.exp_type is ExpressionType.VALUE

    def is_unary(self) -> bool:
        return self.exp_type is ExpressionType.UNARY_OPERATOR

    def is_binary(self) -> bool:
        return self.exp_type is ExpressionType.BINARY_OPERATOR

    def is_operator(self) -> bool:
        return not self.is_value()

    def is_equation(self) -> bool:
        return self.is_binary() and self.symbol == "="

    def is_implication(self) -> bool:
        """True for "premise => conclusion" where both sides are equalities."""
        return (self.is_binary() and self.symbol == "=>"
                and self.children[0].is_equation() and self.children[1].is_equation())

    @property
    def lhs(self) -> 'Expression':
        return self.children[0]

    @property
    def rhs(self) -> 'Expression':
        return self.children[1]

    # ------------------------------------------------------------
    # Addressing
    # ------------------------------------------------------------

    def at(self, address: Address) -> 'Expression':
        """
        Return the subtree at an address.

        Raises:
            InvalidAddressError: If any index is out of range for its node.
        """
        node = self
        for depth, index in enumerate(address):
            if not 0 <= index < len(node.children):
                raise InvalidAddressError(
                    f"address {tuple(address)} does not resolve: no child "
                    f"{index} at depth {depth} ('{node.symbol}')")
            node = node.children[index]
        return node

    def has_address(self, address: Address) -> bool:
        node = self
        for index in address:
            if not isinstance(index, int) or not 0 <= index < len(node.children):
                return False
            node = node.children[index]
        return True

    def walk(self, address: Address = ()) -> Iterator[Tuple[Address, 'Expression']]:
        """Yield (address, node) pairs in pre-order, root first."""
        yield address, self
        for i, child in enumerate(self.children):
            yield from child.walk(address + (i,))

    def get_all_address(self) -> List[Address]:
        """
        Every node's address in pre-order (root, then children left to right).

        Rule application relies on this order to make "first match" well
        defined.
        """
        return [address for address, _ in self.walk()]

    def extract_variables(self, context: Context) -> List[str]:
        """Declared variables occurring in the tree, in order of first occurrence."""
        found: List[str] = []
        for _, node in self.walk():
            if node.is_value() and context.is_variable(node.symbol) \
                    and node.symbol not in found:
                found.append(node.symbol)
        return found

    def replace_at(self, address: Address, replacement: 'Expression') -> 'Expression':
        """Return a new tree with the subtree at address replaced."""
        if not address:
            return replacement
        index = address[0]
        if not 0 <= index < len(self.children):
            raise InvalidAddressError(
                f"cannot replace at {tuple(address)}: no child {index} "
                f"under '{self.symbol}'")
        children = list(self.children)
        children[index] = children[index].replace_at(address[1:], replacement)
        return self.with_children(children)

    # ------------------------------------------------------------
    # Operator chains
    # ------------------------------------------------------------

    def get_operator_chains_from(self, address: Address) -> List[Address]:
        """
        Flattened operand addresses of the operator chain rooted at address.

        Descends through every child that is a binary node with the same
        symbol, whatever its bracketing, so "a + b + c", "(a + b) + c" and
        "a + (b + c)" all give the operands a, b, c in left to right order.

        A node that is not a binary operator is its own single-element chain.
        """
        address = tuple(address)
        root = self.at(address)
        if not root.is_binary():
            return [address]

        chain: List[Address] = []

        def collect(node: Expression, node_address: Address):
            for i, child in enumerate(node.children):
                child_address = node_address + (i,)
                if child.is_binary() and child.symbol == root.symbol:
                    collect(child, child_address)
                else:
                    chain.append(child_address)

        collect(root, address)
        return chain

    def chain_root_of(self, address: Address) -> Optional[Address]:
        """
        Address of the top of the operator chain whose operands include address.

        Returns None when address is the root, does not resolve, or is itself
        an inner node of its parent's chain.
        """
        address = tuple(address)
        if not address or not self.has_address(address):
            return None
        parent_address = address[:-1]
        parent = self.at(parent_address)
        if not parent.is_binary():
            return None
        node = self.at(address)
        if node.is_binary() and node.symbol == parent.symbol:
            return None

        root = parent_address
        while root:
            above = self.at(root[:-1])
            if not (above.is_binary() and above.symbol == parent.symbol):
                break
            root = root[:-1]
        return root

    def is_in_same_operator_chain(self, addr1: Address, addr2: Address) -> bool:
        root1 = self.chain_root_of(addr1)
        root2 = self.chain_root_of(addr2)
        return root1 is not None and root1 == root2

    def swap_two_element(self, addr1: Address, addr2: Address) -> 'Expression':
        """
        Exchange two operands of the same operator chain.

        Raises:
            ExpressionError: If the addresses are not in one chain.
        """
        addr1, addr2 = tuple(addr1), tuple(addr2)
        if not self.is_in_same_operator_chain(addr1, addr2):
            raise ExpressionError(
                f"{addr1} and {addr2} are not in the same operator chain")
        first, second = self.at(addr1), self.at(addr2)
        return self.replace_at(addr1, second).replace_at(addr2, first)

    def strip_parentheses_for_associative_op(self, op: str) -> 'Expression':
        """
        Drop the bracketed flag of op nodes nested directly under op nodes.

        "(a + b) + c" and "a + (b + c)" both print as "a + b + c" afterwards.
        Brackets anywhere else, e.g. "a * (b + c)", are kept.
        """
        def strip(node: Expression, under_op: bool) -> Expression:
            is_op = node.is_binary() and node.symbol == op
            children = [strip(child, is_op) for child in node.children]
            bracketed = False if (under_op and is_op) else node.bracketed
            return Expression(node.exp_type, node.symbol, bracketed, children)

        return strip(self, False)

    # ------------------------------------------------------------
    # Text form
    # ------------------------------------------------------------

    def to_string(self) -> str:
        """
        Infix text of the expression.

        Parentheses appear exactly where nodes are bracketed; function-like
        unary symbols always wrap their argument.
        """
        if self.is_value():
            text = self.symbol
        elif self.is_unary():
            operand = self.children[0]
            inner = operand.to_string()
            if _is_function_symbol(self.symbol) and not operand.bracketed:
                text = f"{self.symbol}({inner})"
            else:
                text = f"{self.symbol}{inner}"
        else:
            left = self.children[0].to_string()
            right = self.children[1].to_string()
            if self.symbol == ",":
                text = f"{left}, {right}"
            else:
                text = f"{left} {self.symbol} {right}"
        return f"({text})" if self.bracketed else text

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"Expression({self.to_string()!r})"

    def __eq__(self, other):
        if not isinstance(other, Expression):
            return False
        if self is other:
            return True
        return (self.exp_type is other.exp_type
                and self.symbol == other.symbol
                and self.bracketed == other.bracketed
                and self.children == other.children)

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash((self.exp_type, self.symbol, self.bracketed,
                               self.children))
        return self._hash
