"""
Display blocks for equaio expressions.

render() lays an expression out as a tree of blocks a front end can draw:

    BASIC  a horizontal row of blocks
    VALUE  a single token (symbol, operator or parenthesis)
    FRAC   a fraction: two BASIC rows, numerator over denominator

    render(parse_expression("x + 1 = 3", ctx)).to_string()
    # => "x + 1 = 3"

Every VALUE token records the address of the node it came from and the
addresses of its left and right neighbors in the same row (None at the row
edges), so a click on a token maps back to a subtree. Blocks hold address
values only, never references into the expression.
"""

from enum import Enum
from typing import Iterator, List, Optional

from .expression import Address, Expression

FRACTION_SYMBOL = "/"


class BlockType(Enum):
    BASIC = "basic"
    VALUE = "value"
    FRAC = "frac"


class Block:
    """A node of the display layout."""

    __slots__ = ('block_type', 'value', 'children', 'address',
                 'left_address', 'right_address')

    def __init__(self, block_type: BlockType, value: str = "",
                 children: Optional[List['Block']] = None,
                 address: Address = ()):
        self.block_type = block_type
        self.value = value
        self.children: List['Block'] = list(children) if children else []
        self.address = tuple(address)
        self.left_address: Optional[Address] = None
        self.right_address: Optional[Address] = None

    def is_value(self) -> bool:
        return self.block_type is BlockType.VALUE

    def iter_values(self) -> Iterator['Block']:
        """Yield VALUE tokens left to right (numerator before denominator)."""
        if self.is_value():
            yield self
            return
        for child in self.children:
            yield from child.iter_values()

    def to_string(self) -> str:
        if self.block_type is BlockType.VALUE:
            return self.value
        if self.block_type is BlockType.FRAC:
            numerator, denominator = self.children
            return f"{{{numerator.to_string()}}}/{{{denominator.to_string()}}}"
        return " ".join(child.to_string() for child in self.children)

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        if self.is_value():
            return f"Block(VALUE {self.value!r} at {self.address})"
        return f"Block({self.block_type.name} {self.to_string()!r})"

    def __eq__(self, other):
        if not isinstance(other, Block):
            return False
        return (self.block_type is other.block_type
                and self.value == other.value
                and self.address == other.address
                and self.left_address == other.left_address
                and self.right_address == other.right_address
                and self.children == other.children)


def _row_items(expr: Expression, address: Address) -> List[Block]:
    """Blocks making up expr when laid out inline in a row."""
    if expr.is_value():
        items = [Block(BlockType.VALUE, expr.symbol, address=address)]
    elif expr.is_unary():
        items = [Block(BlockType.VALUE, expr.symbol, address=address)]
        items.extend(_row_items(expr.children[0], address + (0,)))
    elif expr.symbol == FRACTION_SYMBOL:
        numerator = Block(BlockType.BASIC, children=_row_items(expr.children[0], address + (0,)),
                          address=address + (0,))
        denominator = Block(BlockType.BASIC, children=_row_items(expr.children[1], address + (1,)),
                            address=address + (1,))
        items = [Block(BlockType.FRAC, children=[numerator, denominator], address=address)]
    else:
        items = _row_items(expr.children[0], address + (0,))
        items.append(Block(BlockType.VALUE, expr.symbol, address=address))
        items.extend(_row_items(expr.children[1], address + (1,)))

    if expr.bracketed:
        items.insert(0, Block(BlockType.VALUE, "(", address=address))
        items.append(Block(BlockType.VALUE, ")", address=address))
    return items


def _link_neighbors(block: Block):
    row = block.children
    for i, child in enumerate(row):
        if child.is_value():
            child.left_address = row[i - 1].address if i > 0 else None
            child.right_address = row[i + 1].address if i + 1 < len(row) else None
        else:
            _link_neighbors(child)


def render(expr: Expression) -> Block:
    """
    Lay out an expression as display blocks.

    Returns:
        A BASIC row for the whole expression.
    """
    root = Block(BlockType.BASIC, children=_row_items(expr, ()), address=())
    _link_neighbors(root)
    return root
