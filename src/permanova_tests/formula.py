"""Design formulas with crossing and nesting.

A design formula such as ``source/(unique_cage*experiment*run)*day`` is
parsed once into a small expression tree and then expanded into an
ordered tuple of :class:`Term` objects.  Each term is a set of factor
names; its label joins them with ``:``.

Operators
---------
* ``A + B`` — union of the terms of A and B.
* ``A : B`` — interaction: every pairwise union of a term of A with a
  term of B.
* ``A * B`` — crossing: ``A + B + A:B``.
* ``A / B`` — nesting (B within A): ``A + (all factors of A):B``.  For
  ``(a + b)/c`` this yields ``a + b + a:b:c``.

``:`` binds tighter than ``*`` and ``/`` (equal precedence, left
associative), which bind tighter than ``+``.  An optional left-hand
side (``dist ~ ...``) is accepted and ignored.

Term order
----------
Terms are de-duplicated in expansion order, then stably sorted by
interaction degree so all main effects precede two-way terms, which
precede three-way terms, and so on.  This is the conventional ordering
of model formulas and is what makes ``A*B`` and ``B*A`` differ only in
the order of their main effects.  Pass ``keep_order=True`` to keep raw
expansion order instead.

Within a label, factor names appear in the order they first occur in
the formula: ``(source/cage)*day`` produces ``source:cage:day``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from ._errors import DesignError

# ------------------------------------------------------------------ #
# Expression tree
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class Factor:
    name: str


@dataclass(frozen=True)
class Add:
    left: Node
    right: Node


@dataclass(frozen=True)
class Interact:
    left: Node
    right: Node


@dataclass(frozen=True)
class Cross:
    left: Node
    right: Node


@dataclass(frozen=True)
class Nest:
    left: Node
    right: Node


Node = Union[Factor, Add, Interact, Cross, Nest]

_BINARY = {"+": Add, ":": Interact, "*": Cross, "/": Nest}


def _unique(sets: list[frozenset[str]]) -> list[frozenset[str]]:
    return list(dict.fromkeys(sets))


def _expand(node: Node) -> list[frozenset[str]]:
    """Expand *node* into factor sets, in expansion order."""
    if isinstance(node, Factor):
        return [frozenset([node.name])]

    left = _expand(node.left)
    right = _expand(node.right)
    if isinstance(node, Add):
        return _unique(left + right)
    if isinstance(node, Interact):
        return _unique([lt | rt for lt in left for rt in right])
    if isinstance(node, Cross):
        return _unique(left + right + [lt | rt for lt in left for rt in right])
    # Nest: every right-hand term is interacted with all left factors.
    outer = frozenset().union(*left)
    return _unique(left + [outer | rt for rt in right])


def _factor_names(node: Node) -> list[str]:
    if isinstance(node, Factor):
        return [node.name]
    return list(dict.fromkeys(_factor_names(node.left) + _factor_names(node.right)))


# ------------------------------------------------------------------ #
# Parser
# ------------------------------------------------------------------ #

_TOKEN = re.compile(r"\s*(?:([A-Za-z_.][A-Za-z0-9_.]*)|(.))")


def _tokenize(text: str) -> list[str]:
    tokens = []
    for name, op in _TOKEN.findall(text):
        if name:
            tokens.append(name)
        elif op.strip():
            if op not in "+*/:()":
                raise DesignError(f"Unexpected character {op!r} in formula {text!r}.")
            tokens.append(op)
    return tokens


class _Parser:
    """Recursive-descent parser over the token list."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = _tokenize(text)
        self.pos = 0

    def _peek(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _take(self) -> str:
        token = self._peek()
        if token is None:
            raise DesignError(f"Unexpected end of formula {self.text!r}.")
        self.pos += 1
        return token

    def parse(self) -> Node:
        node = self._sum()
        if self._peek() is not None:
            raise DesignError(
                f"Unexpected token {self._peek()!r} in formula {self.text!r}."
            )
        return node

    def _sum(self) -> Node:
        node = self._product()
        while self._peek() == "+":
            self._take()
            node = Add(node, self._product())
        return node

    def _product(self) -> Node:
        node = self._interaction()
        while self._peek() in ("*", "/"):
            op = self._take()
            node = _BINARY[op](node, self._interaction())
        return node

    def _interaction(self) -> Node:
        node = self._atom()
        while self._peek() == ":":
            self._take()
            node = Interact(node, self._atom())
        return node

    def _atom(self) -> Node:
        token = self._take()
        if token == "(":
            node = self._sum()
            if self._take() != ")":
                raise DesignError(f"Unbalanced parentheses in formula {self.text!r}.")
            return node
        if token in _BINARY or token == ")":
            raise DesignError(f"Unexpected {token!r} in formula {self.text!r}.")
        return Factor(token)


# ------------------------------------------------------------------ #
# Public types
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class Term:
    """One model term: an ordered tuple of factor names."""

    factors: tuple[str, ...]

    @property
    def label(self) -> str:
        return ":".join(self.factors)

    @property
    def degree(self) -> int:
        return len(self.factors)

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class DesignFormula:
    """A parsed design formula and its ordered term expansion.

    Attributes:
        text: The right-hand side as written.
        tree: Root of the expression tree.
        terms: Expanded terms in analysis order.
        factors: Every factor name, in order of first appearance.
    """

    text: str
    tree: Node
    terms: tuple[Term, ...]
    factors: tuple[str, ...]

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(term.label for term in self.terms)

    def __str__(self) -> str:
        return self.text


def parse_formula(text: str, *, keep_order: bool = False) -> DesignFormula:
    """Parse *text* into a :class:`DesignFormula`.

    Args:
        text: Formula such as ``"source/(unique_cage*experiment)"``.
            A ``response ~`` prefix is ignored.
        keep_order: Keep raw expansion order instead of sorting terms
            by interaction degree.

    Raises:
        DesignError: On syntax errors or an empty formula.
    """
    rhs = text.split("~", 1)[1] if "~" in text else text
    rhs = rhs.strip()
    if not rhs:
        raise DesignError(f"Formula {text!r} has no terms.")

    tree = _Parser(rhs).parse()
    factors = tuple(_factor_names(tree))
    rank = {name: i for i, name in enumerate(factors)}

    sets = _expand(tree)
    if not keep_order:
        sets = sorted(sets, key=len)
    terms = tuple(Term(tuple(sorted(s, key=rank.__getitem__))) for s in sets)
    return DesignFormula(text=rhs, tree=tree, terms=terms, factors=factors)


def as_formula(formula: str | DesignFormula) -> DesignFormula:
    """Return *formula* parsed if it is a string."""
    if isinstance(formula, DesignFormula):
        return formula
    if isinstance(formula, str):
        return parse_formula(formula)
    raise TypeError(
        f"formula must be a str or DesignFormula, got {type(formula).__name__}."
    )


__all__ = [
    "DesignFormula",
    "Term",
    "as_formula",
    "parse_formula",
]
