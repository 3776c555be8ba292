"""
Earley Parser

Exhaustive chart parser. Every derivation of the input is explored and
ambiguity is preserved: parse_all() yields each distinct derivation tree.
Left recursion, right recursion and empty rules are all supported.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Set, Tuple

from grammar.grammar import Grammar, GrammarError, Symbol
from grammar.derivation_tree import DerivationTree
from .base import NoParseError, Parser


logger = logging.getLogger("treefuzz.parsers.earley")

DEFAULT_MAX_TREES = 1000


@dataclass(frozen=True)
class EarleyItem:
    """A partially matched alternative: <name> ::= alpha . beta, started at origin."""
    name: str
    alt: int
    dot: int
    origin: int

    def advance(self) -> "EarleyItem":
        return EarleyItem(self.name, self.alt, self.dot + 1, self.origin)

    def format(self, grammar: Grammar) -> str:
        symbols = [str(s) for s in grammar.alternatives(self.name)[self.alt]]
        symbols.insert(self.dot, "•")
        return f"<{self.name}> ::= {' '.join(symbols)} ({self.origin})"


class Column:
    """The set of items at one input position, kept in insertion order."""

    def __init__(self, index: int):
        self.index = index
        self.items: List[EarleyItem] = []
        self._seen: Set[EarleyItem] = set()
        # nonterminal name -> items whose dot is in front of it
        self.waiting: Dict[str, List[EarleyItem]] = defaultdict(list)

    def add(self, item: EarleyItem, expects: Optional[str] = None) -> bool:
        if item in self._seen:
            return False
        self._seen.add(item)
        self.items.append(item)
        if expects is not None:
            self.waiting[expects].append(item)
        return True

    def __iter__(self):
        return iter(self.items)

    def __len__(self):
        return len(self.items)

    def __contains__(self, item):
        return item in self._seen

    def __repr__(self):
        return f"Column({self.index}, items={len(self.items)})"


class EarleyParser(Parser):
    """
    Earley recognizer with derivation tree extraction.

    Nullable nonterminals are advanced over at prediction time
    (Aycock & Horspool), so empty derivations complete without a
    second pass over the column.
    """

    def __init__(self, grammar: Grammar, start_symbol: Optional[str] = None,
                 max_trees: int = DEFAULT_MAX_TREES):
        super().__init__(grammar, start_symbol)
        self.max_trees = max_trees
        self._text = ""
        self._completed: Dict[Tuple[str, int, int], List[int]] = {}
        self._spans: Dict[Tuple[str, int], Set[int]] = {}
        self._fit_memo: Dict[Tuple[str, int, int, int, int], bool] = {}

    def _expects(self, item: EarleyItem) -> Optional[Symbol]:
        alternative = self.grammar.rules[item.name][item.alt]
        if item.dot < len(alternative):
            return alternative[item.dot]
        return None

    def _add(self, column: Column, item: EarleyItem):
        symbol = self._expects(item)
        waits_for = None
        if symbol is not None and self.literal(symbol, self.grammar) is None:
            waits_for = symbol.name
        column.add(item, waits_for)

    def chart(self, text: str, start_symbol: Optional[str] = None) -> List[Column]:
        """
        Fill and return the Earley chart for text.

        Column i holds every item reachable after reading text[:i].
        """
        symbol = start_symbol or self.start_symbol
        if not self.grammar.is_defined(symbol):
            raise GrammarError(f"Start symbol <{symbol}> is not defined")

        nullable = self.grammar.nullable()
        columns = [Column(i) for i in range(len(text) + 1)]

        for alt in range(len(self.grammar.alternatives(symbol))):
            self._add(columns[0], EarleyItem(symbol, alt, 0, 0))

        for i, column in enumerate(columns):
            j = 0
            # Items appended while processing the column are picked up here
            while j < len(column.items):
                item = column.items[j]
                j += 1

                expected = self._expects(item)
                if expected is None:
                    self._complete(columns, column, item)
                    continue

                literal = self.literal(expected, self.grammar)
                if literal is not None:
                    # Scan
                    if text.startswith(literal, i):
                        self._add(columns[i + len(literal)], item.advance())
                    continue

                # Predict
                for alt in range(len(self.grammar.alternatives(expected.name))):
                    self._add(column, EarleyItem(expected.name, alt, 0, i))
                if expected.name in nullable:
                    self._add(column, item.advance())

        self.logger.debug(f"Filled chart: {sum(len(c) for c in columns)} items over {len(columns)} columns")
        return columns

    def _complete(self, columns: List[Column], column: Column, item: EarleyItem):
        for parent in list(columns[item.origin].waiting.get(item.name, ())):
            self._add(column, parent.advance())

    def parse_all(self, text: str, start_symbol: Optional[str] = None) -> Iterator[DerivationTree]:
        symbol = start_symbol or self.start_symbol
        columns = self.chart(text, symbol)
        self._index(text, columns)

        seen = set()
        for tree in self._trees(symbol, 0, len(text)):
            if tree in seen:
                continue
            seen.add(tree)
            yield tree
            if len(seen) >= self.max_trees:
                self.logger.warning(f"Stopped after {self.max_trees} derivation trees")
                return

    def parse(self, text: str, start_symbol: Optional[str] = None) -> DerivationTree:
        for tree in self.parse_all(text, start_symbol):
            return tree
        raise self._error(text, start_symbol or self.start_symbol)

    def count_trees(self, text: str, start_symbol: Optional[str] = None) -> int:
        """Number of distinct derivation trees (at most max_trees)."""
        return sum(1 for _ in self.parse_all(text, start_symbol))

    def _error(self, text: str, symbol: str) -> NoParseError:
        columns = self.chart(text, symbol)
        last = max((i for i, column in enumerate(columns) if len(column)), default=0)

        expected = set()
        for item in columns[last]:
            next_symbol = self._expects(item)
            if next_symbol is not None:
                literal = self.literal(next_symbol, self.grammar)
                if literal is not None:
                    expected.add(literal)

        if last == len(text):
            message = f"Unexpected end of input at position {last}"
        else:
            message = f"Syntax error at position {last}: unexpected {text[last]!r}"
        return NoParseError(message, last, expected)

    def _index(self, text: str, columns: List[Column]):
        """Record completed (symbol, start, end) spans for tree extraction."""
        self._text = text
        self._completed = defaultdict(list)
        self._spans = defaultdict(set)
        self._fit_memo = {}

        for end, column in enumerate(columns):
            for item in column:
                if self._expects(item) is None:
                    key = (item.name, item.origin, end)
                    if item.alt not in self._completed[key]:
                        self._completed[key].append(item.alt)
                    self._spans[(item.name, item.origin)].add(end)

    def _trees(self, name: str, start: int, end: int) -> Iterator[DerivationTree]:
        """
        Enumerate derivations of text[start:end] from name.

        Each derivation is fixed by the list of choices made while
        building it (which alternative, where a child ends). The list is
        advanced like an odometer, so every combination is built once.
        """
        choices: List[List[int]] = []
        while True:
            tree = self._derive(name, start, end, choices)
            if tree is not None:
                yield tree

            while choices and choices[-1][0] + 1 >= choices[-1][1]:
                choices.pop()
            if not choices:
                return
            choices[-1][0] += 1

    def _derive(self, name: str, start: int, end: int,
                choices: List[List[int]]) -> Optional[DerivationTree]:
        """
        Build the derivation selected by choices, extending it with first
        options where it runs out. Returns None on a dead end.

        Frames are [name, alt, index, pos, start, end, children].
        """
        position = 0

        def decide(options: List[int]) -> int:
            nonlocal position
            if position == len(choices):
                choices.append([0, len(options)])
            picked = choices[position][0]
            position += 1
            return options[picked]

        alts = sorted(self._completed.get((name, start, end), ()))
        if not alts:
            return None

        # The same span nested inside itself only adds cycles; a tree
        # without the cycle always exists
        active: Set[Tuple[str, int, int]] = {(name, start, end)}
        stack = [[name, decide(alts), 0, start, start, end, []]]
        while True:
            frame = stack[-1]
            name, alt, index, pos, start, end, children = frame
            alternative = self.grammar.rules[name][alt]

            if index == len(alternative):
                tree = DerivationTree(name, children)
                stack.pop()
                active.discard((name, start, end))
                if not stack:
                    return tree
                parent = stack[-1]
                parent[6].append(tree)
                parent[2] += 1
                parent[3] = end
                continue

            symbol = alternative[index]
            literal = self.literal(symbol, self.grammar)
            if literal is not None:
                # Chosen spans always fit, so the literal is there
                children.append(DerivationTree.leaf(literal))
                frame[2] += 1
                frame[3] = pos + len(literal)
                continue

            mids = [mid for mid in sorted(self._spans.get((symbol.name, pos), ()))
                    if mid <= end and (symbol.name, pos, mid) not in active
                    and self._fits(name, alt, index + 1, mid, end)]
            if not mids:
                return None

            mid = decide(mids)
            key = (symbol.name, pos, mid)
            active.add(key)
            stack.append([symbol.name, decide(sorted(self._completed[key])), 0, pos, pos, mid, []])

    def _fits(self, name: str, alt: int, index: int, start: int, end: int) -> bool:
        """Whether the symbols of an alternative from index on can cover text[start:end]."""
        key = (name, alt, index, start, end)
        if key in self._fit_memo:
            return self._fit_memo[key]

        alternative = self.grammar.rules[name][alt]
        if index == len(alternative):
            fits = start == end
        else:
            symbol = alternative[index]
            literal = self.literal(symbol, self.grammar)
            if literal is not None:
                stop = start + len(literal)
                fits = (stop <= end and self._text.startswith(literal, start)
                        and self._fits(name, alt, index + 1, stop, end))
            else:
                fits = any(mid <= end and self._fits(name, alt, index + 1, mid, end)
                           for mid in self._spans.get((symbol.name, start), ()))

        self._fit_memo[key] = fits
        return fits
