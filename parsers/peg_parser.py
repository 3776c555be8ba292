"""
PEG Parser

Greedy recognizer: the first alternative that matches wins and is never
revisited. Results are memoized per (symbol, position).
"""

import logging
from typing import Dict, Iterator, Optional, Set, Tuple

from grammar.grammar import Grammar, GrammarError, Symbol
from grammar.derivation_tree import DerivationTree
from .base import NoParseError, Parser


logger = logging.getLogger("treefuzz.parsers.peg")

Result = Tuple[int, Optional[DerivationTree]]


class PEGParser(Parser):
    """
    Packrat parser interpreting the grammar as a parsing expression grammar.

    Alternatives are ordered choices. Because a committed choice is never
    undone, PEG parsing is unambiguous and may reject strings the same
    grammar accepts as a CFG (e.g. <a> ::= "x" | "x" "y" on "xy").
    Left-recursive grammars are rejected.
    """

    def __init__(self, grammar: Grammar, start_symbol: Optional[str] = None):
        super().__init__(grammar, start_symbol)

        left = grammar.left_recursive()
        if left:
            names = ", ".join(f"<{n}>" for n in sorted(left))
            raise GrammarError(f"PEG parser cannot handle left-recursive rules: {names}")

        self._memo: Dict[Tuple[str, int], Result] = {}
        self._text = ""
        self._furthest = 0
        self._expected: Set[str] = set()

    def parse_prefix(self, text: str, start_symbol: Optional[str] = None) -> Result:
        """
        Parse the longest prefix the greedy strategy accepts.

        Returns:
            (end position, tree), or (-1, None) if nothing matches
        """
        self._text = text
        self._memo = {}
        self._furthest = 0
        self._expected = set()

        symbol = start_symbol or self.start_symbol
        if not self.grammar.is_defined(symbol):
            raise GrammarError(f"Start symbol <{symbol}> is not defined")

        end, tree = self._unify_symbol(Symbol.nt(symbol), 0)
        self.logger.debug(f"Parsed prefix of length {end} from <{symbol}>")
        return end, tree

    def parse_all(self, text: str, start_symbol: Optional[str] = None) -> Iterator[DerivationTree]:
        end, tree = self.parse_prefix(text, start_symbol)
        if tree is not None and end == len(text):
            yield tree

    def parse(self, text: str, start_symbol: Optional[str] = None) -> DerivationTree:
        end, tree = self.parse_prefix(text, start_symbol)
        if tree is not None and end == len(text):
            return tree

        position = max(self._furthest, end)
        if tree is not None and end >= self._furthest:
            message = f"Unconsumed input at position {end}"
        else:
            message = f"Syntax error at position {position}"
        raise NoParseError(message, position, self._expected_at(position))

    def _expected_at(self, position: int) -> Set[str]:
        return self._expected if position == self._furthest else set()

    def _fail(self, position: int, literal: str):
        if position > self._furthest:
            self._furthest = position
            self._expected = set()
        if position == self._furthest:
            self._expected.add(literal)

    def _unify_symbol(self, symbol: Symbol, position: int) -> Result:
        literal = self.literal(symbol, self.grammar)
        if literal is not None:
            if self._text.startswith(literal, position):
                return position + len(literal), DerivationTree.leaf(literal)
            self._fail(position, literal)
            return -1, None
        return self._unify_rule(symbol.name, position)

    def _unify_rule(self, name: str, position: int) -> Result:
        """
        Match rule name at position.

        Repetition helpers nest once per repeated element, so rule
        applications are kept on an explicit stack of frames
        [name, start, alt, index, pos, children] rather than the call stack.
        """
        if (name, position) in self._memo:
            return self._memo[(name, position)]

        stack = [[name, position, 0, 0, position, []]]
        returned: Optional[Result] = None
        while stack:
            frame = stack[-1]
            name, start, alt, index, pos, children = frame
            alternatives = self.grammar.alternatives(name)

            if returned is not None:
                end, tree = returned
                returned = None
                if tree is None:
                    self._next_alternative(frame)
                else:
                    children.append(tree)
                    frame[3] += 1
                    frame[4] = end
                continue

            if alt == len(alternatives):
                result: Result = (-1, None)
            elif index == len(alternatives[alt]):
                result = (pos, DerivationTree(name, children))
            else:
                symbol = alternatives[alt][index]
                literal = self.literal(symbol, self.grammar)
                if literal is None:
                    key = (symbol.name, pos)
                    if key in self._memo:
                        returned = self._memo[key]
                    else:
                        stack.append([symbol.name, pos, 0, 0, pos, []])
                elif self._text.startswith(literal, pos):
                    children.append(DerivationTree.leaf(literal))
                    frame[3] += 1
                    frame[4] = pos + len(literal)
                else:
                    self._fail(pos, literal)
                    self._next_alternative(frame)
                continue

            self._memo[(name, start)] = result
            stack.pop()
            returned = result

        return returned

    @staticmethod
    def _next_alternative(frame: list):
        frame[2] += 1
        frame[3] = 0
        frame[4] = frame[1]
        frame[5] = []
