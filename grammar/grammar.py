"""
Grammar Model

Context-free grammar representation shared by the parsers, the generator
and the tree mutator.
"""

import re
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set


logger = logging.getLogger("treefuzz.grammar")

RE_NONTERMINAL = re.compile(r'(<[^<> ]*>)')


class GrammarError(Exception):
    """Raised for malformed grammars or grammars unusable by a strategy."""
    pass


@dataclass(frozen=True)
class Symbol:
    """A grammar symbol: a literal terminal or a reference to a rule."""
    name: str
    terminal: bool = False

    @classmethod
    def t(cls, text: str) -> "Symbol":
        return cls(text, True)

    @classmethod
    def nt(cls, name: str) -> "Symbol":
        return cls(name, False)

    def __str__(self):
        if self.terminal:
            quote = "'" if '"' in self.name else '"'
            return f"{quote}{self.name}{quote}"
        return f"<{self.name}>"


def is_nonterminal(text: str) -> bool:
    return RE_NONTERMINAL.fullmatch(text) is not None


class Grammar:
    """
    Ordered mapping of nonterminal names to alternatives.

    Each alternative is an ordered list of Symbols. An empty alternative
    derives the empty string. The start symbol defaults to the first rule.
    """

    def __init__(self, rules: Dict[str, List[List[Symbol]]], start_symbol: Optional[str] = None):
        self.rules: Dict[str, List[List[Symbol]]] = {}
        for name, alternatives in rules.items():
            self.rules[name] = [self._clean(alt) for alt in alternatives]

        if start_symbol is None:
            start_symbol = next(iter(self.rules), None)
        self.start_symbol = start_symbol

        self._nullable: Optional[Set[str]] = None

    @staticmethod
    def _clean(alternative: Iterable[Symbol]) -> List[Symbol]:
        # Empty literals carry no text; dropping them keeps every terminal non-empty
        return [s for s in alternative if not (s.terminal and s.name == "")]

    @classmethod
    def from_dict(cls, mapping: Dict[str, List[str]], start_symbol: Optional[str] = None) -> "Grammar":
        """
        Build a grammar from the dictionary form used by fuzzing books.

        Example:
            >>> Grammar.from_dict({
            ...     "<start>": ["<digit><start>", "<digit>"],
            ...     "<digit>": ["0", "1"],
            ... })
        """
        rules = {}
        for key, expansions in mapping.items():
            if not is_nonterminal(key):
                raise GrammarError(f"Rule key {key!r} is not of the form <name>")
            alternatives = []
            for expansion in expansions:
                if not isinstance(expansion, str):
                    raise GrammarError(f"Expansion of {key} must be a string, got {type(expansion).__name__}")
                alternative = []
                for part in RE_NONTERMINAL.split(expansion):
                    if not part:
                        continue
                    if is_nonterminal(part):
                        alternative.append(Symbol.nt(part[1:-1]))
                    else:
                        alternative.append(Symbol.t(part))
                alternatives.append(alternative)
            rules[key[1:-1]] = alternatives

        if start_symbol is not None and is_nonterminal(start_symbol):
            start_symbol = start_symbol[1:-1]
        return cls(rules, start_symbol)

    def alternatives(self, name: str) -> List[List[Symbol]]:
        """Get alternatives for a rule (empty list if undefined)."""
        return self.rules.get(name, [])

    def is_defined(self, name: str) -> bool:
        return name in self.rules

    def nonterminals(self) -> Set[str]:
        """All nonterminal names, defined or referenced."""
        names = set(self.rules)
        for alternatives in self.rules.values():
            for alt in alternatives:
                names.update(s.name for s in alt if not s.terminal)
        return names

    def terminals(self) -> Set[str]:
        literals = set()
        for alternatives in self.rules.values():
            for alt in alternatives:
                literals.update(s.name for s in alt if s.terminal)
        return literals

    def undefined_nonterminals(self) -> Set[str]:
        return self.nonterminals() - set(self.rules)

    def reachable(self, start_symbol: Optional[str] = None) -> Set[str]:
        """Nonterminals reachable from the start symbol."""
        start = start_symbol or self.start_symbol
        seen = set()
        stack = [start] if start else []

        while stack:
            name = stack.pop()
            if name in seen:
                continue
            seen.add(name)
            for alt in self.rules.get(name, []):
                for symbol in alt:
                    if not symbol.terminal and symbol.name not in seen:
                        stack.append(symbol.name)

        return seen

    def validate(self, allow_undefined: bool = False) -> bool:
        """
        Check the grammar for closure.

        Args:
            allow_undefined: Treat undefined nonterminals as terminal-like
                symbols instead of errors

        Returns:
            True if grammar is valid

        Raises:
            GrammarError: If the start symbol or a referenced rule is missing
        """
        if not self.rules:
            raise GrammarError("Grammar has no rules")

        if self.start_symbol not in self.rules:
            raise GrammarError(f"Start symbol <{self.start_symbol}> is not defined")

        undefined = self.undefined_nonterminals()
        if undefined:
            names = ", ".join(f"<{n}>" for n in sorted(undefined))
            if not allow_undefined:
                raise GrammarError(f"Undefined non-terminals: {names}")
            logger.debug(f"Treating undefined non-terminals as literals: {names}")

        unreachable = set(self.rules) - self.reachable()
        for name in sorted(unreachable):
            logger.warning(f"Unreachable rule: <{name}>")

        return True

    def nullable(self) -> Set[str]:
        """Nonterminals that can derive the empty string."""
        if self._nullable is not None:
            return self._nullable

        nullable: Set[str] = set()
        changed = True
        while changed:
            changed = False
            for name, alternatives in self.rules.items():
                if name in nullable:
                    continue
                for alt in alternatives:
                    if all(not s.terminal and s.name in nullable for s in alt):
                        nullable.add(name)
                        changed = True
                        break

        self._nullable = nullable
        return nullable

    def left_recursive(self) -> Set[str]:
        """
        Nonterminals A with A =>+ A ...

        An alternative "begins with" every nonterminal in its prefix up to
        and including the first symbol that cannot derive empty.
        """
        nullable = self.nullable()
        leading: Dict[str, Set[str]] = {name: set() for name in self.rules}

        for name, alternatives in self.rules.items():
            for alt in alternatives:
                for symbol in alt:
                    if symbol.terminal:
                        break
                    leading[name].add(symbol.name)
                    if symbol.name not in nullable:
                        break

        recursive = set()
        for name in self.rules:
            seen = set()
            stack = list(leading[name])
            while stack:
                current = stack.pop()
                if current == name:
                    recursive.add(name)
                    break
                if current in seen:
                    continue
                seen.add(current)
                stack.extend(leading.get(current, ()))

        return recursive

    def copy(self) -> "Grammar":
        return Grammar({name: [list(alt) for alt in alts] for name, alts in self.rules.items()},
                       self.start_symbol)

    def to_text(self) -> str:
        """Render the grammar as BNF text readable by GrammarParser."""
        lines = []
        for name, alternatives in self.rules.items():
            rendered = []
            for alt in alternatives:
                rendered.append(" ".join(str(s) for s in alt) if alt else '""')
            lines.append(f"<{name}> ::= " + " | ".join(rendered))
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, List[str]]:
        """Render the grammar in dictionary form (inverse of from_dict)."""
        return {
            f"<{name}>": ["".join(s.name if s.terminal else f"<{s.name}>" for s in alt)
                          for alt in alternatives]
            for name, alternatives in self.rules.items()
        }

    def __contains__(self, name: str) -> bool:
        return name in self.rules

    def __len__(self):
        return len(self.rules)

    def __eq__(self, other):
        if not isinstance(other, Grammar):
            return NotImplemented
        return self.rules == other.rules and self.start_symbol == other.start_symbol

    def __repr__(self):
        return f"Grammar(rules={len(self.rules)}, start=<{self.start_symbol}>)"
