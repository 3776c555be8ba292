"""
Grammar Parser

Parses BNF/EBNF grammar specifications into a Grammar.
"""

import logging
from typing import Dict, List, Optional, Tuple

from .grammar import Grammar, GrammarError, Symbol


logger = logging.getLogger("treefuzz.grammar.parser")

BRACKETS = {'[': ']', '{': '}', '(': ')'}


class GrammarParser:
    """
    Parses BNF/EBNF grammar specifications.

    Supported syntax:
    - BNF: <rule> ::= <production> | <alternative>
    - EBNF extensions: {repetition}, [optional], (grouping | alternatives)
    - Terminal strings: "literal" or 'literal' ("" is the empty string)
    - Comments: # comment (whole line or trailing)
    - Continuation lines starting with |

    EBNF constructs are lowered to plain BNF helper rules named
    <rule-opt-N>, <rule-rep-N> and <rule-grp-N>, so every parser only
    ever sees ordered alternatives of terminals and nonterminals.

    Example grammar:
        <json> ::= <object> | <array>
        <object> ::= "{" [<members>] "}"
        <members> ::= <pair> {"," <pair>}
        <pair> ::= <string> ":" <value>
        <array> ::= "[" [<value> {"," <value>}] "]"
        <value> ::= <string> | <number> | <object> | <array> | "true" | "false" | "null"
        <string> ::= '"' {<char>} '"'
        <number> ::= <digit> {<digit>}
        <digit> ::= "0" | "1" | "2" | "3" | "4" | "5" | "6" | "7" | "8" | "9"
        <char> ::= "a" | "b" | "c"  # simplified
    """

    def __init__(self):
        self.logger = logging.getLogger("treefuzz.grammar.parser")
        self.rules: Dict[str, List[List[Symbol]]] = {}
        self._helper_counts: Dict[str, int] = {}

    def parse(self, grammar_text: str, start_symbol: Optional[str] = None) -> Grammar:
        """
        Parse grammar text into a Grammar.

        Args:
            grammar_text: Grammar in BNF/EBNF format
            start_symbol: Starting rule (default: first rule)

        Returns:
            Parsed Grammar

        Raises:
            GrammarError: On malformed rule text
        """
        self.rules = {}
        self._helper_counts = {}

        current = None
        for lineno, raw_line in enumerate(grammar_text.split('\n'), 1):
            line = self._strip_comment(raw_line).strip()

            # Skip empty lines and comments
            if not line:
                continue

            try:
                if '::=' in line and self._defines_rule(line):
                    current = self._parse_rule(line)
                elif line.startswith('|'):
                    if current is None:
                        raise GrammarError("Continuation line before any rule")
                    self._add_alternatives(current, line[1:])
                else:
                    raise GrammarError(f"Expected '<rule> ::= ...', got {line!r}")
            except GrammarError as e:
                raise GrammarError(f"Line {lineno}: {e}") from e

        if start_symbol is not None:
            start_symbol = start_symbol.strip('<>').strip()

        grammar = Grammar(self.rules, start_symbol)
        self.logger.info(f"Parsed grammar with {len(grammar)} rules")
        return grammar

    @staticmethod
    def _defines_rule(line: str) -> bool:
        head = line.split('::=', 1)[0].strip()
        return head.startswith('<') and head.endswith('>')

    @staticmethod
    def _strip_comment(line: str) -> str:
        """Remove a # comment that is not inside a quoted terminal."""
        quote = None
        for i, char in enumerate(line):
            if quote:
                if char == quote:
                    quote = None
            elif char in ('"', "'"):
                quote = char
            elif char == '#':
                return line[:i]
        return line

    def _parse_rule(self, line: str) -> str:
        """Parse a single grammar rule, return its name."""
        parts = line.split('::=', 1)
        rule_name = parts[0].strip()
        productions_text = parts[1].strip()

        # Extract rule name (remove < >)
        rule_name = rule_name.strip('<>').strip()
        if not rule_name:
            raise GrammarError("Empty rule name")

        self.rules.setdefault(rule_name, [])
        self._add_alternatives(rule_name, productions_text)
        return rule_name

    def _add_alternatives(self, rule_name: str, productions_text: str):
        for production in self._parse_alternatives(productions_text):
            self.rules[rule_name].append(self._lower(rule_name, production))

    def _parse_alternatives(self, text: str) -> List[List[Dict]]:
        """Split on top-level | and parse each production."""
        return [self._parse_production(part) for part in self._split_alternatives(text)]

    def _split_alternatives(self, text: str) -> List[str]:
        parts = []
        depth = 0
        quote = None
        start = 0

        for i, char in enumerate(text):
            if quote:
                if char == quote:
                    quote = None
            elif char in ('"', "'"):
                quote = char
            elif char in BRACKETS:
                depth += 1
            elif char in BRACKETS.values():
                depth -= 1
            elif char == '|' and depth == 0:
                parts.append(text[start:i])
                start = i + 1

        parts.append(text[start:])
        return [p.strip() for p in parts]

    def _parse_production(self, prod_text: str) -> List[Dict]:
        """
        Parse a single production into a list of elements.

        Elements can be:
        - Terminal: {'type': 'terminal', 'value': 'literal'}
        - NonTerminal: {'type': 'nonterminal', 'name': 'rule_name'}
        - Optional: {'type': 'optional', 'alternatives': [[...], ...]}
        - Repetition: {'type': 'repetition', 'alternatives': [[...], ...]}
        - Group: {'type': 'group', 'alternatives': [[...], ...]}
        """
        elements = []
        i = 0

        while i < len(prod_text):
            char = prod_text[i]

            # Terminal string (quoted)
            if char in ('"', "'"):
                terminal, end_pos = self._parse_terminal(prod_text, i)
                elements.append(terminal)
                i = end_pos

            # Optional [...], repetition {...}, group (...)
            elif char in BRACKETS:
                element, end_pos = self._parse_bracketed(prod_text, i)
                elements.append(element)
                i = end_pos

            # NonTerminal <rule_name>
            elif char == '<':
                nonterminal, end_pos = self._parse_nonterminal(prod_text, i)
                elements.append(nonterminal)
                i = end_pos

            # Skip whitespace
            elif char.isspace():
                i += 1

            else:
                raise GrammarError(f"Unexpected character {char!r} at position {i} in {prod_text!r}")

        return elements

    def _parse_terminal(self, text: str, start: int) -> Tuple[Dict, int]:
        """Parse terminal string."""
        quote_char = text[start]
        end = text.find(quote_char, start + 1)

        if end == -1:
            raise GrammarError(f"Unclosed quote at position {start} in {text!r}")

        value = text[start + 1:end]
        return {'type': 'terminal', 'value': value}, end + 1

    def _parse_nonterminal(self, text: str, start: int) -> Tuple[Dict, int]:
        """Parse non-terminal <rule_name>."""
        end = text.find('>', start)

        if end == -1:
            raise GrammarError(f"Unclosed non-terminal at position {start} in {text!r}")

        name = text[start + 1:end].strip()
        if not name:
            raise GrammarError(f"Empty non-terminal at position {start}")
        return {'type': 'nonterminal', 'name': name}, end + 1

    def _parse_bracketed(self, text: str, start: int) -> Tuple[Dict, int]:
        """Parse [...], {...} or (...)."""
        open_char = text[start]
        close_char = BRACKETS[open_char]
        end = self._find_matching_bracket(text, start, open_char, close_char)
        if end >= len(text):
            raise GrammarError(f"Unclosed '{open_char}' at position {start} in {text!r}")

        kind = {'[': 'optional', '{': 'repetition', '(': 'group'}[open_char]
        alternatives = self._parse_alternatives(text[start + 1:end])
        return {'type': kind, 'alternatives': alternatives}, end + 1

    def _find_matching_bracket(self, text: str, start: int, open_char: str, close_char: str) -> int:
        """Find matching closing bracket."""
        count = 1
        i = start + 1
        quote = None

        while i < len(text) and count > 0:
            char = text[i]
            if quote:
                if char == quote:
                    quote = None
            elif char in ('"', "'"):
                quote = char
            elif char == open_char:
                count += 1
            elif char == close_char:
                count -= 1
            i += 1

        return i - 1 if count == 0 else len(text)

    def _lower(self, rule_name: str, production: List[Dict]) -> List[Symbol]:
        """Turn parsed elements into symbols, adding helper rules for EBNF."""
        symbols = []

        for element in production:
            kind = element['type']
            if kind == 'terminal':
                symbols.append(Symbol.t(element['value']))
            elif kind == 'nonterminal':
                symbols.append(Symbol.nt(element['name']))
            else:
                symbols.append(Symbol.nt(self._add_helper(rule_name, kind, element['alternatives'])))

        return symbols

    def _add_helper(self, rule_name: str, kind: str, alternatives: List[List[Dict]]) -> str:
        suffix = {'optional': 'opt', 'repetition': 'rep', 'group': 'grp'}[kind]
        self._helper_counts[rule_name] = self._helper_counts.get(rule_name, 0) + 1
        helper = f"{rule_name}-{suffix}-{self._helper_counts[rule_name]}"

        self.rules[helper] = []
        for alt in alternatives:
            lowered = self._lower(rule_name, alt)
            if kind == 'repetition':
                # Right recursion keeps the helper usable by greedy parsers
                lowered = lowered + [Symbol.nt(helper)]
            self.rules[helper].append(lowered)

        if kind in ('optional', 'repetition'):
            self.rules[helper].append([])

        return helper

    def get_rule(self, rule_name: str) -> Optional[List[List[Symbol]]]:
        """Get productions for a rule."""
        return self.rules.get(rule_name)

    def get_all_rules(self) -> Dict[str, List[List[Symbol]]]:
        """Get all rules."""
        return self.rules


# Convenience function
def parse_grammar(grammar_text: str, start_symbol: Optional[str] = None) -> Grammar:
    """
    Quick function to parse grammar.

    Args:
        grammar_text: Grammar in BNF/EBNF format
        start_symbol: Starting rule (default: first rule)

    Returns:
        Parsed Grammar

    Example:
        >>> grammar = parse_grammar('''
        ... <expr> ::= <term> | <expr> "+" <term>
        ... <term> ::= <number> | "(" <expr> ")"
        ... <number> ::= "0" | "1" | "2"
        ... ''')
    """
    parser = GrammarParser()
    return parser.parse(grammar_text, start_symbol)
