"""
Built-in Grammars

Pre-defined grammars for common input formats.
"""

import os
import json
import logging
from typing import List, Optional

from .grammar import Grammar, GrammarError
from .grammar_parser import GrammarParser


logger = logging.getLogger("treefuzz.grammar.builtin")


class BuiltinGrammars:
    """Collection of built-in grammar specifications."""

    @staticmethod
    def get_json_grammar() -> str:
        """Get JSON grammar (simplified)."""
        return """
        <json> ::= <object> | <array>
        <object> ::= "{" [<members>] "}"
        <members> ::= <pair> {"," <pair>}
        <pair> ::= <string> ":" <value>
        <array> ::= "[" [<elements>] "]"
        <elements> ::= <value> {"," <value>}
        <value> ::= <string> | <number> | <object> | <array> | "true" | "false" | "null"
        <string> ::= '"' {<char>} '"'
        <number> ::= ["-"] <digits> ["." <digits>]
        <digits> ::= <digit> {<digit>}
        <digit> ::= "0" | "1" | "2" | "3" | "4" | "5" | "6" | "7" | "8" | "9"
        <char> ::= "a" | "b" | "c" | "d" | "e" | "f" | "g" | "h" | "i" | "j" | "k" | "l" | "m" | "n" | "o" | "p" | "q" | "r" | "s" | "t" | "u" | "v" | "w" | "x" | "y" | "z" | "A" | "B" | "C" | "X" | "Y" | "Z" | "0" | "1" | "2" | " " | "_"
        """

    @staticmethod
    def get_sql_grammar() -> str:
        """Get SQL grammar (simplified SELECT statements)."""
        return """
        <query> ::= "SELECT " <columns> " FROM " <table> [<where>] [<order>]
        <columns> ::= "*" | <column> {", " <column>}
        <column> ::= <identifier>
        <table> ::= <identifier>
        <where> ::= " WHERE " <condition>
        <condition> ::= <column> " " <operator> " " <value>
        <operator> ::= ">=" | "<=" | "!=" | "=" | ">" | "<" | "LIKE"
        <value> ::= <number> | <string>
        <order> ::= " ORDER BY " <column> [<direction>]
        <direction> ::= " ASC" | " DESC"
        <identifier> ::= <letter> {<letter_or_digit>}
        <string> ::= "'" {<char>} "'"
        <number> ::= <digit> {<digit>}
        <letter> ::= "a" | "b" | "c" | "d" | "e" | "f" | "x" | "y" | "z"
        <letter_or_digit> ::= <letter> | <digit>
        <digit> ::= "0" | "1" | "2" | "3" | "4" | "5" | "6" | "7" | "8" | "9"
        <char> ::= "a" | "b" | "c" | "x" | "y" | "z" | "0" | "1" | " "
        """

    @staticmethod
    def get_url_grammar() -> str:
        """Get URL grammar."""
        return """
        <url> ::= <scheme> "://" <host> [":" <port>] [<path>] [<query>] [<fragment>]
        <scheme> ::= "https" | "http" | "ftp" | "file"
        <host> ::= <hostname>
        <hostname> ::= <label> {"." <label>}
        <label> ::= <letter> {<letter_or_digit>}
        <port> ::= <digit> {<digit>}
        <path> ::= "/" {<segment>}
        <segment> ::= <letter_or_digit> {<letter_or_digit>} ["/"]
        <query> ::= "?" <param> {"&" <param>}
        <param> ::= <name> "=" <value>
        <fragment> ::= "#" {<letter_or_digit>}
        <name> ::= <letter> {<letter_or_digit>}
        <value> ::= {<letter_or_digit>}
        <letter> ::= "a" | "b" | "c" | "d" | "e" | "f" | "g" | "h" | "i" | "j" | "k" | "l" | "m" | "n" | "o" | "p" | "q" | "r" | "s" | "t" | "u" | "v" | "w" | "x" | "y" | "z"
        <letter_or_digit> ::= <letter> | <digit> | "_" | "-"
        <digit> ::= "0" | "1" | "2" | "3" | "4" | "5" | "6" | "7" | "8" | "9"
        """

    @staticmethod
    def get_arithmetic_grammar() -> str:
        """Get arithmetic expression grammar (left-recursive)."""
        return """
        <expr> ::= <term> | <expr> "+" <term> | <expr> "-" <term>
        <term> ::= <factor> | <term> "*" <factor> | <term> "/" <factor>
        <factor> ::= <number> | "(" <expr> ")"
        <number> ::= <digit> {<digit>}
        <digit> ::= "0" | "1" | "2" | "3" | "4" | "5" | "6" | "7" | "8" | "9"
        """

    @staticmethod
    def get_arithmetic_peg_grammar() -> str:
        """Get arithmetic expression grammar without left recursion."""
        return """
        <expr> ::= <term> {("+" | "-") <term>}
        <term> ::= <factor> {("*" | "/") <factor>}
        <factor> ::= <number> | "(" <expr> ")"
        <number> ::= <digit> {<digit>}
        <digit> ::= "0" | "1" | "2" | "3" | "4" | "5" | "6" | "7" | "8" | "9"
        """

    @staticmethod
    def get_ambiguous_grammar() -> str:
        """Get ambiguous expression grammar (no precedence, no associativity)."""
        return """
        <expr> ::= <expr> "+" <expr> | <expr> "*" <expr> | <digit>
        <digit> ::= "0" | "1" | "2" | "3" | "4" | "5" | "6" | "7" | "8" | "9"
        """

    @staticmethod
    def get_grammar(name: str) -> str:
        """
        Get grammar by name.

        Args:
            name: Grammar name (see list_grammars())

        Returns:
            Grammar text
        """
        grammars = {
            'json': BuiltinGrammars.get_json_grammar,
            'sql': BuiltinGrammars.get_sql_grammar,
            'url': BuiltinGrammars.get_url_grammar,
            'arithmetic': BuiltinGrammars.get_arithmetic_grammar,
            'arithmetic_peg': BuiltinGrammars.get_arithmetic_peg_grammar,
            'ambiguous': BuiltinGrammars.get_ambiguous_grammar,
        }

        if name.lower() not in grammars:
            raise ValueError(f"Unknown grammar: {name}. Available: {list(grammars.keys())}")

        return grammars[name.lower()]()

    @staticmethod
    def load(name: str) -> Grammar:
        """Get a built-in grammar parsed into a Grammar."""
        return GrammarParser().parse(BuiltinGrammars.get_grammar(name))

    @staticmethod
    def list_grammars() -> List[str]:
        """List available built-in grammars."""
        return ['json', 'sql', 'url', 'arithmetic', 'arithmetic_peg', 'ambiguous']


def load_grammar(source: str, start_symbol: Optional[str] = None) -> Grammar:
    """
    Load a grammar from a built-in name or a file.

    Files ending in .json hold the dictionary form accepted by
    Grammar.from_dict(); any other file is BNF/EBNF text.

    Raises:
        GrammarError: If the source is neither a built-in nor a readable file
    """
    if source.lower() in BuiltinGrammars.list_grammars():
        grammar = BuiltinGrammars.load(source)
    else:
        path = os.path.expanduser(source)
        if not os.path.isfile(path):
            raise GrammarError(f"Unknown grammar '{source}': not a built-in grammar or a file")
        try:
            with open(path, "r") as f:
                text = f.read()
        except OSError as e:
            raise GrammarError(f"Failed to read grammar from {path}: {e}")

        if path.endswith(".json"):
            try:
                mapping = json.loads(text)
            except json.JSONDecodeError as e:
                raise GrammarError(f"Invalid JSON grammar in {path}: {e}")
            grammar = Grammar.from_dict(mapping)
        else:
            grammar = GrammarParser().parse(text)
        logger.info(f"Loaded grammar from {path}")

    if start_symbol:
        grammar.start_symbol = start_symbol.strip('<>')
    return grammar
