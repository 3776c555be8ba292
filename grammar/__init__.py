"""
treefuzz Grammars

Grammar model, derivation trees, generation and tree mutation.

Features:
- Grammar parser (BNF/EBNF support, lowered to plain BNF)
- Grammar analysis (closure, nullable and left-recursive rules)
- Derivation tree generation with bounded depth
- Tree mutation constrained by grammar symbol identity
- Built-in grammars (JSON, SQL, URL, arithmetic)
"""

from .grammar import Grammar, GrammarError, Symbol
from .grammar_parser import GrammarParser, parse_grammar
from .derivation_tree import DerivationTree
from .generator import GrammarGenerator
from .mutator import TreeMutator
from .builtin_grammars import BuiltinGrammars, load_grammar

__all__ = ['Grammar', 'GrammarError', 'Symbol', 'GrammarParser', 'parse_grammar',
           'DerivationTree', 'GrammarGenerator', 'TreeMutator', 'BuiltinGrammars',
           'load_grammar']
