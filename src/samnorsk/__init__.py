"""samnorsk - Nynorsk/Bokmål dictionary induction through Apertium.

A sentence and its machine translation are diffed token by token; positions
where they diverge become candidate word pairs, which are counted over a
Wikipedia dump and filtered into a ranked dictionary.

Usage:
    samnorsk-dictionary -i nnwiki.json.gz -o nn-nb.csv -d nno-nob
    samnorsk-translate-wiki --nntrans nn-nb.jsonl --nbtrans nb-nn.jsonl
"""

from .align import token_discrepancy, tokenize
from .apertium import AlignmentMismatchError, ApertiumRunner, EngineInvocationError, TranslationError
from .counter import DictionaryEntry, TranslationCounter

__version__ = "0.1.0"

__all__ = [
    "AlignmentMismatchError",
    "ApertiumRunner",
    "DictionaryEntry",
    "EngineInvocationError",
    "TranslationCounter",
    "TranslationError",
    "token_discrepancy",
    "tokenize",
]
