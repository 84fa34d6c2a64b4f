"""
Tokenizer shared by indexing and querying.
"""

from collections import Counter
from typing import List

MIN_TERM_LENGTH = 3


def normalize_token(token: str) -> str:
    """Lowercase a token and keep only its alphabetic characters."""
    return ''.join(ch for ch in token.lower() if ch.isalpha())


def tokenize(text: str) -> List[str]:
    """
    Split text into terms.

    A term is a whitespace-separated token, lowercased, stripped of every
    non-alphabetic character, and at least three characters long afterwards.
    "Don't" becomes "dont"; "R2-D2" becomes "rd" and is dropped.
    """
    if not text:
        return []
    terms = []
    for token in text.split():
        term = normalize_token(token)
        if len(term) >= MIN_TERM_LENGTH:
            terms.append(term)
    return terms


def count_terms(text: str) -> Counter:
    return Counter(tokenize(text))
