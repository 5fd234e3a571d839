"""Token-level discrepancy alignment between a sentence and its machine translation."""
from __future__ import annotations

import re
from typing import Iterator, List, Sequence, Tuple

TOKEN_PATTERN = re.compile(r"\w+|[^\w\s]")


def tokenize(sentence: str) -> List[str]:
    if not sentence:
        return []
    return TOKEN_PATTERN.findall(sentence)


def is_candidate_token(token: str) -> bool:
    """Punctuation and plain numbers are alignment anchors, never dictionary entries."""
    if not token:
        return False
    if token.isnumeric():
        return False
    return any(char.isalpha() for char in token)


def lcs_anchors(source: Sequence[str], target: Sequence[str]) -> List[Tuple[int, int]]:
    """Index pairs of a longest common subsequence of the two token lists."""
    n, m = len(source), len(target)
    # lengths[i][j] is the LCS length of source[i:] and target[j:].
    lengths = [[0] * (m + 1) for _ in range(n + 1)]
    for i in range(n - 1, -1, -1):
        row, below = lengths[i], lengths[i + 1]
        for j in range(m - 1, -1, -1):
            if source[i] == target[j]:
                row[j] = below[j + 1] + 1
            else:
                row[j] = max(below[j], row[j + 1])

    anchors: List[Tuple[int, int]] = []
    i = j = 0
    while i < n and j < m:
        if source[i] == target[j]:
            anchors.append((i, j))
            i += 1
            j += 1
        elif lengths[i + 1][j] >= lengths[i][j + 1]:
            i += 1
        else:
            j += 1
    return anchors


def token_discrepancy(source: str, translation: str) -> Iterator[Tuple[str, str]]:
    """Yield (source_token, target_token) for every clean one-to-one substitution.

    Gaps between LCS anchors of unequal length are insertions or deletions in
    disguise and are dropped rather than guessed.
    """
    source_tokens = tokenize(source)
    target_tokens = tokenize(translation)
    if not source_tokens or not target_tokens:
        return
    previous_i = previous_j = -1
    for i, j in lcs_anchors(source_tokens, target_tokens) + [(len(source_tokens), len(target_tokens))]:
        source_gap = source_tokens[previous_i + 1 : i]
        target_gap = target_tokens[previous_j + 1 : j]
        previous_i, previous_j = i, j
        if not source_gap or len(source_gap) != len(target_gap):
            continue
        for src, tgt in zip(source_gap, target_gap):
            if src == tgt:
                continue
            if not (is_candidate_token(src) and is_candidate_token(tgt)):
                continue
            yield src, tgt
