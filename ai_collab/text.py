"""Token-set similarity and clustering shared by every strategy and the synthesis engine.

All functions are pure. Similarity is Jaccard over lowercase word sets, so every
score lands in [0, 1].
"""

import re
import string
from collections import Counter

# Two responses at or above this similarity describe the same underlying answer.
CLUSTER_THRESHOLD = 0.6
# Two sentences at or above this similarity make the same point.
SENTENCE_MATCH_THRESHOLD = 0.7

_SENTENCE_SPLIT = re.compile(r"[.!?]+")


def tokenize(text: str) -> set[str]:
    """Lowercase, split on whitespace, strip edge punctuation, drop empties."""
    tokens = (word.strip(string.punctuation) for word in text.lower().split())
    return {token for token in tokens if token}


def words(text: str, min_length: int = 1) -> list[str]:
    """Ordered lowercase words longer than ``min_length - 1`` characters."""
    out = []
    for word in text.lower().split():
        word = word.strip(string.punctuation)
        if len(word) >= min_length:
            out.append(word)
    return out


def similarity(a: str, b: str) -> float:
    """Jaccard similarity of the two texts' token sets.

    Two empty texts are identical (1.0); an empty and a non-empty text share
    nothing (0.0).
    """
    tokens_a, tokens_b = tokenize(a), tokenize(b)
    if not tokens_a and not tokens_b:
        return 1.0
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


def similarity_matrix(texts: list[str]) -> list[list[float]]:
    n = len(texts)
    matrix = [[1.0] * n for _ in range(n)]
    for i in range(n):
        for j in range(i + 1, n):
            matrix[i][j] = matrix[j][i] = similarity(texts[i], texts[j])
    return matrix


def mean_pairwise_similarity(texts: list[str]) -> float:
    """Mean similarity over all unordered pairs. Fewer than two texts → 1.0."""
    if len(texts) < 2:
        return 1.0
    total = 0.0
    pairs = 0
    for i in range(len(texts)):
        for j in range(i + 1, len(texts)):
            total += similarity(texts[i], texts[j])
            pairs += 1
    return total / pairs


def centrality(texts: list[str]) -> list[float]:
    """Summed similarity of each text to every other text."""
    matrix = similarity_matrix(texts)
    return [sum(row) - 1.0 for row in matrix]


def argmax(scores: list[float]) -> int:
    """Index of the highest score; ties go to the earliest index."""
    best = 0
    for i, score in enumerate(scores):
        if score > scores[best]:
            best = i
    return best


def cluster(texts: list[str], threshold: float = CLUSTER_THRESHOLD) -> list[list[int]]:
    """Group texts into single-link clusters by similarity.

    Two texts share a cluster when a chain of pairs with similarity >= threshold
    connects them, so membership does not depend on input order. Returns lists
    of indices; each list is ascending and clusters are ordered by their
    smallest index.
    """
    parent = list(range(len(texts)))

    def find(i: int) -> int:
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    for i in range(len(texts)):
        for j in range(i + 1, len(texts)):
            if similarity(texts[i], texts[j]) >= threshold:
                root_i, root_j = find(i), find(j)
                if root_i != root_j:
                    parent[max(root_i, root_j)] = min(root_i, root_j)

    groups: dict[int, list[int]] = {}
    for i in range(len(texts)):
        groups.setdefault(find(i), []).append(i)
    return sorted(groups.values(), key=lambda members: members[0])


def split_sentences(text: str, min_length: int = 10) -> list[str]:
    """Split on sentence terminators; keep stripped pieces longer than min_length."""
    pieces = (piece.strip() for piece in _SENTENCE_SPLIT.split(text))
    return [piece for piece in pieces if len(piece) > min_length]


def extract_keywords(text: str, min_length: int = 5, limit: int = 20) -> list[str]:
    """First ``limit`` distinct words of at least ``min_length`` characters."""
    seen: list[str] = []
    for word in words(text, min_length):
        if word not in seen:
            seen.append(word)
            if len(seen) == limit:
                break
    return seen


def top_terms(texts: list[str], min_length: int = 5, limit: int = 10) -> list[str]:
    """Most frequent words across texts. Ties keep first-seen order."""
    counts: Counter[str] = Counter()
    for text in texts:
        counts.update(words(text, min_length))
    return [word for word, _ in counts.most_common(limit)]


def new_terms(previous: str, current: str, min_length: int = 4) -> list[str]:
    """Distinct words in ``current`` that ``previous`` never used."""
    known = set(words(previous, min_length))
    fresh: list[str] = []
    for word in words(current, min_length):
        if word not in known and word not in fresh:
            fresh.append(word)
    return fresh


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))
