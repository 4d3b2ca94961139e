"""Folder name similarity scoring for PackFuse.

This module provides the SimilarityScorer class which combines five
independent signals into one weighted similarity score between two
folder names:

    1. Token overlap (35%) - Jaccard index of singularized token sets
    2. Levenshtein (25%) - normalized edit similarity of the normalized names
    3. Permutation (20%) - same tokens in a different order
    4. Phonetic (10%) - positional match of four-character Soundex codes
    5. Contextual (10%) - same parent, same depth, shared siblings

Every signal is symmetric, so ``score(a, b) == score(b, a)``.

Example:
    >>> from packfuse.matching import SimilarityScorer
    >>> scorer = SimilarityScorer()
    >>> scorer.score("Kicks", "Kick").overall
    1.0
    >>> scorer.are_similar("Kick_Drums", "kick drum")
    True
"""

import re
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from rapidfuzz.distance import Levenshtein

from packfuse.models import PathContext

SIMILAR_THRESHOLD = 0.65
STRONG_SIMILAR_THRESHOLD = 0.80

WEIGHTS = {
    "token_overlap": 0.35,
    "levenshtein": 0.25,
    "permutation": 0.20,
    "phonetic": 0.10,
    "contextual": 0.10,
}

_SOUNDEX_CODES = {
    **dict.fromkeys("bfpv", "1"),
    **dict.fromkeys("cgjkqsxz", "2"),
    **dict.fromkeys("dt", "3"),
    "l": "4",
    **dict.fromkeys("mn", "5"),
    "r": "6",
}


@dataclass(frozen=True)
class SimilarityScore:
    """Per-signal breakdown of a similarity comparison. All values in [0, 1]."""
    token_overlap: float
    levenshtein: float
    permutation: float
    phonetic: float
    contextual: float
    overall: float


PERFECT_SCORE = SimilarityScore(1.0, 1.0, 1.0, 1.0, 1.0, 1.0)


def singularize(word: str) -> str:
    """Strip a simple trailing plural 's' ("kicks" -> "kick", "bass" unchanged)."""
    if len(word) > 2 and word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


class SimilarityScorer:
    """Scores folder-name similarity using several weighted signals.

    Attributes:
        similar_threshold: Overall score at or above which two names are
            clustering candidates.
        strong_threshold: Overall score at or above which two names may be
            merged without supervision.
    """

    _SEPARATORS = re.compile(r"[_\-\s]+")
    _TOKEN_SEPARATORS = re.compile(r"[_\-.\s]+")
    _CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
    _DIGITS = re.compile(r"\d+")
    _NON_LETTERS = re.compile(r"[^a-z]")

    def __init__(
        self,
        similar_threshold: float = SIMILAR_THRESHOLD,
        strong_threshold: float = STRONG_SIMILAR_THRESHOLD,
    ) -> None:
        """Initialize the scorer.

        Raises:
            ValueError: If a threshold is outside [0, 1] or the strong
                threshold is below the plain one.
        """
        for name, value in (("similar_threshold", similar_threshold),
                            ("strong_threshold", strong_threshold)):
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0.0 and 1.0, got {value}")
        if strong_threshold < similar_threshold:
            raise ValueError("strong_threshold must be >= similar_threshold")
        self.similar_threshold = similar_threshold
        self.strong_threshold = strong_threshold

    def score(
        self,
        name_a: str,
        name_b: str,
        context_a: Optional[PathContext] = None,
        context_b: Optional[PathContext] = None,
    ) -> SimilarityScore:
        """Compute the similarity breakdown of two folder names.

        Names whose normalized forms are identical short-circuit to a
        perfect score.

        Args:
            name_a: First folder name.
            name_b: Second folder name.
            context_a: Optional position of the first folder in its tree.
            context_b: Optional position of the second folder in its tree.

        Returns:
            SimilarityScore with the five signals and the weighted overall.

        Example:
            >>> SimilarityScorer().score("Drum Loops", "Loops_Drum").permutation
            1.0
        """
        norm_a = self.normalize(name_a)
        norm_b = self.normalize(name_b)

        if norm_a == norm_b:
            return PERFECT_SCORE

        tokens_a = self.tokenize(name_a)
        tokens_b = self.tokenize(name_b)

        token_overlap = self._token_overlap(tokens_a, tokens_b)
        levenshtein = Levenshtein.normalized_similarity(norm_a, norm_b)
        permutation = self._permutation(tokens_a, tokens_b)
        phonetic = self._phonetic(norm_a, norm_b)
        contextual = self._contextual(context_a, context_b)

        overall = (
            WEIGHTS["token_overlap"] * token_overlap
            + WEIGHTS["levenshtein"] * levenshtein
            + WEIGHTS["permutation"] * permutation
            + WEIGHTS["phonetic"] * phonetic
            + WEIGHTS["contextual"] * contextual
        )

        return SimilarityScore(
            token_overlap=token_overlap,
            levenshtein=levenshtein,
            permutation=permutation,
            phonetic=phonetic,
            contextual=contextual,
            overall=min(1.0, overall),
        )

    def are_similar(
        self,
        name_a: str,
        name_b: str,
        context_a: Optional[PathContext] = None,
        context_b: Optional[PathContext] = None,
    ) -> bool:
        """True if the overall score reaches the clustering threshold (0.65)."""
        return self.score(name_a, name_b, context_a, context_b).overall >= self.similar_threshold

    def are_strongly_similar(
        self,
        name_a: str,
        name_b: str,
        context_a: Optional[PathContext] = None,
        context_b: Optional[PathContext] = None,
    ) -> bool:
        """True if the overall score reaches the auto-merge threshold (0.80)."""
        return self.score(name_a, name_b, context_a, context_b).overall >= self.strong_threshold

    def normalize(self, name: str) -> str:
        """Lowercase, collapse separators to single spaces and strip simple plurals.

        Example:
            >>> SimilarityScorer().normalize("Bass__Loops-")
            'bass loop'
        """
        collapsed = self._SEPARATORS.sub(" ", name.lower()).strip()
        return " ".join(singularize(word) for word in collapsed.split(" ") if word)

    def tokenize(self, name: str) -> List[str]:
        """Split on separators and camelCase boundaries, singularize and deduplicate.

        Order of first appearance is preserved.

        Example:
            >>> SimilarityScorer().tokenize("DrumLoops_drum-Kit")
            ['drum', 'loop', 'kit']
        """
        split = self._CAMEL_BOUNDARY.sub(r"\1 \2", name)
        raw_tokens = [t for t in self._TOKEN_SEPARATORS.split(split.lower()) if t]
        tokens: List[str] = []
        for token in raw_tokens:
            token = singularize(token)
            if token not in tokens:
                tokens.append(token)
        return tokens

    def soundex(self, text: str) -> str:
        """Four-character Soundex-style code; '0000' for text without letters."""
        letters = self._NON_LETTERS.sub("", text.lower())
        if not letters:
            return "0000"

        code = letters[0].upper()
        previous = _SOUNDEX_CODES.get(letters[0], "0")
        for ch in letters[1:]:
            if len(code) >= 4:
                break
            current = _SOUNDEX_CODES.get(ch, "0")
            if current != "0" and current != previous:
                code += current
                previous = current

        return code.ljust(4, "0")

    def detect_common_patterns(self, names: List[str]) -> Dict[str, List[str]]:
        """Group folder names that differ only by plural, separator or numbering.

        Only groups with more than one member are returned. Keys are prefixed
        with the variant kind: ``plural_``, ``separator_`` or ``numbering_``.

        Args:
            names: Folder names to inspect.

        Returns:
            Mapping of pattern key to the names sharing it, in input order.

        Example:
            >>> SimilarityScorer().detect_common_patterns(["Kit 1", "Kit 2", "Pads"])
            {'numbering_Kit #': ['Kit 1', 'Kit 2']}
        """
        plural_groups: Dict[str, List[str]] = defaultdict(list)
        separator_groups: Dict[str, List[str]] = defaultdict(list)
        numbering_groups: Dict[str, List[str]] = defaultdict(list)

        for name in names:
            words = re.split(r"(\W+|_)", name.lower())
            plural_groups[("".join(singularize(w) for w in words))].append(name)
            separator_groups[self._SEPARATORS.sub("", name.lower())].append(name)
            numbering_groups[self._DIGITS.sub("#", name)].append(name)

        patterns: Dict[str, List[str]] = {}
        for prefix, groups in (
            ("plural", plural_groups),
            ("separator", separator_groups),
            ("numbering", numbering_groups),
        ):
            for key, members in groups.items():
                if len(members) > 1 and len(set(members)) > 1:
                    patterns[f"{prefix}_{key}"] = members
        return patterns

    def _token_overlap(self, tokens_a: List[str], tokens_b: List[str]) -> float:
        if not tokens_a or not tokens_b:
            return 0.0
        set_a, set_b = set(tokens_a), set(tokens_b)
        return len(set_a & set_b) / len(set_a | set_b)

    def _permutation(self, tokens_a: List[str], tokens_b: List[str]) -> float:
        if len(tokens_a) != len(tokens_b):
            return 0.5 * self._token_overlap(tokens_a, tokens_b)
        if sorted(tokens_a) == sorted(tokens_b):
            return 1.0
        return self._token_overlap(tokens_a, tokens_b)

    def _phonetic(self, norm_a: str, norm_b: str) -> float:
        code_a = self.soundex(norm_a)
        code_b = self.soundex(norm_b)
        if code_a == code_b:
            return 1.0
        matches = sum(1 for x, y in zip(code_a, code_b) if x == y)
        return matches / max(len(code_a), len(code_b))

    def _contextual(
        self, context_a: Optional[PathContext], context_b: Optional[PathContext]
    ) -> float:
        if context_a is None or context_b is None:
            return 0.5

        score = 0.0
        if context_a.parent_path == context_b.parent_path:
            score += 0.5
        if context_a.depth == context_b.depth:
            score += 0.3

        siblings_a: Set[str] = {self.normalize(s) for s in context_a.siblings}
        siblings_b: Set[str] = {self.normalize(s) for s in context_b.siblings}
        common = siblings_a & siblings_b
        if common:
            score += 0.2 * (len(common) / max(len(siblings_a), len(siblings_b)))

        return min(1.0, score)
