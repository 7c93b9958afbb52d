"""Turn raw text into indexed :class:`Document` instances.

A deliberately small feature extractor: regex word tokens, lowercased,
optional stopword removal and contiguous n-grams. Feature and label strings
are mapped to ids through :class:`StringIndexer` instances that travel with
a saved model.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from .indexer import StringIndexer
from .models import UNLABELLED, Document, Label

_WORD_RE = re.compile(r"\b[a-zA-Z][a-zA-Z'-]*[a-zA-Z]\b|\b[a-zA-Z]\b")

_STOP_WORDS: frozenset[str] = frozenset({
    "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "be",
    "been", "being", "have", "has", "had", "do", "does", "did", "will",
    "would", "could", "should", "may", "might", "shall", "can", "must",
    "so", "if", "then", "than", "that", "this",
    "these", "those", "it", "its", "he", "she", "they", "them", "their",
    "his", "her", "our", "your", "we", "you", "who", "whom", "which",
    "what", "where", "when", "how", "all", "each", "every", "both",
    "few", "more", "most", "other", "some", "such", "any", "only",
    "own", "same", "too", "very", "just", "about", "above", "after",
    "again", "also", "because", "before", "between", "during", "into",
    "through", "under", "until", "up", "out", "over", "here", "there",
})


def _tokenize(text: str) -> list[str]:
    """Extract lowercase word tokens from text."""
    return [m.group().lower() for m in _WORD_RE.finditer(text)]


def _ngrams(tokens: list[str], n: int) -> list[str]:
    """Generate n-grams from a token list."""
    if n <= 1:
        return tokens
    return ["_".join(tokens[i : i + n]) for i in range(len(tokens) - n + 1)]


@dataclass
class FeatureExtractionPipeline:
    """Tokenize text into feature ids, keeping duplicate occurrences.

    Negation words ("not", "no", "nor") are kept even with stopword
    removal on, since they carry sentiment.

    Args:
        ngram_range: (min_n, max_n) for n-gram extraction.
        remove_stop_words: Drop common English function words.
        feature_indexer: Feature string to id map (shared with the model).
        label_indexer: Label string to id map.
    """

    ngram_range: tuple[int, int] = (1, 1)
    remove_stop_words: bool = True
    feature_indexer: StringIndexer = field(default_factory=StringIndexer)
    label_indexer: StringIndexer = field(default_factory=StringIndexer)

    def __post_init__(self) -> None:
        min_n, max_n = self.ngram_range
        if min_n < 1 or max_n < min_n:
            raise ValueError(f"Invalid ngram_range: {self.ngram_range}")

    def extract_terms(self, text: str) -> list[str]:
        """Feature strings of ``text`` in order, duplicates kept."""
        tokens = _tokenize(text)
        if self.remove_stop_words:
            tokens = [t for t in tokens if t not in _STOP_WORDS]
        terms: list[str] = []
        min_n, max_n = self.ngram_range
        for n in range(min_n, max_n + 1):
            terms.extend(_ngrams(tokens, n))
        return terms

    def process(
        self,
        text: str,
        label: Optional[str] = None,
        source: Any = None,
        add_features: bool = True,
    ) -> Document:
        """Convert one text into a :class:`Document`.

        Args:
            text: Raw text.
            label: Label string, or ``None`` for unlabelled data.
            source: Opaque reference stored on the document.
            add_features: When false, unseen terms are dropped instead of
                being added to the feature indexer (use at prediction time).
        """
        features = self.feature_indexer.indices(self.extract_terms(text), add_if_absent=add_features)
        label_id: Label = UNLABELLED if label is None else self.label_indexer.index(str(label))
        return Document(tuple(features), label_id, source if source is not None else text)

    def process_all(
        self,
        records: Iterable[dict],
        add_features: bool = True,
    ) -> list[Document]:
        """Process ``{"text": ..., "label": ...}`` records; ``label`` is optional."""
        return [
            self.process(record["text"], record.get("label"), record.get("id"), add_features)
            for record in records
        ]

    def feature_string(self, feature: int) -> Optional[str]:
        return self.feature_indexer.value(feature)

    def label_string(self, label: Label) -> Optional[str]:
        if not isinstance(label, int):
            return None
        return self.label_indexer.value(label)
