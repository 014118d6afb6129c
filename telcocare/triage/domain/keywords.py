"""
Keyword Extraction
==================

Frequency-based keyword and bigram extraction for ticket analytics.

Deterministic: the same text with the same stopwords and limits always
yields the same list in the same order.
"""

import re
from collections import Counter
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from telcocare.triage.domain.entities import KeywordFrequency
from telcocare.triage.domain.value_objects import KeywordRules


_PUNCTUATION = re.compile(r"[^\w\s]+", re.UNICODE)


class KeywordExtractor:
    """
    Extracts the most frequent unigrams and bigrams from a ticket.

    Bigrams are only formed from two kept tokens that were adjacent within
    one punctuation-delimited segment, so a dropped stopword or a comma
    breaks the pair.
    """

    def __init__(self, stopwords: Iterable[str], rules: Optional[KeywordRules] = None):
        self._stopwords: FrozenSet[str] = frozenset(w.lower() for w in stopwords)
        self._rules = rules or KeywordRules()

    def segments(self, text: str) -> List[List[str]]:
        """Lower-case, split on punctuation, then on whitespace."""
        return [
            segment.split()
            for segment in _PUNCTUATION.split(text.lower())
            if segment.strip()
        ]

    def _keep(self, token: str) -> bool:
        return (
            self._rules.min_length <= len(token) <= self._rules.max_length
            and token not in self._stopwords
        )

    def extract(self, text: str) -> List[KeywordFrequency]:
        """
        Extract keywords from ticket text.

        Args:
            text: Original (untranslated) ticket text

        Returns:
            Up to `max_keywords` unigrams plus `max_bigrams` bigrams,
            ordered by frequency, ties by first occurrence
        """
        unigrams: Counter = Counter()
        bigrams: Counter = Counter()
        first_seen: Dict[str, int] = {}

        position = 0
        for segment in self.segments(text):
            previous: Optional[str] = None
            for token in segment:
                if not self._keep(token):
                    previous = None
                    position += 1
                    continue
                unigrams[token] += 1
                first_seen.setdefault(token, position)

                if previous is not None:
                    pair = f"{previous} {token}"
                    bigrams[pair] += 1
                    first_seen.setdefault(pair, position - 1)

                previous = token
                position += 1

        top_unigrams = self._rank(unigrams, first_seen)[:self._rules.max_keywords]
        top_bigrams = self._rank(bigrams, first_seen)[:self._rules.max_bigrams]

        # sorted() is stable: on equal frequency unigrams stay ahead of bigrams
        merged = sorted(top_unigrams + top_bigrams, key=lambda item: -item[1])

        return [
            KeywordFrequency(keyword=keyword, frequency=count, first_position=first_seen[keyword])
            for keyword, count in merged
        ]

    @staticmethod
    def _rank(counts: Counter, first_seen: Dict[str, int]) -> List[Tuple[str, int]]:
        return sorted(counts.items(), key=lambda item: (-item[1], first_seen[item[0]]))
