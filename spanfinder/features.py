"""Feature generators turning a token position into classifier evidence.

Every generator appends opaque string features for one position of a token
sequence. The feature strings are part of a trained model's vocabulary, so
their spelling must stay stable once models have been trained against them.

Generators come in three flavours:

1.  **Leaf generators** look at the tokens around ``index`` (token text, token
    shape, bigrams, prefixes, dictionary hits).
2.  **Adaptive generators** remember what earlier sentences of the same
    document were labeled as. They learn through `update_adaptive_data` and
    forget through `clear_adaptive_data`.
3.  **Combinators** (aggregation, windowing and caching) own their children
    and forward the adaptive hooks to them.
"""
from __future__ import annotations
import logging
import re
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from .types import Span

__all__ = [
    "token_class", "Dictionary", "FeatureGenerator",
    "TokenFeatureGenerator", "TokenClassFeatureGenerator", "TokenPatternFeatureGenerator",
    "OutcomePriorFeatureGenerator", "PreviousMapFeatureGenerator",
    "BigramNameFeatureGenerator", "SentenceFeatureGenerator",
    "PrefixFeatureGenerator", "SuffixFeatureGenerator", "DictionaryFeatureGenerator",
    "AdditionalContextFeatureGenerator", "AggregatedFeatureGenerator",
    "WindowFeatureGenerator", "CachedFeatureGenerator", "default_feature_generator",
]

logger = logging.getLogger(__name__)

_LOWER = re.compile(r"[^\W\d_]+")
_DIGITS = re.compile(r"\d+")
_UPPER = re.compile(r"[A-ZÀ-Þ]+")
_INITIAL_CAP = re.compile(r"[A-ZÀ-Þ][^\W\d_]*")
_SUB_TOKEN = re.compile(r"[^\W\d_]+|\d+|[^\w\s]|_")


def token_class(token: str) -> str:
    """
    Classifies the shape of a token into a short class label.

    The classes are: ``lc`` (lowercase letters), ``2d``/``4d``/``num``
    (digits), ``sc`` (single capital), ``ac`` (all capitals), ``ic`` (initial
    capital), ``dd``/``ds``/``dc``/``dp`` (digits mixed with a dash, slash,
    comma or period), ``an`` (letters and digits) and ``other``.
    """
    if not token:
        return "other"
    if _LOWER.fullmatch(token) and token == token.lower():
        return "lc"
    if _DIGITS.fullmatch(token):
        if len(token) == 2:
            return "2d"
        if len(token) == 4:
            return "4d"
        return "num"
    if _UPPER.fullmatch(token):
        return "sc" if len(token) == 1 else "ac"
    if _INITIAL_CAP.fullmatch(token) and token[1:] == token[1:].lower():
        return "ic"

    has_digit = any(ch.isdigit() for ch in token)
    if has_digit:
        rest = set(ch for ch in token if not ch.isdigit())
        if rest == {"-"}:
            return "dd"
        if rest == {"/"}:
            return "ds"
        if rest == {","}:
            return "dc"
        if rest == {"."}:
            return "dp"
        if all(ch.isalnum() for ch in token):
            return "an"
    return "other"


class Dictionary:
    """
    A read-only gazetteer of multi-token entries.

    Entries can be given as whitespace separated strings or as token
    sequences. Lookups are case-insensitive unless ``case_sensitive`` is set.
    Dictionaries are shared between finders and never mutated by them.
    """

    def __init__(self, entries: Iterable[Union[str, Sequence[str]]] = (), case_sensitive: bool = False):
        self.case_sensitive = case_sensitive
        normalized = set()
        for entry in entries:
            tokens = entry.split() if isinstance(entry, str) else tuple(entry)
            if tokens:
                normalized.add(self._normalize(tokens))
        self._entries = frozenset(normalized)
        self.max_token_count = max((len(e) for e in self._entries), default=0)

    def _normalize(self, tokens: Sequence[str]) -> Tuple[str, ...]:
        if self.case_sensitive:
            return tuple(tokens)
        return tuple(t.lower() for t in tokens)

    def __contains__(self, tokens: Union[str, Sequence[str]]) -> bool:
        if isinstance(tokens, str):
            tokens = tokens.split()
        return self._normalize(tokens) in self._entries

    def __iter__(self) -> Iterator[Tuple[str, ...]]:
        return iter(sorted(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def find(self, tokens: Sequence[str]) -> List[Span]:
        """Finds the longest dictionary entries in ``tokens``, left to right."""
        found: List[Span] = []
        i = 0
        while i < len(tokens):
            longest = 0
            for size in range(min(self.max_token_count, len(tokens) - i), 0, -1):
                if tokens[i : i + size] in self:
                    longest = size
                    break
            if longest:
                found.append(Span(i, i + longest))
                i += longest
            else:
                i += 1
        return found


class FeatureGenerator:
    """
    Base class of all feature generators.

    Subclasses implement `create_features`. The adaptive hooks are no-ops
    here and only overridden by generators that keep per-document state.
    """

    def create_features(
        self,
        features: List[str],
        tokens: Sequence[str],
        index: int,
        prior_outcomes: Optional[Sequence[str]],
    ) -> None:
        raise NotImplementedError

    def update_adaptive_data(self, tokens: Sequence[str], outcomes: Sequence[str]) -> None:
        pass

    def clear_adaptive_data(self) -> None:
        pass


class TokenFeatureGenerator(FeatureGenerator):
    def __init__(self, lowercase: bool = True):
        self.lowercase = lowercase

    def create_features(self, features, tokens, index, prior_outcomes):
        token = tokens[index]
        features.append("w=" + (token.lower() if self.lowercase else token))


class TokenClassFeatureGenerator(FeatureGenerator):
    def __init__(self, generate_word_and_class: bool = True):
        self.generate_word_and_class = generate_word_and_class

    def create_features(self, features, tokens, index, prior_outcomes):
        wc = token_class(tokens[index])
        features.append("wc=" + wc)
        if self.generate_word_and_class:
            features.append(f"w&c={tokens[index].lower()},{wc}")


class TokenPatternFeatureGenerator(FeatureGenerator):
    """Describes tokens such as ``Jean-Luc`` or ``A4/B`` through their sub-tokens."""

    def create_features(self, features, tokens, index, prior_outcomes):
        parts = _SUB_TOKEN.findall(tokens[index])
        if len(parts) <= 1:
            features.append("st=" + tokens[index].lower())
            return

        features.append(f"stn={len(parts)}")
        pattern = ""
        for i, part in enumerate(parts):
            if i < len(parts) - 1:
                features.append(f"pt2={pattern}{token_class(part)}{token_class(parts[i + 1])}")
            if i < len(parts) - 2:
                features.append(
                    f"pt3={pattern}{token_class(part)}{token_class(parts[i + 1])}{token_class(parts[i + 2])}"
                )
            pattern += token_class(part)
            if any(ch.isalpha() for ch in part):
                features.append("st=" + part.lower())
        features.append("pta=" + pattern)


class OutcomePriorFeatureGenerator(FeatureGenerator):
    """Emits a constant feature so the classifier learns the outcome priors."""

    def create_features(self, features, tokens, index, prior_outcomes):
        features.append("def")


class PreviousMapFeatureGenerator(FeatureGenerator):
    """
    Remembers the outcome each token received earlier in the document.

    After a sentence is labeled, every token is mapped to its outcome. Later
    sentences containing the same token get a ``pd=<outcome>`` feature, which
    lets a name recognized once help recognize it again.
    """

    def __init__(self):
        self.previous_map: Dict[str, str] = {}

    def create_features(self, features, tokens, index, prior_outcomes):
        previous = self.previous_map.get(tokens[index])
        if previous is not None:
            features.append("pd=" + previous)

    def update_adaptive_data(self, tokens, outcomes):
        for token, outcome in zip(tokens, outcomes):
            self.previous_map[token] = outcome

    def clear_adaptive_data(self):
        self.previous_map.clear()


class BigramNameFeatureGenerator(FeatureGenerator):
    def create_features(self, features, tokens, index, prior_outcomes):
        wc = token_class(tokens[index])
        if index > 0:
            features.append(f"pw,w={tokens[index - 1]},{tokens[index]}")
            features.append(f"pwc,wc={token_class(tokens[index - 1])},{wc}")
        if index + 1 < len(tokens):
            features.append(f"w,nw={tokens[index]},{tokens[index + 1]}")
            features.append(f"wc,nc={wc},{token_class(tokens[index + 1])}")


class SentenceFeatureGenerator(FeatureGenerator):
    def __init__(self, is_generate_first_word_feature: bool = True, is_generate_last_word_feature: bool = False):
        self.first = is_generate_first_word_feature
        self.last = is_generate_last_word_feature

    def create_features(self, features, tokens, index, prior_outcomes):
        if self.first and index == 0:
            features.append("S=begin")
        if self.last and index == len(tokens) - 1:
            features.append("S=end")


class PrefixFeatureGenerator(FeatureGenerator):
    def __init__(self, length: int = 4):
        self.length = length

    def create_features(self, features, tokens, index, prior_outcomes):
        token = tokens[index]
        for size in range(1, min(self.length, len(token)) + 1):
            features.append("pre=" + token[:size])


class SuffixFeatureGenerator(FeatureGenerator):
    def __init__(self, length: int = 4):
        self.length = length

    def create_features(self, features, tokens, index, prior_outcomes):
        token = tokens[index]
        for size in range(1, min(self.length, len(token)) + 1):
            features.append("suf=" + token[-size:])


class DictionaryFeatureGenerator(FeatureGenerator):
    """
    Marks tokens that are part of a dictionary entry.

    Dictionary matches are computed once per token sequence. Tokens inside a
    match get ``<prefix>:w=dic`` and ``<prefix>:w=dic=<token>``; the first
    token of a match additionally gets ``<prefix>:w=dic=start``.
    """

    def __init__(self, dictionary: Dictionary, prefix: str = ""):
        self.dictionary = dictionary
        self.prefix = prefix
        self._tokens: Optional[Sequence[str]] = None
        self._matches: List[Span] = []

    def create_features(self, features, tokens, index, prior_outcomes):
        if tokens is not self._tokens:
            self._tokens = tokens
            self._matches = self.dictionary.find(tokens)

        for match in self._matches:
            if match.contains(index):
                features.append(f"{self.prefix}:w=dic")
                if index == match.start:
                    features.append(f"{self.prefix}:w=dic=start")
                features.append(f"{self.prefix}:w=dic={tokens[index]}")
                break


class AdditionalContextFeatureGenerator(FeatureGenerator):
    """
    Exposes caller supplied per-token hints as ``ne=`` features.

    The finder sets the hints before each decode; they are only read, never
    learned from.
    """

    def __init__(self):
        self.additional_context: Optional[Sequence[Sequence[str]]] = None

    def set_current_context(self, additional_context: Optional[Sequence[Sequence[str]]]) -> None:
        self.additional_context = additional_context

    def create_features(self, features, tokens, index, prior_outcomes):
        if not self.additional_context or index >= len(self.additional_context):
            return
        for hint in self.additional_context[index]:
            features.append("ne=" + hint)


class AggregatedFeatureGenerator(FeatureGenerator):
    """Runs its children in order and concatenates their features."""

    def __init__(self, *generators: FeatureGenerator):
        self.generators: Tuple[FeatureGenerator, ...] = tuple(generators)

    def create_features(self, features, tokens, index, prior_outcomes):
        for generator in self.generators:
            generator.create_features(features, tokens, index, prior_outcomes)

    def update_adaptive_data(self, tokens, outcomes):
        for generator in self.generators:
            generator.update_adaptive_data(tokens, outcomes)

    def clear_adaptive_data(self):
        for generator in self.generators:
            generator.clear_adaptive_data()


class WindowFeatureGenerator(FeatureGenerator):
    """
    Adds the features of neighbouring positions to the current position.

    Features of the token ``k`` positions to the left are prefixed with
    ``p<k>``, those ``k`` positions to the right with ``n<k>``.
    """

    def __init__(self, generator: FeatureGenerator, prev_window_size: int = 2, next_window_size: int = 2):
        if prev_window_size < 0 or next_window_size < 0:
            raise ValueError("window sizes must not be negative")
        self.generator = generator
        self.prev_window_size = prev_window_size
        self.next_window_size = next_window_size

    def create_features(self, features, tokens, index, prior_outcomes):
        self.generator.create_features(features, tokens, index, prior_outcomes)

        for offset in range(1, self.prev_window_size + 1):
            if index - offset < 0:
                break
            window: List[str] = []
            self.generator.create_features(window, tokens, index - offset, prior_outcomes)
            features.extend(f"p{offset}{feature}" for feature in window)

        for offset in range(1, self.next_window_size + 1):
            if index + offset >= len(tokens):
                break
            window = []
            self.generator.create_features(window, tokens, index + offset, prior_outcomes)
            features.extend(f"n{offset}{feature}" for feature in window)

    def update_adaptive_data(self, tokens, outcomes):
        self.generator.update_adaptive_data(tokens, outcomes)

    def clear_adaptive_data(self):
        self.generator.clear_adaptive_data()


class CachedFeatureGenerator(FeatureGenerator):
    """
    Memoizes the features of its child per token sequence and position.

    The beam search asks for the same position once per hypothesis, so the
    child runs at most once per position of a sequence. The cache is keyed on
    the identity of the token sequence and is dropped as soon as a different
    sequence is seen or the adaptive state changes. The child must not depend
    on ``prior_outcomes``.
    """

    def __init__(self, generator: FeatureGenerator):
        self.generator = generator
        self._tokens: Optional[Sequence[str]] = None
        self._cache: Dict[int, Tuple[str, ...]] = {}
        self.hits = 0
        self.misses = 0

    def create_features(self, features, tokens, index, prior_outcomes):
        if tokens is self._tokens:
            cached = self._cache.get(index)
            if cached is not None:
                self.hits += 1
                features.extend(cached)
                return
        else:
            self._reset(tokens)

        self.misses += 1
        generated: List[str] = []
        self.generator.create_features(generated, tokens, index, prior_outcomes)
        self._cache[index] = tuple(generated)
        features.extend(generated)

    def _reset(self, tokens: Optional[Sequence[str]]) -> None:
        if self._cache:
            logger.debug(f"Feature cache reset after {self.hits} hits and {self.misses} misses")
        self._tokens = tokens
        self._cache = {}

    def update_adaptive_data(self, tokens, outcomes):
        self._reset(None)
        self.generator.update_adaptive_data(tokens, outcomes)

    def clear_adaptive_data(self):
        self._reset(None)
        self.generator.clear_adaptive_data()


def default_feature_generator() -> FeatureGenerator:
    """Builds the feature generator used when a model carries no descriptor."""
    return CachedFeatureGenerator(
        AggregatedFeatureGenerator(
            WindowFeatureGenerator(TokenFeatureGenerator(), 2, 2),
            WindowFeatureGenerator(TokenClassFeatureGenerator(True), 2, 2),
            OutcomePriorFeatureGenerator(),
            PreviousMapFeatureGenerator(),
            BigramNameFeatureGenerator(),
            SentenceFeatureGenerator(True, False),
        )
    )
