from __future__ import annotations
from dataclasses import dataclass
from functools import total_ordering
from typing import Optional, Sequence, Tuple, Union

__all__ = ["Span", "NameSample", "Event", "BestSequence"]


@total_ordering
@dataclass(frozen=True)
class Span:
    """
    A half-open range over token positions with an optional type tag.

    Spans are the public result of name finding. They order by ascending
    ``start``, then ascending ``end`` (so a longer span sorts after a shorter
    one that shares its start), then by ``type`` with untyped spans first.

    Attributes:
        start: Index of the first covered token.
        end: Index one past the last covered token.
        type: The entity type, e.g. ``"person"``, or None for untyped names.
            An empty type is stored as None.
    """
    start: int
    end: int
    type: Optional[str] = None

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError(f"start index must be zero or greater: {self.start}")
        if self.end <= self.start:
            raise ValueError(
                f"end index must be greater than start index: start={self.start}, end={self.end}"
            )
        if self.type == "":
            object.__setattr__(self, "type", None)

    def _sort_key(self) -> Tuple[int, int, int, str]:
        return (self.start, self.end, 0 if self.type is None else 1, self.type or "")

    def __lt__(self, other: "Span") -> bool:
        if not isinstance(other, Span):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def length(self) -> int:
        return self.end - self.start

    def __len__(self) -> int:
        return self.length()

    def contains(self, other: Union["Span", int]) -> bool:
        """Checks whether an index or a whole span lies inside this span."""
        if isinstance(other, Span):
            return self.start <= other.start and other.end <= self.end
        return self.start <= other < self.end

    def starts_with(self, other: "Span") -> bool:
        return self.start == other.start and self.contains(other)

    def intersects(self, other: "Span") -> bool:
        """True if the two spans share at least one token, containment included."""
        return self.start < other.end and other.start < self.end

    def crosses(self, other: "Span") -> bool:
        """True if the spans overlap partially, neither one containing the other."""
        if not self.intersects(other):
            return False
        return not self.contains(other) and not other.contains(self)

    def covered_text(self, tokens: Sequence[str]) -> Tuple[str, ...]:
        if self.end > len(tokens):
            raise ValueError(f"span {self} exceeds the {len(tokens)} available tokens")
        return tuple(tokens[self.start : self.end])

    def __str__(self) -> str:
        suffix = f" {self.type}" if self.type is not None else ""
        return f"[{self.start}..{self.end}){suffix}"


@dataclass(frozen=True)
class NameSample:
    """
    One training sentence together with its gold name spans.

    Attributes:
        tokens: The tokens of the sentence.
        names: The gold spans. They must lie within the sentence.
        additional_context: Optional per-token hints (one list of strings per
            token) that are passed to the additional context feature generator.
        clear_adaptive_data: True when this sentence opens a new document, in
            which case training streams reset adaptive feature state first.
    """
    tokens: Tuple[str, ...]
    names: Tuple[Span, ...] = ()
    additional_context: Optional[Tuple[Tuple[str, ...], ...]] = None
    clear_adaptive_data: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "tokens", tuple(self.tokens))
        object.__setattr__(self, "names", tuple(self.names))
        if self.additional_context is not None:
            object.__setattr__(
                self, "additional_context", tuple(tuple(ctx) for ctx in self.additional_context)
            )
        for name in self.names:
            if name.end > len(self.tokens):
                raise ValueError(
                    f"span {name} is outside of a sentence with {len(self.tokens)} tokens"
                )


@dataclass(frozen=True)
class Event:
    """A single training event: the outcome observed with a feature context."""
    outcome: str
    context: Tuple[str, ...]


@dataclass(frozen=True)
class BestSequence:
    """
    The outcome sequence chosen for one decode.

    Attributes:
        outcomes: One outcome label per input token.
        probs: The probability the model assigned to each chosen outcome.
        score: Sum of the log-probabilities along the path.
    """
    outcomes: Tuple[str, ...] = ()
    probs: Tuple[float, ...] = ()
    score: float = 0.0

    def extend(self, outcome: str, prob: float, log_prob: float) -> "BestSequence":
        return BestSequence(
            outcomes=self.outcomes + (outcome,),
            probs=self.probs + (prob,),
            score=self.score + log_prob,
        )

    def __len__(self) -> int:
        return len(self.outcomes)
