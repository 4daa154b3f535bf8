"""Translation between name spans and per-token outcome labels.

A sequence codec is the only place that knows how spans are written as
outcome labels. Two tagging schemes are provided:

*   **BIO** (`BioCodec`, the default): ``start``, ``cont`` and ``other``.
*   **BILOU** (`BilouCodec`): ``start``, ``cont``, ``last``, ``unit`` and
    ``other``.

Typed outcomes carry the entity type after the verb, e.g. ``start-person``.
Both codecs decode leniently: a ``cont`` that does not follow an open name of
the same type simply opens a new name. Each codec also supplies a validator
the beam search consults so that it never proposes such an outcome in the
first place.

Codecs are looked up by name through a small registry so that a trained model
can record which scheme it was trained with.
"""
from __future__ import annotations
import re
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import InvalidFormatError
from .types import Span

__all__ = [
    "START", "CONTINUE", "OTHER", "LAST", "UNIT",
    "typed_outcome", "split_outcome", "extract_name_type",
    "SequenceValidator", "SequenceCodec", "BioCodec", "BilouCodec",
    "register_codec", "create_codec", "available_codecs", "DEFAULT_CODEC_NAME",
]

START = "start"
CONTINUE = "cont"
OTHER = "other"
LAST = "last"
UNIT = "unit"

DEFAULT_CODEC_NAME = "bio"

_TYPED_OUTCOME = re.compile(r"(\w+?)-(.+)")

# (index, tokens, outcomes decided so far, proposed outcome) -> allowed?
SequenceValidator = Callable[[int, Sequence[str], Sequence[str], str], bool]


def typed_outcome(verb: str, name_type: Optional[str]) -> str:
    """Builds an outcome label such as ``start-person`` (or ``start`` if untyped)."""
    if not name_type:
        return verb
    return f"{verb}-{name_type}"


def split_outcome(outcome: str) -> Tuple[str, Optional[str]]:
    """Splits an outcome label into its verb and its optional type."""
    match = _TYPED_OUTCOME.fullmatch(outcome)
    if match:
        return match.group(1), match.group(2)
    return outcome, None


def extract_name_type(outcome: str) -> Optional[str]:
    """Returns the entity type of a typed outcome, or None for untyped ones."""
    return split_outcome(outcome)[1]


class SequenceCodec:
    """Base class for span <-> outcome codecs."""

    name: str = ""

    def encode(self, names: Iterable[Span], length: int) -> List[str]:
        raise NotImplementedError

    def decode(self, outcomes: Sequence[str]) -> List[Span]:
        raise NotImplementedError

    def create_sequence_validator(self) -> SequenceValidator:
        raise NotImplementedError

    def are_outcomes_compatible(self, outcomes: Sequence[str]) -> bool:
        """Checks that a model's outcome set can express this codec's names."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


_CODECS: Dict[str, Callable[[], SequenceCodec]] = {}


def register_codec(name: str):
    """Class decorator adding a codec to the name registry."""
    def decorator(cls):
        cls.name = name
        _CODECS[name] = cls
        return cls
    return decorator


def create_codec(name: Optional[str]) -> SequenceCodec:
    """
    Instantiates a registered codec by name.

    Args:
        name: The registered codec name. None selects the BIO default.

    Returns:
        A fresh codec instance.

    Raises:
        InvalidFormatError: If no codec is registered under ``name``.
    """
    if name is None:
        name = DEFAULT_CODEC_NAME
    try:
        return _CODECS[name]()
    except KeyError:
        raise InvalidFormatError(
            f"Unknown sequence codec '{name}'. Available codecs: {sorted(_CODECS)}"
        ) from None


def available_codecs() -> List[str]:
    return sorted(_CODECS)


def _open_verb_and_type(prior_outcomes: Sequence[str]) -> Tuple[Optional[str], Optional[str]]:
    if not prior_outcomes:
        return None, None
    return split_outcome(prior_outcomes[-1])


@register_codec("bio")
class BioCodec(SequenceCodec):
    """The begin/inside/other scheme using ``start``, ``cont`` and ``other``."""

    def encode(self, names: Iterable[Span], length: int) -> List[str]:
        outcomes = [OTHER] * length
        for name in names:
            if name.end > length:
                raise ValueError(f"span {name} does not fit into a sequence of length {length}")
            outcomes[name.start] = typed_outcome(START, name.type)
            for i in range(name.start + 1, name.end):
                outcomes[i] = typed_outcome(CONTINUE, name.type)
        return outcomes

    def decode(self, outcomes: Sequence[str]) -> List[Span]:
        spans: List[Span] = []
        begin: Optional[int] = None
        begin_type: Optional[str] = None

        for i, outcome in enumerate(outcomes):
            verb, name_type = split_outcome(outcome)
            if verb == CONTINUE and begin is not None and name_type == begin_type:
                continue
            if begin is not None:
                spans.append(Span(begin, i, begin_type))
                begin, begin_type = None, None
            # An orphan ``cont`` is read as the start of a new name.
            if verb in (START, CONTINUE):
                begin, begin_type = i, name_type

        if begin is not None:
            spans.append(Span(begin, len(outcomes), begin_type))
        return spans

    def create_sequence_validator(self) -> SequenceValidator:
        def validate(index: int, tokens: Sequence[str], prior_outcomes: Sequence[str], outcome: str) -> bool:
            verb, name_type = split_outcome(outcome)
            if verb != CONTINUE:
                return True
            prev_verb, prev_type = _open_verb_and_type(prior_outcomes)
            return prev_verb in (START, CONTINUE) and prev_type == name_type
        return validate

    def are_outcomes_compatible(self, outcomes: Sequence[str]) -> bool:
        known = set(outcomes)
        for outcome in known:
            verb, name_type = split_outcome(outcome)
            if verb == CONTINUE and typed_outcome(START, name_type) not in known:
                return False
        return True


@register_codec("bilou")
class BilouCodec(SequenceCodec):
    """
    The begin/inside/last/outside/unit scheme.

    Single-token names are written as ``unit``; longer names as ``start``,
    any number of ``cont`` and a closing ``last``.
    """

    def encode(self, names: Iterable[Span], length: int) -> List[str]:
        outcomes = [OTHER] * length
        for name in names:
            if name.end > length:
                raise ValueError(f"span {name} does not fit into a sequence of length {length}")
            if name.length() == 1:
                outcomes[name.start] = typed_outcome(UNIT, name.type)
                continue
            outcomes[name.start] = typed_outcome(START, name.type)
            for i in range(name.start + 1, name.end - 1):
                outcomes[i] = typed_outcome(CONTINUE, name.type)
            outcomes[name.end - 1] = typed_outcome(LAST, name.type)
        return outcomes

    def decode(self, outcomes: Sequence[str]) -> List[Span]:
        spans: List[Span] = []
        begin: Optional[int] = None
        begin_type: Optional[str] = None

        def close(end: int) -> None:
            nonlocal begin, begin_type
            if begin is not None:
                spans.append(Span(begin, end, begin_type))
            begin, begin_type = None, None

        for i, outcome in enumerate(outcomes):
            verb, name_type = split_outcome(outcome)
            if verb == START:
                close(i)
                begin, begin_type = i, name_type
            elif verb in (CONTINUE, LAST):
                if begin is None or name_type != begin_type:
                    close(i)
                    begin, begin_type = i, name_type
                if verb == LAST:
                    close(i + 1)
            elif verb == UNIT:
                close(i)
                spans.append(Span(i, i + 1, name_type))
            else:
                close(i)

        close(len(outcomes))
        return spans

    def create_sequence_validator(self) -> SequenceValidator:
        def validate(index: int, tokens: Sequence[str], prior_outcomes: Sequence[str], outcome: str) -> bool:
            verb, name_type = split_outcome(outcome)
            if verb in (START, CONTINUE) and index == len(tokens) - 1:
                return False
            prev_verb, prev_type = _open_verb_and_type(prior_outcomes)
            name_open = prev_verb in (START, CONTINUE)
            if verb in (CONTINUE, LAST):
                return name_open and prev_type == name_type
            # A started name has to be closed by ``last`` before anything else.
            return not name_open
        return validate

    def are_outcomes_compatible(self, outcomes: Sequence[str]) -> bool:
        known = set(outcomes)
        for outcome in known:
            verb, name_type = split_outcome(outcome)
            if verb in (CONTINUE, LAST) and typed_outcome(START, name_type) not in known:
                return False
            if verb == START and typed_outcome(LAST, name_type) not in known:
                return False
        return True
