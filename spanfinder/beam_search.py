"""Beam search decoding of outcome sequences.

A per-position classifier only knows how likely each outcome is at a single
position. `BeamSearch` turns such a classifier into a sequence model: it walks
the tokens left to right, extends each surviving hypothesis with the outcomes
the classifier ranks highest, and keeps the ``beam_size`` best hypotheses at
every step.

Two rules keep the output well formed:

*   Only outcomes accepted by the sequence validator are ever appended, so a
    returned sequence is legal at every position.
*   If none of the top ranked outcomes is legal for a hypothesis, it is
    extended with every legal outcome instead, so that hypotheses are not lost
    merely because the classifier prefers an illegal continuation.
"""
from __future__ import annotations
import math
from heapq import nlargest
from typing import Callable, List, Sequence, Tuple

import numpy as np

from .codec import SequenceValidator
from .types import BestSequence

__all__ = [
    "DEFAULT_BEAM_SIZE", "ZERO_LOG", "ClassifierModel", "SequenceClassificationModel",
    "BeamSearch", "beam_decode",
]

DEFAULT_BEAM_SIZE = 3
ZERO_LOG = -100000.0

# (index, hypothesis so far) -> probability per outcome
Distribution = Callable[[int, BestSequence], np.ndarray]


class ClassifierModel:
    """Contract of a per-position classifier."""

    outcomes: Tuple[str, ...] = ()

    def eval(self, context: Sequence[str]) -> np.ndarray:
        """Returns one probability per entry of ``outcomes``."""
        raise NotImplementedError

    def get_best_outcome(self, probs: np.ndarray) -> str:
        return self.outcomes[int(np.argmax(probs))]

    def get_index(self, outcome: str) -> int:
        return self.outcomes.index(outcome)


class SequenceClassificationModel:
    """Contract of a model that labels a whole token sequence at once."""

    outcomes: Tuple[str, ...] = ()

    def best_sequences(
        self,
        num_sequences: int,
        tokens: Sequence[str],
        additional_context,
        context_generator,
        validator: SequenceValidator,
        min_sequence_score: float = float("-inf"),
    ) -> List[BestSequence]:
        raise NotImplementedError

    def best_sequence(self, tokens, additional_context, context_generator, validator) -> BestSequence:
        sequences = self.best_sequences(1, tokens, additional_context, context_generator, validator)
        return sequences[0]


def _log(prob: float) -> float:
    return math.log(prob) if prob > 0.0 else ZERO_LOG


def beam_decode(
    tokens: Sequence[str],
    outcomes: Sequence[str],
    distribution: Distribution,
    validator: SequenceValidator,
    beam_size: int,
    num_sequences: int = 1,
    min_sequence_score: float = float("-inf"),
) -> List[BestSequence]:
    """
    Runs the beam search over ``tokens``.

    Args:
        tokens: The tokens to label.
        outcomes: The outcome labels, parallel to the distribution vectors.
        distribution: Returns the outcome probabilities for a position given
            the hypothesis built so far.
        validator: Decides whether an outcome may extend a hypothesis.
        beam_size: The number of hypotheses kept after every position.
        num_sequences: How many of the final hypotheses to return.
        min_sequence_score: Final hypotheses scoring below this are dropped.

    Returns:
        Up to ``num_sequences`` hypotheses, best first. Each covers every
        token.

    Raises:
        ValueError: If the validator rejects every outcome for every
            hypothesis at some position.
    """
    if beam_size < 1:
        raise ValueError(f"beam size must be at least 1, got {beam_size}")

    beam: List[BestSequence] = [BestSequence()]
    width = min(beam_size, len(outcomes))

    for i in range(len(tokens)):
        candidates: List[BestSequence] = []
        for path in beam:
            probs = np.asarray(distribution(i, path), dtype=float)
            ranked = np.argsort(-probs, kind="stable")

            extended = False
            for idx in ranked[:width]:
                outcome = outcomes[idx]
                if validator(i, tokens, path.outcomes, outcome):
                    p = float(probs[idx])
                    candidates.append(path.extend(outcome, p, _log(p)))
                    extended = True

            if not extended:
                for idx in ranked[width:]:
                    outcome = outcomes[idx]
                    if validator(i, tokens, path.outcomes, outcome):
                        p = float(probs[idx])
                        candidates.append(path.extend(outcome, p, _log(p)))

        if not candidates:
            raise ValueError(f"No valid outcome exists for token {i} ({tokens[i]!r})")

        beam = nlargest(beam_size, candidates, key=lambda s: s.score)

    finished = [s for s in beam if s.score >= min_sequence_score]
    return nlargest(num_sequences, finished, key=lambda s: s.score)


class BeamSearch(SequenceClassificationModel):
    """
    Wraps a per-position classifier into a sequence model.

    Attributes:
        beam_size: Number of hypotheses kept at each position.
        model: The classifier scoring individual positions.
    """

    def __init__(self, beam_size: int, model: ClassifierModel):
        if beam_size < 1:
            raise ValueError(f"beam size must be at least 1, got {beam_size}")
        self.beam_size = beam_size
        self.model = model

    @property
    def outcomes(self) -> Tuple[str, ...]:
        return tuple(self.model.outcomes)

    def best_sequences(
        self,
        num_sequences: int,
        tokens: Sequence[str],
        additional_context,
        context_generator,
        validator: SequenceValidator,
        min_sequence_score: float = float("-inf"),
    ) -> List[BestSequence]:
        def distribution(index: int, path: BestSequence) -> np.ndarray:
            context = context_generator.get_context(index, tokens, path.outcomes, additional_context)
            return self.model.eval(context)

        return beam_decode(
            tokens,
            self.outcomes,
            distribution,
            validator,
            self.beam_size,
            num_sequences=num_sequences,
            min_sequence_score=min_sequence_score,
        )
