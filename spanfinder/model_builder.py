"""Statistical models behind the name finder and the logic to build them.

The models here are deliberately simple count based estimators:

1.  **Log-odds classifier** (`LogOddsModel`): the `build_weights` function
    counts how often each context feature co-occurs with each outcome,
    smooths the counts (Laplace smoothing), turns the conditional
    probabilities into log-odds and stores them relative to the outcome
    prior. At prediction time the weights of all active features are summed
    per outcome and normalized with a softmax.
2.  **Transition sequence model** (`TransitionSequenceModel`): a log-odds
    classifier that only looks at the tokens, combined with a table of
    outcome-to-outcome transition probabilities learned from gold label
    bigrams. It decodes whole sequences on its own and therefore does not
    need to be wrapped into a beam search.
"""
from __future__ import annotations
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .beam_search import DEFAULT_BEAM_SIZE, ClassifierModel, SequenceClassificationModel, beam_decode
from .types import BestSequence, Event

__all__ = [
    "SEQUENCE_START", "log_odds", "softmax", "LogOddsModel", "build_weights",
    "build_transitions", "TransitionSequenceModel",
]

logger = logging.getLogger(__name__)

SEQUENCE_START = "<s>"


def log_odds(p, eps: float = 1e-6):
    """
    Converts a probability (or an array of probabilities) to log-odds.

    Args:
        p: The probability (0.0 to 1.0).
        eps: A small epsilon value to prevent division by zero or log(0).

    Returns:
        The log-odds representation of the probability.
    """
    p = np.clip(p, eps, 1 - eps)
    return np.log(p / (1 - p))


def softmax(scores: np.ndarray) -> np.ndarray:
    shifted = np.exp(scores - np.max(scores))
    return shifted / shifted.sum()


class LogOddsModel(ClassifierModel):
    """
    A per-position classifier built from smoothed feature/outcome counts.

    Attributes:
        outcomes: The outcome labels, in the column order of ``weights``.
        features: Maps each known feature to its row in ``weights``.
        weights: Matrix of per-feature log-odds, relative to the prior.
        prior: Log-odds of each outcome before any feature is seen.
    """

    def __init__(
        self,
        outcomes: Sequence[str],
        features: Sequence[str],
        weights: np.ndarray,
        prior: np.ndarray,
    ):
        self.outcomes = tuple(outcomes)
        self.features: Dict[str, int] = {feature: i for i, feature in enumerate(features)}
        self.weights = np.asarray(weights, dtype=float).reshape(len(self.features), len(self.outcomes))
        self.prior = np.asarray(prior, dtype=float)

    def scores(self, context: Iterable[str]) -> np.ndarray:
        rows = sorted({self.features[f] for f in context if f in self.features})
        total = self.prior.copy()
        if rows:
            total += self.weights[rows].sum(axis=0)
        return total

    def eval(self, context: Sequence[str]) -> np.ndarray:
        return softmax(self.scores(context))

    def __repr__(self) -> str:
        return f"LogOddsModel(outcomes={len(self.outcomes)}, features={len(self.features)})"


def build_weights(
    events: Sequence[Event],
    alpha: float = 0.1,
    cutoff: int = 0,
    sample_weights: Optional[Sequence[float]] = None,
) -> LogOddsModel:
    """
    Builds a log-odds classifier from labeled training events.

    For every feature the weighted number of events per outcome is counted,
    smoothed with ``alpha`` and normalized into the conditional probability
    of each outcome given the feature. These probabilities are converted to
    log-odds and stored relative to the log-odds of the outcome prior.

    Args:
        events: The training events.
        alpha: A smoothing factor (Laplace smoothing) to prevent zero
            probabilities.
        cutoff: Features seen in fewer than ``cutoff`` events are dropped.
        sample_weights: An optional weight per event, used for iterative
            reweighting. Defaults to a uniform weight of 1.0.

    Returns:
        The trained `LogOddsModel`.

    Raises:
        ValueError: If there are no events, or the sample weights do not
            match the events.
    """
    if not events:
        raise ValueError("No training events. Cannot build weights.")
    if sample_weights is not None and len(sample_weights) != len(events):
        raise ValueError(
            f"Expected {len(events)} sample weights, got {len(sample_weights)}"
        )

    outcomes = sorted({event.outcome for event in events})
    weights = pd.Series(
        np.ones(len(events)) if sample_weights is None else np.asarray(sample_weights, dtype=float)
    )

    outcome_totals = (
        pd.DataFrame({"outcome": [e.outcome for e in events], "sample_weight": weights})
        .groupby("outcome")["sample_weight"].sum()
        .reindex(outcomes, fill_value=0.0)
        + alpha
    )
    prior_probs = outcome_totals / outcome_totals.sum()
    prior = log_odds(prior_probs.to_numpy())

    rows = [
        (i, feature, event.outcome)
        for i, event in enumerate(events)
        for feature in set(event.context)
    ]
    df = pd.DataFrame(rows, columns=["event", "feature", "outcome"])
    if df.empty:
        logger.warning("Training events carry no features; only the outcome prior is learned.")
        return LogOddsModel(outcomes, [], np.zeros((0, len(outcomes))), prior)

    if cutoff > 1:
        occurrences = df.groupby("feature")["event"].count()
        kept = occurrences[occurrences >= cutoff].index
        dropped = len(occurrences) - len(kept)
        if dropped:
            logger.info(f"Dropping {dropped} of {len(occurrences)} features below cutoff {cutoff}")
        df = df[df["feature"].isin(kept)]
        if df.empty:
            return LogOddsModel(outcomes, [], np.zeros((0, len(outcomes))), prior)

    df = df.assign(sample_weight=df["event"].map(weights))
    counts = (
        df.groupby(["feature", "outcome"])["sample_weight"].sum()
        .unstack(fill_value=0.0)
        .reindex(columns=outcomes, fill_value=0.0)
        + alpha
    )
    probs = counts.div(counts.sum(axis=1), axis=0)
    feature_weights = log_odds(probs.to_numpy()) - prior

    logger.info(
        f"Built log-odds weights for {len(counts)} features and {len(outcomes)} outcomes "
        f"from {len(events)} events"
    )
    return LogOddsModel(outcomes, list(counts.index), feature_weights, prior)


def build_transitions(
    outcome_sequences: Iterable[Sequence[str]],
    outcomes: Sequence[str],
    alpha: float = 0.1,
) -> pd.DataFrame:
    """
    Estimates outcome transition log-probabilities from gold sequences.

    Returns:
        A DataFrame indexed by the previous outcome (``SEQUENCE_START`` for
        the first position) with one column per outcome.
    """
    pairs: List[Tuple[str, str]] = []
    for sequence in outcome_sequences:
        previous = SEQUENCE_START
        for outcome in sequence:
            pairs.append((previous, outcome))
            previous = outcome

    states = [SEQUENCE_START] + list(outcomes)
    df = pd.DataFrame(pairs, columns=["previous", "outcome"])
    counts = (
        pd.crosstab(df["previous"], df["outcome"])
        .reindex(index=states, columns=list(outcomes), fill_value=0)
        .astype(float)
        + alpha
    )
    return np.log(counts.div(counts.sum(axis=1), axis=0))


class TransitionSequenceModel(SequenceClassificationModel):
    """
    A sequence model combining token evidence with outcome transitions.

    The emission classifier is evaluated on contexts built without outcome
    history, so each position's context is computed once per sequence no
    matter how many hypotheses the search keeps.
    """

    def __init__(self, emission: LogOddsModel, transitions: pd.DataFrame, beam_size: int = DEFAULT_BEAM_SIZE):
        self.emission = emission
        self.transitions = transitions.reindex(
            index=[SEQUENCE_START] + list(emission.outcomes),
            columns=list(emission.outcomes),
        ).fillna(np.log(1.0 / max(1, len(emission.outcomes))))
        self._transition_probs = np.exp(self.transitions.to_numpy())
        self._state_index = {state: i for i, state in enumerate(self.transitions.index)}
        self.beam_size = beam_size

    @property
    def outcomes(self) -> Tuple[str, ...]:
        return self.emission.outcomes

    def best_sequences(
        self,
        num_sequences,
        tokens,
        additional_context,
        context_generator,
        validator,
        min_sequence_score: float = float("-inf"),
    ) -> List[BestSequence]:
        emissions: Dict[int, np.ndarray] = {}

        def distribution(index: int, path: BestSequence) -> np.ndarray:
            if index not in emissions:
                context = context_generator.get_context(index, tokens, None, additional_context)
                emissions[index] = self.emission.eval(context)
            previous = path.outcomes[-1] if path.outcomes else SEQUENCE_START
            combined = emissions[index] * self._transition_probs[self._state_index[previous]]
            return combined / combined.sum()

        return beam_decode(
            tokens,
            self.outcomes,
            distribution,
            validator,
            self.beam_size,
            num_sequences=num_sequences,
            min_sequence_score=min_sequence_score,
        )
