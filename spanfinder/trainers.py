"""Trainer families and their selection from training parameters.

Three families of trainers exist, distinguished by what they consume and
what they produce:

*   `TrainerType.EVENT_MODEL_TRAINER`: consumes a flat stream of events and
    produces a per-position classifier. The finder wraps the classifier into
    a beam search at inference time.
*   `TrainerType.EVENT_MODEL_SEQUENCE_TRAINER`: consumes whole event
    sequences but still produces a per-position classifier.
*   `TrainerType.SEQUENCE_TRAINER`: consumes whole event sequences and
    produces a model that decodes sequences by itself.

The ``Algorithm`` setting picks the trainer through a registry. Every trainer
records what it did as ``Training-*`` entries in the manifest map it is given,
which ends up in the trained model.
"""
from __future__ import annotations
import logging
from enum import Enum
from typing import Dict, Iterable, List, Tuple, Type

import numpy as np
from tqdm import tqdm

from .beam_search import DEFAULT_BEAM_SIZE, ClassifierModel, SequenceClassificationModel
from .config import (
    ALGORITHM_PARAM,
    BEAM_SIZE_PARAM,
    CUTOFF_PARAM,
    ERROR_BOOST_PARAM,
    ITERATIONS_PARAM,
    SMOOTHING_PARAM,
    TRAINER_TYPE_PARAM,
    TrainingParameters,
)
from .errors import InvalidFormatError
from .event_stream import EventSequence, NameSampleSequenceStream
from .model_builder import TransitionSequenceModel, build_transitions, build_weights
from .types import Event

__all__ = [
    "TrainerType", "DEFAULT_ALGORITHM", "Trainer", "EventTrainer", "EventModelSequenceTrainer",
    "SequenceTrainer", "LogOddsTrainer", "ReweightedSequenceTrainer", "TransitionSequenceTrainer",
    "register_trainer", "get_trainer_type", "get_event_trainer",
    "get_event_model_sequence_trainer", "get_sequence_model_trainer",
]

logger = logging.getLogger(__name__)

DEFAULT_ALGORITHM = "LOGODDS"
DEFAULT_CUTOFF = 5
DEFAULT_ITERATIONS = 3
DEFAULT_SMOOTHING = 0.1


class TrainerType(Enum):
    EVENT_MODEL_TRAINER = "Event"
    EVENT_MODEL_SEQUENCE_TRAINER = "EventModelSequence"
    SEQUENCE_TRAINER = "Sequence"


class Trainer:
    """
    Common base of all trainers.

    Attributes:
        params: The training parameters.
        manifest: Metadata entries; trainers add ``Training-*`` keys here.
    """

    algorithm: str = ""
    trainer_type: TrainerType

    def __init__(self, params: TrainingParameters, manifest: Dict[str, str]):
        self.params = params
        self.manifest = manifest
        self.cutoff = params.get_int(CUTOFF_PARAM, DEFAULT_CUTOFF)
        self.smoothing = params.get_float(SMOOTHING_PARAM, DEFAULT_SMOOTHING)
        if self.cutoff < 0:
            raise InvalidFormatError(f"{CUTOFF_PARAM} must not be negative, got {self.cutoff}")
        if self.smoothing <= 0:
            raise InvalidFormatError(f"{SMOOTHING_PARAM} must be positive, got {self.smoothing}")

    def _report(self, **entries) -> None:
        self.manifest["Training-Algorithm"] = self.algorithm
        self.manifest["Training-Cutoff"] = str(self.cutoff)
        for key, value in entries.items():
            self.manifest["Training-" + key.capitalize()] = str(value)


class EventTrainer(Trainer):
    trainer_type = TrainerType.EVENT_MODEL_TRAINER

    def train(self, events: Iterable[Event]) -> ClassifierModel:
        raise NotImplementedError


class EventModelSequenceTrainer(Trainer):
    trainer_type = TrainerType.EVENT_MODEL_SEQUENCE_TRAINER

    def train(self, sequences: NameSampleSequenceStream) -> ClassifierModel:
        raise NotImplementedError


class SequenceTrainer(Trainer):
    trainer_type = TrainerType.SEQUENCE_TRAINER

    def train(self, sequences: NameSampleSequenceStream) -> SequenceClassificationModel:
        raise NotImplementedError


_TRAINERS: Dict[str, Type[Trainer]] = {}


def register_trainer(algorithm: str):
    """Class decorator making a trainer selectable through ``Algorithm``."""
    def decorator(cls: Type[Trainer]) -> Type[Trainer]:
        cls.algorithm = algorithm
        _TRAINERS[algorithm] = cls
        return cls
    return decorator


def _collect_sequences(sequences: Iterable[EventSequence]) -> List[EventSequence]:
    return list(tqdm(sequences, desc="Collecting sequences", unit="sequence"))


@register_trainer("LOGODDS")
class LogOddsTrainer(EventTrainer):
    """Builds a log-odds classifier in a single counting pass."""

    def train(self, events: Iterable[Event]) -> ClassifierModel:
        collected = list(tqdm(events, desc="Collecting events", unit="event"))
        logger.info(f"Training {self.algorithm} model on {len(collected)} events")
        model = build_weights(collected, alpha=self.smoothing, cutoff=self.cutoff)
        self._report(events=len(collected), outcomes=len(model.outcomes), features=len(model.features))
        return model


@register_trainer("REWEIGHTED_SEQUENCE")
class ReweightedSequenceTrainer(EventModelSequenceTrainer):
    """
    Builds a log-odds classifier with iterative reweighting of hard sentences.

    Each iteration builds the weights, labels every training sentence with
    the current model and boosts the weight of the tokens it got wrong.
    Training stops after ``Iterations`` rounds or as soon as the training
    set is labeled without errors.
    """

    def __init__(self, params: TrainingParameters, manifest: Dict[str, str]):
        super().__init__(params, manifest)
        self.iterations = params.get_int(ITERATIONS_PARAM, DEFAULT_ITERATIONS)
        self.error_boost = params.get_float(ERROR_BOOST_PARAM, 1.0)
        self.beam_size = params.get_int(BEAM_SIZE_PARAM, DEFAULT_BEAM_SIZE)
        if self.iterations < 1:
            raise InvalidFormatError(f"{ITERATIONS_PARAM} must be at least 1, got {self.iterations}")

    def train(self, sequences: NameSampleSequenceStream) -> ClassifierModel:
        collected = _collect_sequences(sequences)
        events = [event for sequence in collected for event in sequence.events]
        sample_weights = np.ones(len(events))
        logger.info(f"Training {self.algorithm} model on {len(collected)} sequences ({len(events)} events)")

        model = None
        completed = 0
        for i in range(self.iterations):
            logger.info(f"Starting training iteration {i + 1}/{self.iterations}")
            model = build_weights(events, alpha=self.smoothing, cutoff=self.cutoff, sample_weights=sample_weights)
            completed = i + 1
            if i == self.iterations - 1:
                break

            sequences.clear_adaptive_data()
            errors: List[int] = []
            offset = 0
            for sequence in tqdm(collected, desc=f"Predicting (iter {i + 1})", unit="sequence"):
                predicted = sequences.update_context(sequence, model, self.beam_size)
                errors.extend(
                    offset + j
                    for j, (gold, guess) in enumerate(zip(sequence.outcomes, predicted))
                    if gold != guess
                )
                offset += len(sequence.events)

            accuracy = 1 - len(errors) / max(1, len(events))
            logger.info(f"Iteration {i + 1} accuracy on training set: {accuracy:.2%}")
            if not errors:
                logger.info("Model labels the training set without errors. Stopping early.")
                break
            sample_weights[errors] += self.error_boost

        self._report(events=len(events), iterations=completed, outcomes=len(model.outcomes))
        return model


@register_trainer("TRANSITION_SEQUENCE")
class TransitionSequenceTrainer(SequenceTrainer):
    """Builds a `TransitionSequenceModel` from whole gold sequences."""

    def train(self, sequences: NameSampleSequenceStream) -> SequenceClassificationModel:
        collected = _collect_sequences(sequences)
        events = [event for sequence in collected for event in sequence.events]
        logger.info(f"Training {self.algorithm} model on {len(collected)} sequences ({len(events)} events)")

        emission = build_weights(events, alpha=self.smoothing, cutoff=self.cutoff)
        transitions = build_transitions(
            (sequence.outcomes for sequence in collected), emission.outcomes, alpha=self.smoothing
        )
        beam_size = self.params.get_int(BEAM_SIZE_PARAM, DEFAULT_BEAM_SIZE)
        self._report(events=len(events), outcomes=len(emission.outcomes))
        return TransitionSequenceModel(emission, transitions, beam_size)


def _lookup(params: TrainingParameters) -> Tuple[str, Type[Trainer]]:
    algorithm = params.get(ALGORITHM_PARAM, DEFAULT_ALGORITHM)
    trainer_cls = _TRAINERS.get(algorithm)
    if trainer_cls is None:
        raise InvalidFormatError(
            f"Unknown training algorithm '{algorithm}'. Available algorithms: {sorted(_TRAINERS)}"
        )
    return algorithm, trainer_cls


def get_trainer_type(params: TrainingParameters) -> TrainerType:
    """
    Determines the trainer family selected by the training parameters.

    Raises:
        InvalidFormatError: If the algorithm is unknown, or an explicit
            ``TrainerType`` contradicts the algorithm.
    """
    algorithm, trainer_cls = _lookup(params)
    explicit = params.get(TRAINER_TYPE_PARAM)
    if explicit is not None and explicit != trainer_cls.trainer_type.value:
        raise InvalidFormatError(
            f"{TRAINER_TYPE_PARAM} '{explicit}' does not match algorithm '{algorithm}' "
            f"({trainer_cls.trainer_type.value})"
        )
    return trainer_cls.trainer_type


def _create(params: TrainingParameters, manifest: Dict[str, str], expected: TrainerType) -> Trainer:
    algorithm, trainer_cls = _lookup(params)
    if trainer_cls.trainer_type is not expected:
        raise InvalidFormatError(
            f"Algorithm '{algorithm}' is a {trainer_cls.trainer_type.value} trainer, not {expected.value}"
        )
    return trainer_cls(params, manifest)


def get_event_trainer(params: TrainingParameters, manifest: Dict[str, str]) -> EventTrainer:
    return _create(params, manifest, TrainerType.EVENT_MODEL_TRAINER)


def get_event_model_sequence_trainer(params: TrainingParameters, manifest: Dict[str, str]) -> EventModelSequenceTrainer:
    return _create(params, manifest, TrainerType.EVENT_MODEL_SEQUENCE_TRAINER)


def get_sequence_model_trainer(params: TrainingParameters, manifest: Dict[str, str]) -> SequenceTrainer:
    return _create(params, manifest, TrainerType.SEQUENCE_TRAINER)
