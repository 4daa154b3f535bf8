"""Turns annotated sentences into training material.

`NameFinderEventStream` flattens samples into one `Event` per token, using the
configured sequence codec to derive the gold outcomes. It is what the event
trainers consume.

`NameSampleSequenceStream` keeps each sentence together as an `EventSequence`
for the trainers that work on whole sequences. For historical reasons its
outcomes always come from the built-in BIO encoding and it ignores any type
override; a model trained through it therefore only works with the BIO codec.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from .beam_search import DEFAULT_BEAM_SIZE, BeamSearch, ClassifierModel
from .codec import BioCodec, SequenceCodec
from .context import NameContextGenerator
from .features import AdditionalContextFeatureGenerator, WindowFeatureGenerator, default_feature_generator
from .types import Event, NameSample, Span

__all__ = ["NameFinderEventStream", "EventSequence", "NameSampleSequenceStream"]

logger = logging.getLogger(__name__)


def _attach_additional_context(context_generator: NameContextGenerator) -> AdditionalContextFeatureGenerator:
    generator = AdditionalContextFeatureGenerator()
    context_generator.add_feature_generator(WindowFeatureGenerator(generator, 8, 8))
    return generator


def _check_tokens(sample: NameSample) -> bool:
    if not sample.tokens:
        logger.warning("Skipping a training sample without tokens")
        return False
    return True


class NameFinderEventStream:
    """
    Iterates over the training events of a stream of samples.

    Attributes:
        samples: The annotated sentences, in document order.
        type_override: If set, every name is relabeled with this type.
        context_generator: Builds the feature context of every event.
        codec: Encodes the gold names into outcome labels.
    """

    def __init__(
        self,
        samples: Iterable[NameSample],
        type_override: Optional[str] = None,
        context_generator: Optional[NameContextGenerator] = None,
        codec: Optional[SequenceCodec] = None,
    ):
        self.samples = samples
        self.type_override = type_override
        self.context_generator = context_generator or NameContextGenerator(default_feature_generator())
        self.codec = codec or BioCodec()
        self._additional_context = _attach_additional_context(self.context_generator)

    def _names(self, sample: NameSample) -> Sequence[Span]:
        if self.type_override is None:
            return sample.names
        return [Span(name.start, name.end, self.type_override) for name in sample.names]

    def __iter__(self) -> Iterator[Event]:
        for sample in self.samples:
            if sample.clear_adaptive_data:
                self.context_generator.clear_adaptive_data()
            if not _check_tokens(sample):
                continue

            tokens = sample.tokens
            outcomes = self.codec.encode(self._names(sample), len(tokens))
            self._additional_context.set_current_context(sample.additional_context)
            for i in range(len(tokens)):
                context = self.context_generator.get_context(i, tokens, outcomes, sample.additional_context)
                yield Event(outcomes[i], tuple(context))

            self.context_generator.update_adaptive_data(tokens, outcomes)


@dataclass(frozen=True)
class EventSequence:
    """The events of one sentence, kept together with the sentence itself."""
    events: Tuple[Event, ...]
    sample: NameSample

    @property
    def outcomes(self) -> Tuple[str, ...]:
        return tuple(event.outcome for event in self.events)


class NameSampleSequenceStream:
    """
    Iterates over samples as whole event sequences.

    Attributes:
        samples: The annotated sentences, in document order.
        context_generator: Builds the feature context of every event.
        use_outcomes: If False, contexts are built without outcome history,
            as needed by models that score transitions themselves.
    """

    def __init__(
        self,
        samples: Iterable[NameSample],
        context_generator: Optional[NameContextGenerator] = None,
        use_outcomes: bool = True,
    ):
        self.samples = samples
        self.context_generator = context_generator or NameContextGenerator(default_feature_generator())
        self.use_outcomes = use_outcomes
        self._codec = BioCodec()
        self._additional_context = _attach_additional_context(self.context_generator)

    def __iter__(self) -> Iterator[EventSequence]:
        for sample in self.samples:
            if sample.clear_adaptive_data:
                self.context_generator.clear_adaptive_data()
            if not _check_tokens(sample):
                continue

            tokens = sample.tokens
            outcomes = self._codec.encode(sample.names, len(tokens))
            history = outcomes if self.use_outcomes else None
            self._additional_context.set_current_context(sample.additional_context)
            events = tuple(
                Event(outcomes[i], tuple(self.context_generator.get_context(i, tokens, history, sample.additional_context)))
                for i in range(len(tokens))
            )
            self.context_generator.update_adaptive_data(tokens, outcomes)
            yield EventSequence(events, sample)

    def clear_adaptive_data(self) -> None:
        self.context_generator.clear_adaptive_data()

    def update_context(
        self,
        sequence: EventSequence,
        model: ClassifierModel,
        beam_size: int = DEFAULT_BEAM_SIZE,
    ) -> List[str]:
        """
        Labels a sequence's sentence with ``model`` and returns the outcomes.

        Adaptive state is updated with the predicted outcomes, the same way a
        finder would update it, so callers should replay sequences in
        document order after `clear_adaptive_data`.
        """
        sample = sequence.sample
        if sample.clear_adaptive_data:
            self.context_generator.clear_adaptive_data()

        self._additional_context.set_current_context(sample.additional_context)
        best = BeamSearch(beam_size, model).best_sequence(
            sample.tokens,
            sample.additional_context,
            self.context_generator,
            self._codec.create_sequence_validator(),
        )
        self.context_generator.update_adaptive_data(sample.tokens, best.outcomes)
        return list(best.outcomes)
