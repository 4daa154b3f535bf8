"""Finds names in tokenized sentences and trains the models that do so.

`NameFinder` is the inference entry point: it labels every token of a sentence
with the model's sequence decoder, remembers the labels for the adaptive
feature generators and turns the labels back into spans with the model's
codec. One finder holds per-document state, so callers should use one
instance per document stream and call `clear_adaptive_data` at document
boundaries.

`NameFinder.train` is the training entry point and `drop_overlapping_spans`
resolves overlaps between spans coming from several finders.
"""
from __future__ import annotations
import logging
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from .beam_search import DEFAULT_BEAM_SIZE, BeamSearch
from .config import BEAM_SIZE_PARAM, FinderOptions, TrainingParameters
from .context import NameContextGenerator
from .event_stream import NameFinderEventStream, NameSampleSequenceStream
from .factory import TokenNameFinderFactory
from .features import AdditionalContextFeatureGenerator, WindowFeatureGenerator
from .model import TokenNameFinderModel
from .trainers import (
    TrainerType,
    get_event_model_sequence_trainer,
    get_event_trainer,
    get_sequence_model_trainer,
    get_trainer_type,
)
from .types import BestSequence, NameSample, Span

__all__ = ["NameFinder", "drop_overlapping_spans"]

logger = logging.getLogger(__name__)


class NameFinder:
    """
    Labels token sequences with a trained `TokenNameFinderModel`.

    Attributes:
        model: The trained model.
        options: Overrides applied on top of the model.
        codec: The codec decoding outcomes into spans.
        validator: Restricts the decoder to legal outcome sequences.
        sequence_model: Decodes whole sentences; a beam search over the
            model's classifier unless the model decodes natively.
        context_generator: Builds the features of every token position.
    """

    def __init__(self, model: TokenNameFinderModel, options: Optional[FinderOptions] = None):
        self.model = model
        self.options = options or FinderOptions()
        factory = model.get_factory()

        self.codec = factory.create_sequence_codec()
        self.validator = self.options.sequence_validator or self.codec.create_sequence_validator()

        if model.sequence_model is not None:
            self.sequence_model = model.sequence_model
        else:
            beam_size = self.options.beam_size or model.beam_size
            self.sequence_model = BeamSearch(beam_size, model.name_finder_model)

        if self.options.feature_generator is not None:
            self.context_generator = NameContextGenerator(self.options.feature_generator)
        else:
            self.context_generator = factory.create_context_generator()

        self._additional_context = AdditionalContextFeatureGenerator()
        self.context_generator.add_feature_generator(WindowFeatureGenerator(self._additional_context, 8, 8))
        self._best_sequence: Optional[BestSequence] = None

    def find(
        self,
        tokens: Sequence[str],
        additional_context: Optional[Sequence[Sequence[str]]] = None,
    ) -> List[Span]:
        """
        Finds the names in one sentence.

        Args:
            tokens: The tokens of the sentence.
            additional_context: Optional per-token hints, one list of strings
                per token, exposed to the classifier as ``ne=`` features.

        Returns:
            The names found, in order of position.
        """
        tokens = tuple(tokens)
        self._additional_context.set_current_context(additional_context)
        best = self.sequence_model.best_sequence(
            tokens, additional_context, self.context_generator, self.validator
        )
        self._best_sequence = best
        self.context_generator.update_adaptive_data(tokens, best.outcomes)
        return self.codec.decode(best.outcomes)

    def clear_adaptive_data(self) -> None:
        """Forgets everything learned from earlier sentences of the document."""
        self.context_generator.clear_adaptive_data()

    def _last_decode(self) -> BestSequence:
        if self._best_sequence is None:
            raise RuntimeError("No sentence has been labeled yet; call find() first")
        return self._best_sequence

    def probs(self, out: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Returns the probability of each outcome of the last decode.

        Args:
            out: Optional array to fill; only its first ``len(tokens)``
                entries are written.

        Raises:
            RuntimeError: If `find` has not been called yet.
        """
        probs = np.asarray(self._last_decode().probs, dtype=float)
        if out is None:
            return probs
        out[: len(probs)] = probs
        return out

    def span_probs(self, spans: Iterable[Span]) -> List[float]:
        """
        Returns the mean token probability of each span of the last decode.

        Raises:
            RuntimeError: If `find` has not been called yet.
            ValueError: If a span extends beyond the last decoded sentence.
        """
        probs = self.probs()
        result = []
        for span in spans:
            if span.end > len(probs):
                raise ValueError(f"span {span} is outside of the last decoded sentence ({len(probs)} tokens)")
            result.append(float(np.mean(probs[span.start:span.end])))
        return result

    @staticmethod
    def train(
        language: str,
        samples: Iterable[NameSample],
        params: TrainingParameters,
        factory: Optional[TokenNameFinderFactory] = None,
        type_override: Optional[str] = None,
    ) -> TokenNameFinderModel:
        """
        Trains a name finder model.

        The ``Algorithm`` setting selects the trainer and with it the trainer
        family. Event trainers see the samples flattened into events encoded
        with the factory's codec. The sequence trainers see whole sentences
        encoded with BIO regardless of the factory's codec, and ignore
        ``type_override``.

        Args:
            language: Language code stored in the model.
            samples: The training sentences, in document order.
            params: The training parameters.
            factory: Supplies the codec, descriptor and resources. Defaults
                to a plain `TokenNameFinderFactory`.
            type_override: If set, every training name gets this type.

        Returns:
            The trained model.

        Raises:
            InvalidFormatError: If the parameters select an unknown
                algorithm, or the descriptor cannot be built.
        """
        factory = factory or TokenNameFinderFactory()
        beam_size = params.get_int(BEAM_SIZE_PARAM, DEFAULT_BEAM_SIZE)
        manifest: Dict[str, str] = {}

        trainer_type = get_trainer_type(params)
        logger.info(f"Training a {language} name finder with a {trainer_type.value} trainer")

        name_finder_model = None
        sequence_model = None
        if trainer_type is TrainerType.EVENT_MODEL_TRAINER:
            events = NameFinderEventStream(
                samples, type_override, factory.create_context_generator(), factory.create_sequence_codec()
            )
            name_finder_model = get_event_trainer(params, manifest).train(events)
        elif trainer_type is TrainerType.EVENT_MODEL_SEQUENCE_TRAINER:
            sequences = NameSampleSequenceStream(samples, factory.create_context_generator())
            name_finder_model = get_event_model_sequence_trainer(params, manifest).train(sequences)
        elif trainer_type is TrainerType.SEQUENCE_TRAINER:
            sequences = NameSampleSequenceStream(samples, factory.create_context_generator(), use_outcomes=False)
            sequence_model = get_sequence_model_trainer(params, manifest).train(sequences)
        else:
            # get_trainer_type only returns TrainerType members.
            raise RuntimeError("Unexpected trainer type!")

        return TokenNameFinderModel(
            language,
            name_finder_model=name_finder_model,
            sequence_model=sequence_model,
            beam_size=beam_size if name_finder_model is not None else None,
            resources=factory.get_resources(),
            manifest=manifest,
            codec_name=factory.get_codec_name(),
            generator_descriptor=factory.generator_descriptor,
            factory_name=factory.name,
        )


def drop_overlapping_spans(spans: Iterable[Span]) -> List[Span]:
    """
    Removes spans overlapping an earlier kept span.

    Spans are visited in their natural order; a span intersecting the last
    kept span is dropped. The result is sorted and free of overlaps, though
    not necessarily the largest such subset.
    """
    kept: List[Span] = []
    for span in sorted(spans):
        if kept and kept[-1].intersects(span):
            continue
        kept.append(span)
    return kept
