"""The trained name finder model artifact.

A `TokenNameFinderModel` bundles everything a `NameFinder` needs at inference
time: the statistical model, the beam width, the name of the sequence codec it
was trained with, the feature generator descriptor and the resources the
descriptor refers to. It is created by `NameFinder.train` and never changes
afterwards. Writing it to disk is out of scope for this package.
"""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from .beam_search import DEFAULT_BEAM_SIZE, BeamSearch, ClassifierModel, SequenceClassificationModel
from .codec import DEFAULT_CODEC_NAME, create_codec
from .errors import InvalidFormatError

__all__ = [
    "GENERATOR_DESCRIPTOR_ENTRY_NAME", "SEQUENCE_CODEC_NAME_PARAMETER", "BEAM_SIZE_PARAMETER",
    "FACTORY_NAME_PARAMETER", "LANGUAGE_PARAMETER", "TokenNameFinderModel",
]

GENERATOR_DESCRIPTOR_ENTRY_NAME = "ner.featuregen"
SEQUENCE_CODEC_NAME_PARAMETER = "sequenceCodecImplName"
BEAM_SIZE_PARAMETER = "BeamSize"
FACTORY_NAME_PARAMETER = "factory"
LANGUAGE_PARAMETER = "Language"


@dataclass(frozen=True, eq=False)
class TokenNameFinderModel:
    """
    An immutable trained name finder.

    Exactly one of ``name_finder_model`` (a per-position classifier, decoded
    with a beam search of ``beam_size``) and ``sequence_model`` (a model that
    decodes sequences itself) is set.

    Attributes:
        language: Language code of the training data, e.g. ``"en"``.
        name_finder_model: The per-position classifier, or None.
        sequence_model: The native sequence model, or None.
        beam_size: Beam width for the classifier; None for sequence models.
        resources: Named resources (dictionaries) the descriptor refers to.
        manifest: Metadata entries, including the ``Training-*`` report.
        codec_name: Registry name of the sequence codec.
        generator_descriptor: The YAML feature generator descriptor, or None
            for the default feature generation.
        factory_name: Registry name of the factory, None for the default one.

    Raises:
        ValueError: If both or neither model is given, or a beam size is
            given for a sequence model.
        InvalidFormatError: If the codec is unknown or cannot express the
            model's outcomes.
    """
    language: str
    name_finder_model: Optional[ClassifierModel] = None
    sequence_model: Optional[SequenceClassificationModel] = None
    beam_size: Optional[int] = None
    resources: Mapping[str, Any] = field(default_factory=dict)
    manifest: Mapping[str, str] = field(default_factory=dict)
    codec_name: str = DEFAULT_CODEC_NAME
    generator_descriptor: Optional[bytes] = None
    factory_name: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.language:
            raise ValueError("language must not be empty")
        if (self.name_finder_model is None) == (self.sequence_model is None):
            raise ValueError("Exactly one of name_finder_model and sequence_model must be set")

        if self.sequence_model is not None:
            if self.beam_size is not None:
                raise ValueError("beam_size only applies to models wrapped into a beam search")
        elif self.beam_size is None:
            object.__setattr__(self, "beam_size", DEFAULT_BEAM_SIZE)
        elif self.beam_size < 1:
            raise ValueError(f"beam size must be at least 1, got {self.beam_size}")

        if isinstance(self.generator_descriptor, str):
            object.__setattr__(self, "generator_descriptor", self.generator_descriptor.encode("utf-8"))

        codec = create_codec(self.codec_name)
        outcomes = self.get_sequence_model().outcomes
        if not codec.are_outcomes_compatible(outcomes):
            raise InvalidFormatError(
                f"Model outcomes {sorted(outcomes)} are not compatible with the '{self.codec_name}' codec"
            )

        manifest = dict(self.manifest)
        manifest[LANGUAGE_PARAMETER] = self.language
        manifest[SEQUENCE_CODEC_NAME_PARAMETER] = self.codec_name
        if self.beam_size is not None:
            manifest[BEAM_SIZE_PARAMETER] = str(self.beam_size)
        if self.factory_name is not None:
            manifest[FACTORY_NAME_PARAMETER] = self.factory_name
        object.__setattr__(self, "manifest", MappingProxyType(manifest))
        object.__setattr__(self, "resources", MappingProxyType(dict(self.resources)))

    def get_sequence_model(self) -> SequenceClassificationModel:
        if self.sequence_model is not None:
            return self.sequence_model
        return BeamSearch(self.beam_size, self.name_finder_model)

    def get_artifact(self, name: str) -> Optional[Any]:
        if name == GENERATOR_DESCRIPTOR_ENTRY_NAME:
            return self.generator_descriptor
        return self.resources.get(name)

    def get_manifest_property(self, name: str) -> Optional[str]:
        return self.manifest.get(name)

    def get_factory(self):
        from .factory import TokenNameFinderFactory
        return TokenNameFinderFactory.from_model(self)

    def update_feature_generator(self, descriptor: Union[bytes, str]) -> "TokenNameFinderModel":
        """Returns a copy of this model using a different generator descriptor."""
        return replace(self, generator_descriptor=descriptor)
