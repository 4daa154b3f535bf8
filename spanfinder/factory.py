"""Creates the codec and context generator a name finder runs with.

A factory works in one of two modes:

*   **Training mode**: the caller hands over the generator descriptor, the
    resources and the codec directly.
*   **Live mode** (`TokenNameFinderFactory.from_model`): everything is read
    from a trained `TokenNameFinderModel` (codec name from its manifest,
    descriptor and resources from its artifacts).

Most of what the name finder uses can be swapped through a factory subclass,
registered under a name with `register_factory`.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, Mapping, Optional, Type, Union

from .codec import SequenceCodec, create_codec
from .context import NameContextGenerator
from .errors import FeatureGeneratorCreationError, InvalidFormatError
from .features import FeatureGenerator, default_feature_generator
from .generator_factory import create_generator
from .model import SEQUENCE_CODEC_NAME_PARAMETER, TokenNameFinderModel

__all__ = ["TokenNameFinderFactory", "register_factory", "instantiate_sequence_codec"]

logger = logging.getLogger(__name__)

_FACTORIES: Dict[str, Type["TokenNameFinderFactory"]] = {}


def register_factory(name: str):
    """Class decorator making a factory subclass available by name."""
    def decorator(cls):
        cls.name = name
        _FACTORIES[name] = cls
        return cls
    return decorator


def instantiate_sequence_codec(name: Optional[str]) -> SequenceCodec:
    """Creates the codec registered as ``name``; None gives the BIO default."""
    return create_codec(name)


@register_factory("default")
class TokenNameFinderFactory:
    """
    Builds codecs and context generators for training and inference.

    Attributes:
        generator_descriptor: The feature generator descriptor, or None to
            use the model's descriptor (live mode) or the default features.
        resources: Resources available to the descriptor in training mode.
        codec: The sequence codec used in training mode.
        model: The trained model in live mode, otherwise None.
    """

    name: Optional[str] = None

    def __init__(
        self,
        generator_descriptor: Optional[Union[bytes, str]] = None,
        resources: Optional[Mapping[str, Any]] = None,
        codec: Optional[SequenceCodec] = None,
    ):
        if isinstance(generator_descriptor, str):
            generator_descriptor = generator_descriptor.encode("utf-8")
        self.generator_descriptor = generator_descriptor
        self.resources: Dict[str, Any] = dict(resources or {})
        self.codec = codec if codec is not None else create_codec(None)
        self.model: Optional[TokenNameFinderModel] = None

    @staticmethod
    def create(
        name: Optional[str],
        generator_descriptor: Optional[Union[bytes, str]] = None,
        resources: Optional[Mapping[str, Any]] = None,
        codec: Optional[SequenceCodec] = None,
    ) -> "TokenNameFinderFactory":
        """
        Instantiates the factory registered under ``name``.

        Args:
            name: The registered factory name, or None for this default class.

        Raises:
            InvalidFormatError: If ``name`` is unknown or the factory fails
                to initialize. The underlying error is chained.
        """
        if name is None:
            return TokenNameFinderFactory(generator_descriptor, resources, codec)
        try:
            return _FACTORIES[name](generator_descriptor, resources, codec)
        except Exception as e:
            logger.error(f"Could not instantiate the factory '{name}': {e}")
            raise InvalidFormatError(
                f"Could not instantiate the factory '{name}'. The initialization threw an exception."
            ) from e

    @classmethod
    def from_model(cls, model: TokenNameFinderModel) -> "TokenNameFinderFactory":
        factory = cls.create(model.factory_name)
        factory.model = model
        return factory

    def get_sequence_codec(self) -> SequenceCodec:
        return self.codec

    def get_codec_name(self) -> str:
        return self.codec.name

    def get_resources(self) -> Dict[str, Any]:
        return self.resources

    def create_sequence_codec(self) -> SequenceCodec:
        if self.model is not None:
            return instantiate_sequence_codec(self.model.get_manifest_property(SEQUENCE_CODEC_NAME_PARAMETER))
        return self.codec

    def _descriptor(self) -> Optional[bytes]:
        if self.generator_descriptor is None and self.model is not None:
            return self.model.generator_descriptor
        return self.generator_descriptor

    def _resolve_resource(self, key: str) -> Optional[Any]:
        if self.model is not None:
            return self.model.get_artifact(key)
        return self.resources.get(key)

    def create_feature_generators(self) -> Optional[FeatureGenerator]:
        """
        Creates a fresh feature generator pipeline from the descriptor.

        Returns:
            The pipeline, or None if there is no descriptor.

        Raises:
            InvalidFormatError: In training mode, if the descriptor is
                malformed or references a missing resource.
            FeatureGeneratorCreationError: In live mode, if the model's
                descriptor no longer builds.
        """
        descriptor = self._descriptor()
        if descriptor is None:
            return None
        try:
            return create_generator(descriptor, self._resolve_resource)
        except InvalidFormatError as e:
            if self.model is not None:
                raise FeatureGeneratorCreationError(e) from e
            raise

    def create_context_generator(self) -> NameContextGenerator:
        generator = self.create_feature_generators()
        if generator is None:
            generator = default_feature_generator()
        return NameContextGenerator(generator)
