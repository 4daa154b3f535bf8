from __future__ import annotations

__all__ = ["InvalidFormatError", "FeatureGeneratorCreationError"]


class InvalidFormatError(ValueError):
    """Raised when a descriptor, a setting or an implementation name is invalid.

    These errors are surfaced to whoever builds a factory, a codec or starts
    training, and always mention the offending identifier.
    """


class FeatureGeneratorCreationError(RuntimeError):
    """A feature generator descriptor failed to build from a trained model.

    The descriptor was already built once when the model was trained, so a
    failure here points to a broken environment rather than bad user input.
    """

    def __init__(self, cause: Exception):
        super().__init__(f"Failed to re-create the feature generators: {cause}")
        self.__cause__ = cause
