"""Training parameters and finder options.

This module defines the two configuration objects of the package:

*   `TrainingParameters`, a free-form settings map handed to the trainers.
    Settings are kept as strings (exactly as they would appear in a
    parameters file) and parsed by typed accessors. `load_training_parameters`
    reads them from a YAML file.
*   `FinderOptions`, the optional overrides a `NameFinder` accepts on top of
    what its model specifies.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml

from .codec import SequenceValidator
from .errors import InvalidFormatError
from .features import FeatureGenerator

__all__ = [
    "ALGORITHM_PARAM", "TRAINER_TYPE_PARAM", "ITERATIONS_PARAM", "CUTOFF_PARAM",
    "BEAM_SIZE_PARAM", "SMOOTHING_PARAM", "ERROR_BOOST_PARAM",
    "TrainingParameters", "load_training_parameters", "FinderOptions",
]

ALGORITHM_PARAM = "Algorithm"
TRAINER_TYPE_PARAM = "TrainerType"
ITERATIONS_PARAM = "Iterations"
CUTOFF_PARAM = "Cutoff"
BEAM_SIZE_PARAM = "BeamSize"
SMOOTHING_PARAM = "Smoothing"
ERROR_BOOST_PARAM = "ErrorBoost"


def _as_setting(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass
class TrainingParameters:
    """
    The settings map passed to trainers.

    Recognized keys are ``Algorithm`` (selects the trainer), ``TrainerType``
    (optional, must agree with the algorithm), ``Iterations``, ``Cutoff``,
    ``BeamSize``, ``Smoothing`` and ``ErrorBoost``. Unknown keys are kept so
    custom trainers can read them.
    """
    settings: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.settings = {str(k): _as_setting(v) for k, v in self.settings.items()}

    @classmethod
    def defaults(cls) -> "TrainingParameters":
        return cls({ALGORITHM_PARAM: "LOGODDS", ITERATIONS_PARAM: "3", CUTOFF_PARAM: "5", BEAM_SIZE_PARAM: "3"})

    def put(self, key: str, value: Any) -> None:
        self.settings[key] = _as_setting(value)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.settings.get(key, default)

    def get_int(self, key: str, default: int) -> int:
        value = self.settings.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            raise InvalidFormatError(f"Training parameter '{key}' must be an integer, got: {value!r}") from None

    def get_float(self, key: str, default: float) -> float:
        value = self.settings.get(key)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            raise InvalidFormatError(f"Training parameter '{key}' must be a number, got: {value!r}") from None


def load_training_parameters(path: str) -> TrainingParameters:
    """
    Loads training parameters from a YAML file.

    The file must contain a flat mapping of setting names to scalar values,
    for example::

        Algorithm: LOGODDS
        Iterations: 100
        Cutoff: 5
        BeamSize: 3

    Args:
        path: The path to the YAML file.

    Returns:
        The populated `TrainingParameters`.

    Raises:
        FileNotFoundError: If the file cannot be found.
        ValueError: If the file is not valid YAML.
        TypeError: If the root of the file is not a mapping, or a value is
            not a scalar.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            y = yaml.safe_load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Training parameters file not found at: {path}")
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML file at {path}: {e}")

    if not isinstance(y, dict):
        raise TypeError(f"Training parameters file {path} must be a dictionary.")

    for key, value in y.items():
        if isinstance(value, (dict, list)):
            raise TypeError(f"Training parameter '{key}' in {path} must be a scalar value.")

    return TrainingParameters(dict(y))


@dataclass(frozen=True)
class FinderOptions:
    """
    Optional overrides for a `NameFinder`.

    Attributes:
        beam_size: Beam width used when the model holds a plain classifier.
            None keeps the width stored in the model. Ignored for models
            that decode sequences natively.
        feature_generator: Replaces the feature generators the model's
            factory would create.
        sequence_validator: Replaces the validator of the model's codec.
    """
    beam_size: Optional[int] = None
    feature_generator: Optional[FeatureGenerator] = None
    sequence_validator: Optional[SequenceValidator] = None
