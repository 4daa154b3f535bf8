from __future__ import annotations
from typing import List, Optional, Sequence

from .codec import OTHER
from .features import FeatureGenerator, token_class

__all__ = ["NameContextGenerator"]


class NameContextGenerator:
    """
    Produces the feature context the classifier sees for one token position.

    The context is the union of every feature generator's output plus a fixed
    set of outcome history features (``po``, ``pow``, ``powf`` and ``ppo``).
    Outcome history is read from ``prior_outcomes``; passing None means no
    history is available and every earlier outcome is treated as ``other``.

    The context generator owns its feature generators. Extra generators can be
    layered on top with `add_feature_generator`, which is how the finder plugs
    in the generator for caller supplied per-document hints.
    """

    def __init__(self, *generators: FeatureGenerator):
        self.generators: List[FeatureGenerator] = list(generators)

    def add_feature_generator(self, generator: FeatureGenerator) -> None:
        self.generators.append(generator)

    def remove_feature_generator(self, generator: FeatureGenerator) -> None:
        self.generators.remove(generator)

    def get_context(
        self,
        index: int,
        tokens: Sequence[str],
        prior_outcomes: Optional[Sequence[str]],
        additional_context: Optional[Sequence[Sequence[str]]] = None,
    ) -> List[str]:
        features: List[str] = []
        for generator in self.generators:
            generator.create_features(features, tokens, index, prior_outcomes)

        po = OTHER
        ppo = OTHER
        if prior_outcomes is not None:
            if index > 0:
                po = prior_outcomes[index - 1]
            if index > 1:
                ppo = prior_outcomes[index - 2]

        features.append("po=" + po)
        features.append(f"pow={po},{tokens[index]}")
        features.append(f"powf={po},{token_class(tokens[index])}")
        features.append("ppo=" + ppo)
        return features

    def update_adaptive_data(self, tokens: Sequence[str], outcomes: Sequence[str]) -> None:
        if len(tokens) != len(outcomes):
            raise ValueError(
                f"tokens and outcomes must have the same length ({len(tokens)} != {len(outcomes)})"
            )
        for generator in self.generators:
            generator.update_adaptive_data(tokens, outcomes)

    def clear_adaptive_data(self) -> None:
        for generator in self.generators:
            generator.clear_adaptive_data()
