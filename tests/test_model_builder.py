import numpy as np
import pytest

from spanfinder.codec import BioCodec
from spanfinder.context import NameContextGenerator
from spanfinder.features import TokenFeatureGenerator
from spanfinder.model_builder import (
    SEQUENCE_START,
    LogOddsModel,
    TransitionSequenceModel,
    build_transitions,
    build_weights,
    log_odds,
    softmax,
)
from spanfinder.types import Event


def make_events():
    return [
        Event("start-person", ("w=pierre", "def")),
        Event("cont-person", ("w=vinken", "def")),
        Event("other", ("w=said", "def")),
        Event("start-person", ("w=pierre", "def")),
        Event("other", ("w=the", "def")),
        Event("other", ("w=said", "def")),
    ]


def test_log_odds_and_softmax():
    assert log_odds(0.5) == pytest.approx(0.0)
    assert log_odds(0.0) < -10
    probs = softmax(np.array([1.0, 2.0, 3.0]))
    assert probs.sum() == pytest.approx(1.0)
    assert np.argmax(probs) == 2


def test_build_weights_learns_discriminative_features():
    model = build_weights(make_events(), alpha=0.1)
    assert model.outcomes == ("cont-person", "other", "start-person")

    probs = model.eval(["w=pierre", "def"])
    assert probs.sum() == pytest.approx(1.0)
    assert model.get_best_outcome(probs) == "start-person"
    assert model.get_best_outcome(model.eval(["w=vinken", "def"])) == "cont-person"
    assert model.get_best_outcome(model.eval(["w=said"])) == "other"


def test_unknown_features_fall_back_to_the_prior():
    model = build_weights(make_events(), alpha=0.1)
    probs = model.eval(["w=never-seen"])
    assert model.get_best_outcome(probs) == "other"
    assert probs == pytest.approx(softmax(model.prior))


def test_duplicate_features_count_once():
    model = build_weights(make_events(), alpha=0.1)
    assert model.scores(["w=pierre", "w=pierre"]) == pytest.approx(model.scores(["w=pierre"]))


def test_cutoff_drops_rare_features():
    model = build_weights(make_events(), alpha=0.1, cutoff=2)
    assert "w=vinken" not in model.features
    assert "w=pierre" in model.features
    assert "def" in model.features


def test_sample_weights_shift_the_estimate():
    events = [Event("a", ("f",)), Event("b", ("f",))]
    unweighted = build_weights(events, alpha=0.1)
    weighted = build_weights(events, alpha=0.1, sample_weights=[1.0, 5.0])
    assert unweighted.eval(["f"])[0] == pytest.approx(0.5)
    assert weighted.get_best_outcome(weighted.eval(["f"])) == "b"


def test_build_weights_validates_input():
    with pytest.raises(ValueError, match="No training events"):
        build_weights([])
    with pytest.raises(ValueError, match="sample weights"):
        build_weights(make_events(), sample_weights=[1.0])


def test_events_without_features_learn_only_the_prior():
    model = build_weights([Event("other", ()), Event("other", ()), Event("start", ())])
    assert isinstance(model, LogOddsModel)
    assert len(model.features) == 0
    assert model.get_best_outcome(model.eval(["anything"])) == "other"


def test_build_transitions():
    transitions = build_transitions(
        [["start-person", "cont-person", "other"], ["other", "start-person"]],
        ["cont-person", "other", "start-person"],
    )
    assert list(transitions.index) == [SEQUENCE_START, "cont-person", "other", "start-person"]
    assert np.exp(transitions).sum(axis=1).to_numpy() == pytest.approx(np.ones(4))
    assert transitions.loc["start-person", "cont-person"] > transitions.loc["start-person", "start-person"]


def test_transition_model_decodes_with_outcome_bigrams():
    emission = build_weights(make_events(), alpha=0.1)
    transitions = build_transitions(
        [["start-person", "cont-person", "other"], ["start-person", "other", "other"]], emission.outcomes
    )
    model = TransitionSequenceModel(emission, transitions, beam_size=3)
    assert model.outcomes == emission.outcomes

    best = model.best_sequence(
        ("Pierre", "Vinken", "said"),
        None,
        NameContextGenerator(TokenFeatureGenerator()),
        BioCodec().create_sequence_validator(),
    )
    assert best.outcomes == ("start-person", "cont-person", "other")
    assert len(best.probs) == 3
