import pytest

from spanfinder.codec import (
    BilouCodec,
    BioCodec,
    available_codecs,
    create_codec,
    extract_name_type,
)
from spanfinder.errors import InvalidFormatError
from spanfinder.types import Span


@pytest.mark.parametrize("codec", [BioCodec(), BilouCodec()], ids=["bio", "bilou"])
@pytest.mark.parametrize(
    "names,length",
    [
        ([Span(0, 2, "person"), Span(2, 3, "person"), Span(4, 7, "location"), Span(8, 9)], 10),
        ([Span(0, 1, "person"), Span(1, 2, "person"), Span(2, 4, "person")], 5),
        ([Span(0, 6, "organization")], 6),
        ([Span(0, 1, "person")], 1),
        ([], 1),
        ([], 0),
    ],
    ids=["mixed", "adjacent-same-type", "whole-sequence", "single-token", "no-names", "empty"],
)
def test_decode_inverts_encode(codec, names, length):
    outcomes = codec.encode(names, length)
    assert len(outcomes) == length
    assert codec.decode(outcomes) == names


@pytest.mark.parametrize("codec", [BioCodec(), BilouCodec()], ids=["bio", "bilou"])
def test_empty_type_is_encoded_as_untyped(codec):
    names = [Span(0, 2, ""), Span(2, 3, "")]
    outcomes = codec.encode(names, 4)
    assert all("-" not in outcome for outcome in outcomes)
    assert codec.decode(outcomes) == [Span(0, 2), Span(2, 3)]
    assert codec.decode(outcomes) == names


def test_bio_encode_labels():
    outcomes = BioCodec().encode([Span(1, 3, "person"), Span(4, 5)], 6)
    assert outcomes == ["other", "start-person", "cont-person", "other", "start", "other"]


def test_bilou_encode_labels():
    outcomes = BilouCodec().encode([Span(0, 3, "org"), Span(4, 5, "person")], 5)
    assert outcomes == ["start-org", "cont-org", "last-org", "other", "unit-person"]


def test_encode_rejects_spans_past_the_end():
    with pytest.raises(ValueError):
        BioCodec().encode([Span(2, 5)], 4)


def test_encoded_cont_always_follows_same_type():
    names = [Span(0, 3, "a"), Span(3, 5, "b"), Span(6, 8, "a")]
    outcomes = BioCodec().encode(names, 9)
    for i, outcome in enumerate(outcomes):
        if outcome.startswith("cont"):
            previous = outcomes[i - 1]
            assert previous.startswith(("start", "cont"))
            assert extract_name_type(previous) == extract_name_type(outcome)


def test_bio_decode_is_lenient_with_orphan_cont():
    codec = BioCodec()
    assert codec.decode(["cont-person", "cont-person", "other"]) == [Span(0, 2, "person")]
    assert codec.decode(["start-person", "cont-location"]) == [Span(0, 1, "person"), Span(1, 2, "location")]
    assert codec.decode(["other", "cont"]) == [Span(1, 2)]


def test_bilou_decode_is_lenient():
    codec = BilouCodec()
    assert codec.decode(["start-org", "cont-org"]) == [Span(0, 2, "org")]
    assert codec.decode(["last-org", "other"]) == [Span(0, 1, "org")]
    assert codec.decode(["start-org", "unit-person"]) == [Span(0, 1, "org"), Span(1, 2, "person")]


def test_bio_validator():
    validate = BioCodec().create_sequence_validator()
    tokens = ["a", "b", "c"]
    assert validate(0, tokens, [], "start-person")
    assert not validate(0, tokens, [], "cont-person")
    assert validate(1, tokens, ["start-person"], "cont-person")
    assert validate(2, tokens, ["start-person", "cont-person"], "cont-person")
    assert not validate(1, tokens, ["start-person"], "cont-location")
    assert not validate(1, tokens, ["other"], "cont-person")
    assert validate(1, tokens, ["start-person"], "other")


def test_bilou_validator():
    validate = BilouCodec().create_sequence_validator()
    tokens = ["a", "b", "c"]
    assert validate(0, tokens, [], "unit-person")
    assert not validate(0, tokens, [], "last-person")
    assert validate(1, tokens, ["start-person"], "last-person")
    assert not validate(1, tokens, ["start-person"], "other")
    assert not validate(1, tokens, ["start-person"], "start-person")
    assert validate(2, tokens, ["start-person", "last-person"], "other")


def test_bilou_validator_closes_names_at_the_last_token():
    validate = BilouCodec().create_sequence_validator()
    tokens = ["a", "b", "c"]
    assert not validate(2, tokens, ["other", "other"], "start-person")
    assert not validate(2, tokens, ["start-person", "cont-person"], "cont-person")
    assert validate(2, tokens, ["start-person", "cont-person"], "last-person")
    assert validate(2, tokens, ["other", "other"], "unit-person")
    assert not validate(0, ["a"], [], "start-person")
    assert validate(0, ["a"], [], "unit-person")


def test_outcome_compatibility():
    assert BioCodec().are_outcomes_compatible(["start-person", "cont-person", "other"])
    assert not BioCodec().are_outcomes_compatible(["cont-person", "other"])
    assert BilouCodec().are_outcomes_compatible(["start-a", "cont-a", "last-a", "unit-a", "other"])
    assert not BilouCodec().are_outcomes_compatible(["start-a", "cont-a", "other"])


def test_extract_name_type():
    assert extract_name_type("start-person") == "person"
    assert extract_name_type("cont-date-time") == "date-time"
    assert extract_name_type("start") is None
    assert extract_name_type("other") is None


def test_codec_registry():
    assert isinstance(create_codec(None), BioCodec)
    assert isinstance(create_codec("bilou"), BilouCodec)
    assert {"bio", "bilou"} <= set(available_codecs())
    with pytest.raises(InvalidFormatError, match="iob2"):
        create_codec("iob2")
