import pytest

from spanfinder.types import BestSequence, NameSample, Span


def test_span_rejects_invalid_bounds():
    with pytest.raises(ValueError):
        Span(-1, 2)
    with pytest.raises(ValueError):
        Span(3, 3)
    with pytest.raises(ValueError):
        Span(4, 2)


def test_empty_type_means_untyped():
    assert Span(0, 2, "").type is None
    assert Span(0, 2, "") == Span(0, 2)


def test_span_natural_ordering():
    spans = [Span(2, 5), Span(0, 3, "person"), Span(0, 2), Span(0, 3)]
    assert sorted(spans) == [Span(0, 2), Span(0, 3), Span(0, 3, "person"), Span(2, 5)]


def test_span_relations():
    outer = Span(0, 5)
    assert outer.contains(Span(1, 3))
    assert outer.contains(4)
    assert not outer.contains(5)
    assert outer.starts_with(Span(0, 2))
    assert not outer.starts_with(Span(1, 2))

    assert Span(0, 3).intersects(Span(2, 5))
    assert Span(0, 5).intersects(Span(1, 2))
    assert not Span(0, 3).intersects(Span(3, 5))

    assert Span(0, 3).crosses(Span(2, 5))
    assert not Span(0, 5).crosses(Span(1, 2))


def test_span_covered_text_and_length():
    tokens = ["Pierre", "Vinken", "is", "61"]
    span = Span(0, 2, "person")
    assert span.length() == 2
    assert len(span) == 2
    assert span.covered_text(tokens) == ("Pierre", "Vinken")
    with pytest.raises(ValueError):
        Span(3, 5).covered_text(tokens)
    assert str(span) == "[0..2) person"


def test_name_sample_rejects_spans_outside_the_sentence():
    with pytest.raises(ValueError):
        NameSample(tokens=["a", "b"], names=[Span(1, 3)])


def test_name_sample_normalizes_to_tuples():
    sample = NameSample(tokens=["a", "b"], names=[Span(0, 1)], additional_context=[["x"], []])
    assert sample.tokens == ("a", "b")
    assert sample.names == (Span(0, 1),)
    assert sample.additional_context == (("x",), ())


def test_best_sequence_extend_accumulates_log_score():
    seq = BestSequence().extend("start", 0.5, -0.7).extend("cont", 0.25, -1.4)
    assert seq.outcomes == ("start", "cont")
    assert seq.probs == (0.5, 0.25)
    assert seq.score == pytest.approx(-2.1)
    assert len(seq) == 2
