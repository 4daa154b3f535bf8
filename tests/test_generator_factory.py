import pytest

from spanfinder.errors import InvalidFormatError
from spanfinder.features import (
    AggregatedFeatureGenerator,
    CachedFeatureGenerator,
    Dictionary,
    DictionaryFeatureGenerator,
    FeatureGenerator,
    WindowFeatureGenerator,
)
from spanfinder.generator_factory import available_generators, create_generator, register_generator

TOKENS = ("Pierre", "Vinken", "joined", "Elsevier")

DESCRIPTOR = b"""
type: cache
generator:
  type: aggregated
  generators:
    - type: window
      prev: 1
      next: 1
      generator: token
    - type: dictionary
      dict: companies
      prefix: org
    - definition
    - prevmap
"""


def features_of(generator, index):
    features = []
    generator.create_features(features, TOKENS, index, None)
    return features


def test_builds_nested_tree_and_resolves_resources():
    requested = []

    def resolver(name):
        requested.append(name)
        return Dictionary(["Elsevier"]) if name == "companies" else None

    generator = create_generator(DESCRIPTOR, resolver)
    assert isinstance(generator, CachedFeatureGenerator)
    assert isinstance(generator.generator, AggregatedFeatureGenerator)
    children = generator.generator.generators
    assert isinstance(children[0], WindowFeatureGenerator)
    assert (children[0].prev_window_size, children[0].next_window_size) == (1, 1)
    assert isinstance(children[1], DictionaryFeatureGenerator)
    assert requested == ["companies"]

    assert features_of(generator, 3) == [
        "w=elsevier", "p1w=joined", "org:w=dic", "org:w=dic=start", "org:w=dic=Elsevier", "def",
    ]


def test_top_level_list_is_an_aggregate():
    generator = create_generator("- token\n- type: sentence\n  end: true\n")
    assert isinstance(generator, AggregatedFeatureGenerator)
    assert features_of(generator, 3) == ["w=elsevier", "S=end"]


@pytest.mark.parametrize(
    "descriptor,message",
    [
        (b"", "empty"),
        (b"type: [unclosed", "parsing"),
        (b"\xff\xfe", "UTF-8"),
        (b"type: no-such-generator", "no-such-generator"),
        (b"type: window\nprev: two\ngenerator: token", "prev"),
        (b"type: token\nlowercase: maybe", "lowercase"),
        (b"type: cache", "nested generators"),
        (b"type: dictionary\ndict: missing", "missing"),
        (b"- 42", "mapping or a name"),
        (b"type: [token, bigram]", "string 'type'"),
        (b"- {type: {a: 1}}", "string 'type'"),
        (b"- prefix: 3", "string 'type'"),
        (b"type: dictionary\ndict: [a, b]", "resource name"),
    ],
)
def test_malformed_descriptors_raise_invalid_format(descriptor, message):
    with pytest.raises(InvalidFormatError, match=message):
        create_generator(descriptor)


def test_dictionary_resource_must_be_a_dictionary():
    with pytest.raises(InvalidFormatError, match="expected a Dictionary"):
        create_generator(b"type: dictionary\ndict: names", lambda name: ["not", "a", "dictionary"])


def test_register_generator_adds_descriptor_type():
    class ShoutingGenerator(FeatureGenerator):
        def create_features(self, features, tokens, index, prior_outcomes):
            if tokens[index].isupper():
                features.append("shout")

    @register_generator("shouting")
    def _shouting(element, resolver):
        return ShoutingGenerator()

    assert "shouting" in available_generators()
    generator = create_generator("type: shouting")
    features = []
    generator.create_features(features, ("HEY",), 0, None)
    assert features == ["shout"]
