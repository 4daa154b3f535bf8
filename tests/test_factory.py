import pytest

from spanfinder.codec import BilouCodec, BioCodec
from spanfinder.context import NameContextGenerator
from spanfinder.errors import FeatureGeneratorCreationError, InvalidFormatError
from spanfinder.factory import TokenNameFinderFactory, instantiate_sequence_codec, register_factory
from spanfinder.features import AggregatedFeatureGenerator, CachedFeatureGenerator, Dictionary, TokenFeatureGenerator
from spanfinder.model import TokenNameFinderModel
from spanfinder.model_builder import build_weights
from spanfinder.types import Event

DESCRIPTOR = """
- token
- type: dictionary
  dict: people
  prefix: person
"""


def bio_classifier():
    return build_weights([
        Event("start-person", ("w=pierre",)),
        Event("cont-person", ("w=vinken",)),
        Event("other", ("w=said",)),
    ])


def context_features(context_generator: NameContextGenerator, tokens, index=0):
    return context_generator.get_context(index, tokens, None)


def test_training_mode_defaults():
    factory = TokenNameFinderFactory()
    assert isinstance(factory.get_sequence_codec(), BioCodec)
    assert factory.create_sequence_codec() is factory.get_sequence_codec()
    assert factory.get_codec_name() == "bio"
    assert factory.create_feature_generators() is None

    context_generator = factory.create_context_generator()
    assert isinstance(context_generator.generators[0], CachedFeatureGenerator)


def test_training_mode_builds_descriptor_against_given_resources():
    factory = TokenNameFinderFactory(DESCRIPTOR, {"people": Dictionary(["Pierre Vinken"])}, BilouCodec())
    assert factory.generator_descriptor == DESCRIPTOR.encode("utf-8")
    assert factory.get_codec_name() == "bilou"

    generator = factory.create_feature_generators()
    assert isinstance(generator, AggregatedFeatureGenerator)
    assert "person:w=dic=start" in context_features(factory.create_context_generator(), ("Pierre", "Vinken"))


def test_training_mode_propagates_descriptor_errors():
    factory = TokenNameFinderFactory(DESCRIPTOR)
    with pytest.raises(InvalidFormatError, match="people"):
        factory.create_context_generator()


def test_live_mode_reads_everything_from_the_model():
    people = Dictionary(["Pierre Vinken"])
    model = TokenNameFinderModel(
        "en", name_finder_model=bio_classifier(), resources={"people": people}, generator_descriptor=DESCRIPTOR
    )
    factory = TokenNameFinderFactory.from_model(model)
    assert factory.model is model
    assert isinstance(factory.create_sequence_codec(), BioCodec)
    assert "person:w=dic" in context_features(factory.create_context_generator(), ("Pierre", "Vinken"), 1)


def test_live_mode_descriptor_failure_is_an_internal_fault():
    model = TokenNameFinderModel("en", name_finder_model=bio_classifier(), generator_descriptor=DESCRIPTOR)
    factory = model.get_factory()
    with pytest.raises(FeatureGeneratorCreationError) as excinfo:
        factory.create_feature_generators()
    assert isinstance(excinfo.value.__cause__, InvalidFormatError)


def test_create_by_name():
    @register_factory("token-only")
    class TokenOnlyFactory(TokenNameFinderFactory):
        def create_feature_generators(self):
            return TokenFeatureGenerator()

    factory = TokenNameFinderFactory.create("token-only", codec=BilouCodec())
    assert isinstance(factory, TokenOnlyFactory)
    assert factory.name == "token-only"
    assert factory.get_codec_name() == "bilou"
    assert context_features(factory.create_context_generator(), ("Pierre",)) == [
        "w=pierre", "po=other", "pow=other,Pierre", "powf=other,ic", "ppo=other",
    ]

    assert type(TokenNameFinderFactory.create(None)) is TokenNameFinderFactory
    assert type(TokenNameFinderFactory.create("default")) is TokenNameFinderFactory


def test_create_unknown_name_is_a_configuration_error():
    with pytest.raises(InvalidFormatError, match="no-such-factory") as excinfo:
        TokenNameFinderFactory.create("no-such-factory")
    assert excinfo.value.__cause__ is not None


def test_instantiate_sequence_codec():
    assert isinstance(instantiate_sequence_codec(None), BioCodec)
    assert isinstance(instantiate_sequence_codec("bilou"), BilouCodec)
    with pytest.raises(InvalidFormatError):
        instantiate_sequence_codec("nope")


def test_descriptor_with_a_list_type_is_a_configuration_error():
    with pytest.raises(InvalidFormatError, match="string 'type'"):
        TokenNameFinderFactory("type: [token]").create_context_generator()

    model = TokenNameFinderModel("en", name_finder_model=bio_classifier(), generator_descriptor="type: [token]")
    with pytest.raises(FeatureGeneratorCreationError) as excinfo:
        model.get_factory().create_feature_generators()
    assert isinstance(excinfo.value.__cause__, InvalidFormatError)
