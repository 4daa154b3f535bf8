"""Builds feature generator pipelines from YAML descriptors.

A descriptor describes a tree of generators. Each node is a mapping with a
``type`` key and the parameters of that generator; combinators nest their
children under ``generator`` (one child) or ``generators`` (a list). A bare
string is shorthand for a node without parameters, and a top-level list is
shorthand for an aggregated generator::

    type: cache
    generator:
      type: aggregated
      generators:
        - type: window
          prev: 2
          next: 2
          generator: token
        - type: dictionary
          dict: person-names
          prefix: person
        - definition
        - prevmap

Named resources (dictionaries) are not loaded here. They are requested from a
resolver supplied by the caller, so the same descriptor can be built against a
trained model's artifacts or against an in-memory map during training.
"""
from __future__ import annotations
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import yaml

from .errors import InvalidFormatError
from .features import (
    AggregatedFeatureGenerator,
    BigramNameFeatureGenerator,
    CachedFeatureGenerator,
    Dictionary,
    DictionaryFeatureGenerator,
    FeatureGenerator,
    OutcomePriorFeatureGenerator,
    PrefixFeatureGenerator,
    PreviousMapFeatureGenerator,
    SentenceFeatureGenerator,
    SuffixFeatureGenerator,
    TokenClassFeatureGenerator,
    TokenFeatureGenerator,
    TokenPatternFeatureGenerator,
    WindowFeatureGenerator,
)

__all__ = ["ResourceResolver", "create_generator", "register_generator", "available_generators"]

ResourceResolver = Callable[[str], Optional[Any]]
ElementBuilder = Callable[[Mapping[str, Any], ResourceResolver], FeatureGenerator]

_BUILDERS: Dict[str, ElementBuilder] = {}


def register_generator(type_name: str):
    """Decorator registering a builder for descriptor nodes of ``type_name``."""
    def decorator(builder: ElementBuilder) -> ElementBuilder:
        _BUILDERS[type_name] = builder
        return builder
    return decorator


def available_generators() -> List[str]:
    return sorted(_BUILDERS)


def _no_resources(name: str) -> None:
    return None


def create_generator(
    descriptor: Union[bytes, str],
    resource_resolver: Optional[ResourceResolver] = None,
) -> FeatureGenerator:
    """
    Creates the feature generator pipeline described by ``descriptor``.

    Args:
        descriptor: The YAML descriptor, as bytes (UTF-8) or text.
        resource_resolver: Maps resource names to resources. Resources are
            only requested for nodes that reference them.

    Returns:
        The root generator of the pipeline.

    Raises:
        InvalidFormatError: If the descriptor cannot be parsed, names an
            unknown generator type, has invalid parameters or references a
            resource the resolver does not provide.
    """
    if isinstance(descriptor, bytes):
        try:
            descriptor = descriptor.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidFormatError(f"Feature generator descriptor is not valid UTF-8: {e}")

    try:
        root = yaml.safe_load(descriptor)
    except yaml.YAMLError as e:
        raise InvalidFormatError(f"Error parsing feature generator descriptor: {e}")

    if root is None:
        raise InvalidFormatError("Feature generator descriptor is empty.")
    if isinstance(root, list):
        root = {"type": "aggregated", "generators": root}

    return _build_element(root, resource_resolver or _no_resources)


def _build_element(element: Any, resolver: ResourceResolver) -> FeatureGenerator:
    if isinstance(element, str):
        element = {"type": element}
    if not isinstance(element, dict):
        raise InvalidFormatError(f"Generator element must be a mapping or a name, got: {element!r}")

    type_name = element.get("type")
    if not isinstance(type_name, str):
        raise InvalidFormatError(f"Generator element needs a string 'type', got: {element!r}")
    builder = _BUILDERS.get(type_name)
    if builder is None:
        raise InvalidFormatError(
            f"Unknown feature generator type '{type_name}'. Known types: {available_generators()}"
        )
    return builder(element, resolver)


def _children(element: Mapping[str, Any], resolver: ResourceResolver) -> List[FeatureGenerator]:
    if "generator" in element:
        return [_build_element(element["generator"], resolver)]
    children = element.get("generators")
    if not isinstance(children, list) or not children:
        raise InvalidFormatError(f"'{element.get('type')}' element requires nested generators")
    return [_build_element(child, resolver) for child in children]


def _single_child(element: Mapping[str, Any], resolver: ResourceResolver) -> FeatureGenerator:
    children = _children(element, resolver)
    if len(children) == 1:
        return children[0]
    return AggregatedFeatureGenerator(*children)


def _int_param(element: Mapping[str, Any], key: str, default: int) -> int:
    value = element.get(key, default)
    if isinstance(value, bool):
        raise InvalidFormatError(f"Parameter '{key}' of '{element.get('type')}' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidFormatError(
            f"Parameter '{key}' of '{element.get('type')}' must be an integer, got: {value!r}"
        ) from None


def _bool_param(element: Mapping[str, Any], key: str, default: bool) -> bool:
    value = element.get(key, default)
    if not isinstance(value, bool):
        raise InvalidFormatError(
            f"Parameter '{key}' of '{element.get('type')}' must be true or false, got: {value!r}"
        )
    return value


@register_generator("aggregated")
def _aggregated(element, resolver):
    return AggregatedFeatureGenerator(*_children(element, resolver))


@register_generator("cache")
def _cache(element, resolver):
    return CachedFeatureGenerator(_single_child(element, resolver))


@register_generator("window")
def _window(element, resolver):
    prev_size = _int_param(element, "prev", 2)
    next_size = _int_param(element, "next", 2)
    if prev_size < 0 or next_size < 0:
        raise InvalidFormatError("Window sizes must not be negative")
    return WindowFeatureGenerator(_single_child(element, resolver), prev_size, next_size)


@register_generator("token")
def _token(element, resolver):
    return TokenFeatureGenerator(_bool_param(element, "lowercase", True))


@register_generator("tokenclass")
def _token_class(element, resolver):
    return TokenClassFeatureGenerator(_bool_param(element, "wordAndClass", True))


@register_generator("tokenpattern")
def _token_pattern(element, resolver):
    return TokenPatternFeatureGenerator()


@register_generator("definition")
def _definition(element, resolver):
    return OutcomePriorFeatureGenerator()


@register_generator("prevmap")
def _prevmap(element, resolver):
    return PreviousMapFeatureGenerator()


@register_generator("bigram")
def _bigram(element, resolver):
    return BigramNameFeatureGenerator()


@register_generator("sentence")
def _sentence(element, resolver):
    return SentenceFeatureGenerator(
        _bool_param(element, "begin", True),
        _bool_param(element, "end", False),
    )


@register_generator("prefix")
def _prefix(element, resolver):
    return PrefixFeatureGenerator(_int_param(element, "length", 4))


@register_generator("suffix")
def _suffix(element, resolver):
    return SuffixFeatureGenerator(_int_param(element, "length", 4))


@register_generator("dictionary")
def _dictionary(element, resolver):
    key = element.get("dict")
    if not key:
        raise InvalidFormatError("'dictionary' element requires a 'dict' resource name")
    if not isinstance(key, str):
        raise InvalidFormatError(f"'dict' of a 'dictionary' element must be a resource name, got: {key!r}")
    resource = resolver(key)
    if resource is None:
        raise InvalidFormatError(f"Missing dictionary resource '{key}'")
    if not isinstance(resource, Dictionary):
        raise InvalidFormatError(
            f"Resource '{key}' is a {type(resource).__name__}, expected a Dictionary"
        )
    return DictionaryFeatureGenerator(resource, str(element.get("prefix", "")))
