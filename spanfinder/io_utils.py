"""Provides utility functions for loading and saving annotated samples.

Two formats are supported:

*   A JSON document whose root holds a "samples" list. Every sample is a
    dictionary with "tokens", "names" (each ``{"start", "end", "type"}``) and
    the optional "additional_context" and "clear_adaptive_data" fields. This
    is the format `load_samples` and `save_samples` read and write.
*   The inline annotated text format, one sentence per line, with names
    marked as ``<START:person> Pierre Vinken <END>``. An empty line marks a
    document boundary. It is convenient for writing training data by hand.
"""
import json
from typing import Iterable, List, Optional

from .errors import InvalidFormatError
from .types import NameSample, Span

_START_PREFIX = "<START"
_END_TAG = "<END>"


def _span_from_dict(item, i: int, j: int, path: str) -> Span:
    if not isinstance(item, dict):
        raise TypeError(f"Name {j} of sample {i} in {path} is not a dictionary.")
    try:
        return Span(int(item["start"]), int(item["end"]), item.get("type"))
    except KeyError as e:
        raise TypeError(f"Name {j} of sample {i} in {path} is missing the key {e}")
    except ValueError as e:
        raise ValueError(f"Invalid name {j} of sample {i} in {path}: {e}")


def load_samples(path: str) -> List[NameSample]:
    """
    Loads a list of NameSample objects from a JSON file.

    Args:
        path: The path to the input JSON file.

    Returns:
        A list of `NameSample` instances, in file order.

    Raises:
        FileNotFoundError: If the file at the specified path does not exist.
        ValueError: If the file is not valid JSON, or a name does not fit
                    its sentence.
        TypeError: If the JSON structure is incorrect (e.g., "samples" key is
                   missing or not a list, or a sample is not a dictionary).
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Sample file not found at: {path}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Error decoding JSON from {path}: {e}")

    items = data.get("samples") if isinstance(data, dict) else None
    if not isinstance(items, list):
        raise TypeError(f"Expected a 'samples' key with a list of objects in {path}")

    out = []
    for i, s_dict in enumerate(items):
        if not isinstance(s_dict, dict):
            raise TypeError(f"Sample item at index {i} in {path} is not a dictionary.")
        tokens = s_dict.get("tokens")
        if not isinstance(tokens, list):
            raise TypeError(f"Sample item at index {i} in {path} has no 'tokens' list.")

        names = [_span_from_dict(item, i, j, path) for j, item in enumerate(s_dict.get("names", []))]
        try:
            out.append(NameSample(
                tokens=tokens,
                names=names,
                additional_context=s_dict.get("additional_context"),
                clear_adaptive_data=bool(s_dict.get("clear_adaptive_data", False)),
            ))
        except ValueError as e:
            raise ValueError(f"Invalid sample at index {i} in {path}: {e}")

    return out


def save_samples(path: str, samples: Iterable[NameSample]) -> None:
    """
    Saves NameSample objects to a JSON file in the format `load_samples` reads.

    Args:
        path: The destination path for the output JSON file.
        samples: The samples to save.
    """
    sample_dicts = []
    for sample in samples:
        s_dict = {
            "tokens": list(sample.tokens),
            "names": [{"start": n.start, "end": n.end, "type": n.type} for n in sample.names],
        }
        if sample.additional_context is not None:
            s_dict["additional_context"] = [list(ctx) for ctx in sample.additional_context]
        if sample.clear_adaptive_data:
            s_dict["clear_adaptive_data"] = True
        sample_dicts.append(s_dict)

    with open(path, "w", encoding="utf-8") as f:
        json.dump({"samples": sample_dicts}, f, ensure_ascii=False, indent=2)


def parse_name_sample(line: str, clear_adaptive_data: bool = False) -> NameSample:
    """
    Parses one sentence of the inline annotated text format.

    Tokens are separated by whitespace. A name opens with ``<START>`` or
    ``<START:type>`` and closes with ``<END>``, both as separate tokens.

    Raises:
        InvalidFormatError: If names are nested, unclosed, empty, or an
            ``<END>`` has no matching start tag.
    """
    tokens: List[str] = []
    names: List[Span] = []
    open_start: Optional[int] = None
    open_type: Optional[str] = None

    for part in line.split():
        if part.startswith(_START_PREFIX) and part.endswith(">"):
            if open_start is not None:
                raise InvalidFormatError(f"Nested name start tag in: {line!r}")
            tag = part[len(_START_PREFIX):-1]
            if tag and not tag.startswith(":"):
                raise InvalidFormatError(f"Malformed start tag {part!r} in: {line!r}")
            open_start = len(tokens)
            open_type = tag[1:] or None
        elif part == _END_TAG:
            if open_start is None:
                raise InvalidFormatError(f"End tag without a start tag in: {line!r}")
            if open_start == len(tokens):
                raise InvalidFormatError(f"Empty name in: {line!r}")
            names.append(Span(open_start, len(tokens), open_type))
            open_start = None
            open_type = None
        else:
            tokens.append(part)

    if open_start is not None:
        raise InvalidFormatError(f"Unclosed name in: {line!r}")

    return NameSample(tokens=tokens, names=names, clear_adaptive_data=clear_adaptive_data)


def read_name_samples(lines: Iterable[str]) -> List[NameSample]:
    """
    Parses sentences in the inline annotated text format.

    Empty lines separate documents: the first sentence after one (and the
    very first sentence) is flagged to clear adaptive data.
    """
    samples = []
    new_document = True
    for line in lines:
        if not line.strip():
            new_document = True
            continue
        samples.append(parse_name_sample(line, clear_adaptive_data=new_document))
        new_document = False
    return samples
