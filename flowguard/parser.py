# flowguard/parser.py

import json
import json.scanner
import sys
from typing import Any

from flowguard.errors import EmptyInputError, NestingDepthError, ParseError, ShapeError
from flowguard.model import WorkflowDocument, is_set

# Python-level recursion allowed while re-parsing a deeply nested document.
# The pure-Python scanner uses two frames per nesting level.
DEEP_PARSE_RECURSION_LIMIT = 50000


def _reject_constant(name: str) -> Any:
    # NaN / Infinity are accepted by the json module but are not JSON
    raise ValueError(f"Unexpected token {name}")


def _parse_int(digits: str) -> Any:
    # integer literals past the interpreter's int/str conversion limit degrade to float
    limit = sys.get_int_max_str_digits()
    if limit and len(digits.lstrip("-")) > limit:
        return float(digits)
    return int(digits)


def _decoder(pure_python: bool = False) -> json.JSONDecoder:
    decoder = json.JSONDecoder(parse_constant=_reject_constant, parse_int=_parse_int)
    if pure_python:
        # the C scanner is bounded by the C stack; the Python one by the recursion limit
        decoder.scan_once = json.scanner.py_make_scanner(decoder)
    return decoder


def _decode_deep(raw_text: str) -> Any:
    old_limit = sys.getrecursionlimit()
    sys.setrecursionlimit(max(old_limit, DEEP_PARSE_RECURSION_LIMIT))
    try:
        return _decoder(pure_python=True).decode(raw_text)
    except RecursionError as e:
        raise NestingDepthError(DEEP_PARSE_RECURSION_LIMIT // 2) from e
    finally:
        sys.setrecursionlimit(old_limit)


def parse_document(raw_text: str) -> Any:
    """
    Strictly parse raw text as JSON.

    Deeply nested documents are valid input: when the fast decoder runs out of
    stack, the text is decoded again with the pure-Python scanner.

    Raises:
        EmptyInputError: input is empty or whitespace only
        ParseError: input is not valid JSON (carries the decoder message)
        NestingDepthError: input is valid JSON nested past what can be decoded
    """
    if isinstance(raw_text, (bytes, bytearray)):
        try:
            raw_text = raw_text.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ParseError(str(e)) from e
    if raw_text is None or not str(raw_text).strip():
        raise EmptyInputError()
    try:
        return json.loads(raw_text, parse_constant=_reject_constant, parse_int=_parse_int)
    except RecursionError:
        pass
    except (json.JSONDecodeError, ValueError) as e:
        raise ParseError(str(e)) from e

    try:
        return _decode_deep(raw_text)
    except (json.JSONDecodeError, ValueError) as e:
        raise ParseError(str(e)) from e


def looks_like_workflow(data: Any) -> bool:
    """A workflow export exposes nodes, connections, meta.instanceId or a name."""
    if not isinstance(data, dict):
        return False
    meta = data.get("meta")
    instance_id = meta.get("instanceId") if isinstance(meta, dict) else None
    return any(
        is_set(v) for v in (data.get("nodes"), data.get("connections"), instance_id, data.get("name"))
    )


def load_workflow(raw_text: str) -> WorkflowDocument:
    """Parse and classify in one step; raises ParseError, NestingDepthError or ShapeError."""
    data = parse_document(raw_text)
    if not looks_like_workflow(data):
        raise ShapeError()
    return WorkflowDocument.from_dict(data)
