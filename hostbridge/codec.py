import json
from pathlib import Path
from typing import Any

from .errors import ParseError


def _reject_duplicates(pairs):
    obj = {}
    for key, value in pairs:
        if key in obj:
            raise ParseError(f"Duplicate key in object: {key!r}")
        obj[key] = value
    return obj


def _reject_constant(name):
    # NaN / Infinity / -Infinity は標準JSONではない
    raise ParseError(f"Invalid JSON literal: {name}")


_decoder = json.JSONDecoder(object_pairs_hook=_reject_duplicates, parse_constant=_reject_constant)


def encode(value: Any, indent: int | None = 2) -> str:
    return json.dumps(value, ensure_ascii=False, allow_nan=False, indent=indent)


def decode(text: str) -> Any:
    if not isinstance(text, str):
        raise ParseError(f"Expected text, got {type(text).__name__}")
    try:
        return _decoder.decode(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON: {e}") from e
    except RecursionError as e:
        raise ParseError("Invalid JSON: nesting too deep") from e


def decode_request(text: str) -> dict:
    value = decode(text)
    if not isinstance(value, dict):
        raise ParseError(f"Request must be a JSON object, got {type(value).__name__}")
    return value


def read_text(path: Path) -> str:
    # utf-8-sig: BOM付きで書き込むクライアントもある
    with open(path, "r", encoding="utf-8-sig") as f:
        return f.read()
