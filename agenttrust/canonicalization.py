"""
agenttrust Canonical JSON

Implements the JSON Canonicalization Scheme (RFC 8785).
Ensures logically equal JSON values produce identical byte representations,
so signing and verification operate on the same bytes.
"""

import json
import math
from typing import Any, Dict, List, Union

from .errors import DecodingError, SerializationError


def canonicalize(obj: Any) -> bytes:
    """
    Convert a JSON-like value to its canonical byte form.

    Rules:
    - Object members sorted by UTF-16 code units of their names
    - No whitespace between tokens
    - UTF-8 encoding, no BOM
    - Strings escaped as ECMAScript JSON.stringify does
    - Numbers serialized as ECMAScript Number.prototype.toString
    - Arrays preserve order

    Returns:
        UTF-8 encoded bytes of canonical JSON

    Raises:
        SerializationError: If the value is outside the JSON data model
    """
    parts: List[str] = []
    _write_value(obj, parts)
    return ''.join(parts).encode('utf-8')


def canonicalize_str(obj: Any) -> str:
    """Return canonical JSON as string."""
    return canonicalize(obj).decode('utf-8')


def canonicalize_json(raw: Union[bytes, str]) -> bytes:
    """
    Parse JSON text and return its canonical form.

    Raises:
        DecodingError: If the text is not valid JSON
    """
    try:
        value = json.loads(raw, parse_constant=_reject_constant)
    except (ValueError, TypeError) as e:
        raise DecodingError(f"invalid JSON: {e}") from e
    return canonicalize(value)


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def _write_value(value: Any, out: List[str]) -> None:
    if value is None:
        out.append('null')
    elif value is True:
        out.append('true')
    elif value is False:
        out.append('false')
    elif isinstance(value, (int, float)):
        out.append(format_number(value))
    elif isinstance(value, str):
        out.append(_quote(value))
    elif isinstance(value, dict):
        _write_object(value, out)
    elif isinstance(value, (list, tuple)):
        out.append('[')
        for i, item in enumerate(value):
            if i:
                out.append(',')
            _write_value(item, out)
        out.append(']')
    else:
        raise SerializationError(f"Cannot canonicalize type: {type(value).__name__}")


def _write_object(obj: Dict[Any, Any], out: List[str]) -> None:
    for key in obj:
        if not isinstance(key, str):
            raise SerializationError(f"Object keys must be strings, got {type(key).__name__}")
    out.append('{')
    for i, key in enumerate(sorted(obj, key=_utf16_sort_key)):
        if i:
            out.append(',')
        out.append(_quote(key))
        out.append(':')
        _write_value(obj[key], out)
    out.append('}')


def _utf16_sort_key(key: str) -> bytes:
    return key.encode('utf-16-be', 'surrogatepass')


def _quote(s: str) -> str:
    # Lone surrogates parse from JSON escapes but have no UTF-8 encoding.
    try:
        s.encode('utf-8')
    except UnicodeEncodeError as e:
        raise SerializationError(f"String is not valid Unicode: {e.reason}") from e
    # json.dumps with ensure_ascii=False escapes exactly '"', '\\' and
    # control characters, using the short forms where JSON defines them.
    return json.dumps(s, ensure_ascii=False)


def format_number(value: Union[int, float]) -> str:
    """
    Serialize a number as ECMAScript Number.prototype.toString would.

    Integers are treated as IEEE 754 doubles, as JSON numbers are.
    """
    try:
        f = float(value)
    except OverflowError as e:
        raise SerializationError(f"Number out of range: {value}") from e
    if math.isnan(f) or math.isinf(f):
        raise SerializationError(f"Cannot canonicalize non-finite number: {value}")
    if f == 0:
        return '0'

    sign = '-' if f < 0 else ''
    text = repr(abs(f))
    if 'e' in text:
        mantissa, exp_text = text.split('e')
        exponent = int(exp_text)
    else:
        mantissa, exponent = text, 0
    int_part, _, frac_part = mantissa.partition('.')
    digits = int_part + frac_part
    # n: position of the decimal point relative to the start of `digits`
    n = len(int_part) + exponent

    stripped = digits.lstrip('0')
    n -= len(digits) - len(stripped)
    digits = stripped.rstrip('0')
    k = len(digits)

    if k <= n <= 21:
        body = digits + '0' * (n - k)
    elif 0 < n <= 21:
        body = digits[:n] + '.' + digits[n:]
    elif -6 < n <= 0:
        body = '0.' + '0' * (-n) + digits
    else:
        e = n - 1
        exp = ('+' if e >= 0 else '-') + str(abs(e))
        if k == 1:
            body = digits + 'e' + exp
        else:
            body = digits[0] + '.' + digits[1:] + 'e' + exp
    return sign + body
