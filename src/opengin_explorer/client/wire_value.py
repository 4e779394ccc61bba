"""Wire value decoding.

OpenGIN attaches an opaque "wire value" to entity names, relation names and
metadata values. A wire value is either plain text or a JSON wrapper that
carries a protobuf ``Any``-style payload:

    {"typeUrl": "type.googleapis.com/google.protobuf.StringValue",
     "value": "0a0548656c6c6f"}

``value`` is a hex string. Some producers emit the serialized
``StringValue`` message, so the bytes start with the field tag ``0x0A`` and
a one-byte length; others emit the raw text bytes. The two observed variants
disagree on whether that two-byte header should be skipped, so the behaviour
is selectable through :class:`WireHeaderMode`:

- ``DETECT`` (default): skip the header only when the payload starts with
  ``0x0A`` and is long enough to carry a length byte.
- ``NONE``: never skip; every byte is decoded as a character.

Decoding is best-effort and total. Hex digits are read two at a time and a
pair that does not parse is skipped, so a damaged payload still yields
whatever text survives. Anything that is not a wrapper at all comes back as
:class:`Fallback` carrying the original input, and :func:`decode` always
returns a string.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Union

HEADER_TAG = 0x0A
_LEADING_HEX = re.compile(r"\s*([0-9a-fA-F]+)")


class WireHeaderMode(str, Enum):
    DETECT = "detect"
    NONE = "none"


@dataclass(frozen=True)
class Decoded:
    """Text recovered from a wire wrapper."""

    text: str
    header_skipped: bool = False


@dataclass(frozen=True)
class Fallback:
    """Input that is not a decodable wrapper; ``original`` is returned as-is."""

    original: str
    reason: str = ""


WireDecodeResult = Union[Decoded, Fallback]


def _as_text(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw
    if isinstance(raw, dict):
        return json.dumps(raw)
    return str(raw)


def _hex_codes(hex_value: str) -> List[int]:
    """Character codes read two hex digits at a time.

    A pair is read by its leading hex digits, so ``"4z"`` gives ``4`` and a
    trailing odd digit is read alone. Pairs with no leading hex digit are
    skipped.
    """
    codes: List[int] = []
    for i in range(0, len(hex_value), 2):
        match = _LEADING_HEX.match(hex_value[i:i + 2])
        if match:
            codes.append(int(match.group(1), 16))
    return codes


def _codes_to_text(codes: List[int], header_mode: WireHeaderMode) -> tuple[str, bool]:
    skip = (
        header_mode == WireHeaderMode.DETECT
        and len(codes) >= 2
        and codes[0] == HEADER_TAG
    )
    body = codes[2:] if skip else codes
    # Zero bytes are padding, not terminators.
    return "".join(chr(b) for b in body if b != 0), skip


def decode_wire_value(
    raw: Any, header_mode: WireHeaderMode = WireHeaderMode.DETECT
) -> WireDecodeResult:
    """Classify and decode a wire value.

    Args:
        raw: A JSON string, an already-parsed wrapper dict, or plain text.
        header_mode: How to treat a leading ``0x0A``/length header.

    Returns:
        ``Decoded`` when ``raw`` is a wrapper exposing both ``typeUrl`` and a
        hex ``value``; ``Fallback`` otherwise.
    """
    original = _as_text(raw)

    if isinstance(raw, dict):
        wrapper: Any = raw
    else:
        try:
            wrapper = json.loads(original)
        except (ValueError, RecursionError):
            return Fallback(original, "not json")

    if not isinstance(wrapper, dict):
        return Fallback(original, "not an object")

    type_url = wrapper.get("typeUrl")
    hex_value = wrapper.get("value")
    if not type_url or not hex_value or not isinstance(hex_value, str):
        return Fallback(original, "missing typeUrl/value")

    text, skipped = _codes_to_text(_hex_codes(hex_value), WireHeaderMode(header_mode))
    return Decoded(text, header_skipped=skipped)


def decode(raw: Any, header_mode: WireHeaderMode = WireHeaderMode.DETECT) -> str:
    """Return human-readable text for a wire value. Never raises."""
    result = decode_wire_value(raw, header_mode)
    if isinstance(result, Decoded):
        return result.text
    return result.original


__all__ = [
    "WireHeaderMode",
    "Decoded",
    "Fallback",
    "WireDecodeResult",
    "decode_wire_value",
    "decode",
]
