"""MOTD text cleanup.

Server lists hand back MOTDs in every state of disrepair: literal ``\\uXXXX``
escapes, legacy ``§`` colour codes, and UTF-8 text that was decoded as
Latin-1 somewhere along the way (often more than once). The helpers here undo
those problems without ever raising; the worst case is the input coming back
partially processed.
"""

from __future__ import annotations

import re
from typing import Any

FORMATTING_CODE_PREFIX = "§"

_SURROGATE_PAIR_RE = re.compile(r"\\u([dD][89abAB][0-9a-fA-F]{2})\\u([dD][c-fC-F][0-9a-fA-F]{2})")
_UNICODE_ESCAPE_RE = re.compile(r"\\u([0-9a-fA-F]{4})")

# A UTF-8 lead byte followed by a continuation byte, both read as Latin-1
# ("Ã©", "ä½", "Â§" ...). Plain accented text never produces this pair.
_MOJIBAKE_RE = re.compile("[Â-ô][\u0080-¿]")

_CJK_RE = re.compile("[一-鿿]")
_LATIN_RE = re.compile("[a-zA-Z]")


def _join_surrogates(match: re.Match[str]) -> str:
    high = int(match.group(1), 16)
    low = int(match.group(2), 16)
    return chr(0x10000 + ((high - 0xD800) << 10) + (low - 0xDC00))


def _decode_escape(match: re.Match[str]) -> str:
    code_point = int(match.group(1), 16)
    if 0xD800 <= code_point <= 0xDFFF:
        # unpaired surrogate
        return match.group(0)
    return chr(code_point)


def decode_unicode_escapes(text: str) -> str:
    """Replace literal ``\\uXXXX`` escapes with the characters they name.

    Escaped surrogate pairs are joined into a single code point. Unpaired
    surrogates and sequences not followed by four hex digits are left as
    they are.

    Args:
        text: Text that may contain escapes

    Returns:
        Decoded text
    """
    if "\\u" not in text:
        return text
    text = _SURROGATE_PAIR_RE.sub(_join_surrogates, text)
    return _UNICODE_ESCAPE_RE.sub(_decode_escape, text)


def strip_formatting_codes(text: str) -> str:
    """Remove ``§`` colour/format codes.

    Each ``§`` is dropped together with the character after it. A ``§`` at
    the very end of the text has nothing to pair with and is kept.

    Args:
        text: Text that may contain formatting codes

    Returns:
        Text without formatting codes
    """
    if FORMATTING_CODE_PREFIX not in text:
        return text

    parts: list[str] = []
    i = 0
    length = len(text)
    while i < length:
        char = text[i]
        if char == FORMATTING_CODE_PREFIX and i + 1 < length:
            i += 2
            continue
        parts.append(char)
        i += 1
    return "".join(parts)


def looks_misencoded(text: str) -> bool:
    """Check whether text looks like UTF-8 bytes decoded as Latin-1."""
    return _MOJIBAKE_RE.search(text) is not None


def repair_misencoded_bytes(text: str) -> str:
    """Undo a UTF-8 -> Latin-1 mis-decoding.

    Args:
        text: Possibly garbled text

    Returns:
        Repaired text, or the input unchanged when it does not look garbled
        or cannot be represented as Latin-1
    """
    if not looks_misencoded(text):
        return text
    try:
        raw = text.encode("latin-1")
    except UnicodeEncodeError:
        return text
    return raw.decode("utf-8", errors="replace")


def deep_normalize(text: str) -> str:
    """Run decode, strip and repair repeatedly until the text stops changing.

    Always terminates: a pass that changes the text shortens it, except for a
    repair that introduces U+FFFD, after which repair is a no-op.

    Args:
        text: Raw MOTD text

    Returns:
        Normalized text
    """
    if not text:
        return text

    processed = text
    while True:
        previous = processed
        processed = decode_unicode_escapes(processed)
        processed = strip_formatting_codes(processed)
        processed = repair_misencoded_bytes(processed)
        if processed == previous:
            return processed


def process_motd(motd: str) -> str:
    """Single cleanup pass for display, with surrounding whitespace trimmed.

    Args:
        motd: Raw MOTD text

    Returns:
        Cleaned MOTD
    """
    if not motd:
        return motd
    processed = decode_unicode_escapes(motd)
    processed = strip_formatting_codes(processed)
    processed = repair_misencoded_bytes(processed)
    return processed.strip()


def contains_cjk(text: str) -> bool:
    """Check if text contains CJK unified ideographs."""
    return _CJK_RE.search(text) is not None


def encoding_info(text: str) -> dict[str, Any]:
    """Describe the encoding features of a string, for debug logging.

    Args:
        text: Text to inspect

    Returns:
        Dictionary of observations
    """
    return {
        "length": len(text),
        "contains_cjk": contains_cjk(text),
        "contains_unicode_escapes": _UNICODE_ESCAPE_RE.search(text) is not None,
        "contains_formatting_codes": FORMATTING_CODE_PREFIX in text,
        "looks_misencoded": looks_misencoded(text),
        "cjk_character_count": len(_CJK_RE.findall(text)),
        "latin_character_count": len(_LATIN_RE.findall(text)),
    }
