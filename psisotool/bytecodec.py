"""
Field decoding helpers shared by the disc and PARAM.SFO readers.

PARAM.SFO stores its numeric fields little-endian. They are flipped with
reverse16()/reverse8() and then read back as big-endian hex text, the same
two steps the disc image fields go through.
"""

from typing import Union


def _check_length(data: bytes, length: int) -> None:
    if len(data) != length:
        raise ValueError(f"Expected {length} bytes, got {len(data)}")


def reverse16(data: bytes) -> bytes:
    """Reverse the byte order of a 4-byte field"""
    _check_length(data, 4)
    return bytes(data[::-1])


def reverse8(data: bytes) -> bytes:
    """Reverse the byte order of a 2-byte field"""
    _check_length(data, 2)
    return bytes(data[::-1])


def _hex_to_int(data: bytes) -> int:
    return int("".join(f"{b:02X}" for b in data), 16)


def be_hex_to_u32(data: bytes) -> int:
    _check_length(data, 4)
    return _hex_to_int(data)


def be_hex_to_u16(data: bytes) -> int:
    _check_length(data, 2)
    return _hex_to_int(data)


def _latin1_to_ascii(c: int) -> int:
    """Strip the diacritic off a Latin-1 supplement letter, 0 if unmapped"""
    if 0xC0 <= c <= 0xC5:
        return ord("A")
    if c == 0xC7:
        return ord("C")
    if 0xC8 <= c <= 0xCB:
        return ord("E")
    if 0xCC <= c <= 0xCF:
        return ord("I")
    if c == 0xD1:
        return ord("N")
    if 0xD2 <= c <= 0xD6:
        return ord("O")
    if 0xD9 <= c <= 0xDC:
        return ord("U")
    if c == 0xDD:
        return ord("Y")
    if 0xE0 <= c <= 0xE5:
        return ord("a")
    if c == 0xE7:
        return ord("c")
    if 0xE8 <= c <= 0xEB:
        return ord("e")
    if 0xEC <= c <= 0xEF:
        return ord("i")
    if c == 0xF1:
        return ord("n")
    if 0xF2 <= c <= 0xF6:
        return ord("o")
    if 0xF9 <= c <= 0xFC:
        return ord("u")
    if c == 0xFD or c == 0xFF:
        return ord("y")
    return 0


def utf8_transliterate(text: Union[bytes, str], max_codepoints: int) -> str:
    """Convert a UTF-8 title to plain ASCII, padded with NULs to max_codepoints.

    Accented Latin-1 letters lose their accent, 3 and 4 byte sequences become
    a single space and control characters become spaces. A 2-byte character
    outside the accent table is replaced by the byte that follows it, which
    is consumed as well.
    """
    if isinstance(text, str):
        text = text.encode("utf-8")
    data = text.split(b"\x00", 1)[0]

    out = []
    pos = 0
    remaining = max_codepoints
    while pos < len(data) and remaining > 0:
        ch = data[pos]
        nxt = data[pos + 1] if pos + 1 < len(data) else 0

        # 3, 4 bytes utf-8 code
        if ((ch & 0xF1) == 0xF0 or (ch & 0xF0) == 0xE0) and (nxt & 0xC0) == 0x80:
            out.append(" ")
            pos += 4 if (ch & 0xF1) == 0xF0 else 3

        # 2 bytes utf-8 code
        elif (ch & 0xE0) == 0xC0 and (nxt & 0xC0) == 0x80:
            c = ((ch & 3) << 6) | (nxt & 63)
            mapped = _latin1_to_ascii(c)
            if mapped:
                out.append(chr(mapped))
                pos += 2
            elif c > 127:
                following = data[pos + 2] if pos + 2 < len(data) else 0
                out.append(chr(following))
                pos += 3
            else:
                out.append(chr(c))
                pos += 2

        else:
            out.append(" " if ch < 32 else chr(ch))
            pos += 1

        remaining -= 1

    return "".join(out) + "\x00" * remaining
