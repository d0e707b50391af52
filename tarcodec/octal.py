from .constants import CHECKSUM_FIELD, TAR_BLOCK_SIZE

OCTAL_DIGITS = frozenset("01234567")


def encode_octal_field(width: int, value: int) -> str:
    """
    Renders a non-negative integer as exactly `width` octal digits,
    left-padded with zeros (e.g. width=6, 420 -> '000644').

    Terminators (space/NULL) are the caller's business, not this helper's.
    """
    if value < 0:
        raise ValueError(f"Negative value {value} cannot be written as octal")

    # oct() returns '0o644', so we drop the prefix
    octal_string = oct(int(value))[2:]
    if len(octal_string) > width:
        raise ValueError(f"Number {value} too large for {width} octal digits")

    return octal_string.zfill(width)


def decode_octal_field(text) -> int:
    """
    Parses an octal numeric field back into an integer.

    Accepts str or bytes. Reading stops at the first NULL, surrounding
    spaces are ignored. Anything that is not a clean octal number
    (empty field, stray characters) yields 0 instead of an error.
    """
    if isinstance(text, (bytes, bytearray)):
        text = bytes(text).decode("ascii", errors="replace")

    text = text.split("\0", 1)[0].strip(" ")
    if not text or not set(text) <= OCTAL_DIGITS:
        return 0
    return int(text, 8)


def header_checksum(raw_header: bytes) -> int:
    """
    Unsigned sum of the 512 header bytes, computed as if the checksum
    field (offset 148, 8 bytes) contained ASCII spaces.
    """
    offset, width = CHECKSUM_FIELD
    buffer = bytearray(raw_header)
    buffer[offset : offset + width] = b" " * width
    return sum(buffer)


def padding_size(size: int) -> int:
    """Number of zero bytes needed to bring `size` to a block boundary."""
    return (TAR_BLOCK_SIZE - (size % TAR_BLOCK_SIZE)) % TAR_BLOCK_SIZE


def round_up_to_block(size: int) -> int:
    return size + padding_size(size)


def pad_to_block(data: bytes) -> bytes:
    """Appends zero bytes up to the next multiple of 512. Empty input stays empty."""
    return bytes(data) + b"\0" * padding_size(len(data))


def truncate_utf8(value: str, budget: int) -> bytes:
    """
    UTF-8 encodes `value` and cuts it to at most `budget` bytes without
    splitting a multi-byte character.
    """
    data = value.encode("utf-8", errors="replace")
    if len(data) <= budget:
        return data

    end = budget
    # Back off while the byte at the cut is a continuation byte (10xxxxxx)
    while end > 0 and (data[end] & 0xC0) == 0x80:
        end -= 1
    return data[:end]
