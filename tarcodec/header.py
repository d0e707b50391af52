import logging

from .constants import (
    CHECKSUM_FIELD,
    DEVMAJOR_FIELD,
    DEVMINOR_FIELD,
    GID_FIELD,
    GNAME_FIELD,
    LINKNAME_FIELD,
    MAGIC_FIELD,
    MODE_FIELD,
    MTIME_FIELD,
    NAME_FIELD,
    NULL_BLOCK,
    PREFIX_FIELD,
    SIZE_FIELD,
    TAR_BLOCK_SIZE,
    TYPEFLAG_FIELD,
    UID_FIELD,
    UNAME_FIELD,
    UNREADABLE_TEXT,
    USTAR_MAGIC,
    USTAR_VERSION,
    VERSION_FIELD,
)
from .enums import LinkIndicator
from .octal import (
    decode_octal_field,
    encode_octal_field,
    header_checksum,
    truncate_utf8,
)
from .schemas import (
    BlockClassification,
    FileMode,
    HeaderBlock,
    MalformedBlock,
    Metadata,
    NullBlock,
)

logger = logging.getLogger(__name__)


class HeaderFieldError(ValueError):
    """A value does not fit in its header field."""


class TarHeader:
    """
    Low-level USTAR header builder.

    Every field is written at its fixed offset into a zeroed 512-byte
    buffer; the checksum goes in last, computed over the whole block
    with its own field blanked to spaces.
    """

    def __init__(self, metadata: Metadata):
        self.buffer = bytearray(TAR_BLOCK_SIZE)
        self.metadata = metadata

    def set_string(self, field: tuple[int, int], value: str):
        """
        Writes a UTF-8 string, truncated to the field width without
        splitting a character. The rest of the field stays zeroed.
        """
        offset, field_width = field
        data = truncate_utf8(value, field_width)
        self.buffer[offset : offset + len(data)] = data

    def set_octal(
        self, field: tuple[int, int], digits: int, value: int, terminator: bytes
    ):
        """Writes `digits` octal digits followed by the field terminator."""
        offset, field_width = field
        if digits + len(terminator) != field_width:
            raise HeaderFieldError(
                f"{offset=} layout does not fill {field_width} bytes"
            )

        try:
            octal_string = encode_octal_field(digits, value)
        except ValueError as e:
            raise HeaderFieldError(f"{offset=} {e}") from e

        final_string = octal_string.encode("ascii") + terminator
        self.buffer[offset : offset + field_width] = final_string

    def set_number(self, field: tuple[int, int], value: int, terminator: bytes):
        """
        Writes a number with the usual terminator when it fits, otherwise
        gives terminator bytes (space first, then NULL) back to the digits.
        E.g. uid 300000 does not fit 6 digits + " \\0" and is written as
        7 digits + "\\0", the way other USTAR writers do.
        """
        field_width = field[1]
        for kept in range(len(terminator), -1, -1):
            digits = field_width - kept
            if value < 8**digits or kept == 0:
                tail = terminator[len(terminator) - kept :]
                self.set_octal(field, digits, value, tail)
                return

    def set_bytes(self, offset: int, value: bytes):
        """Writes raw bytes at a specific offset."""
        if offset + len(value) > TAR_BLOCK_SIZE:
            raise HeaderFieldError(f"Write overflow at offset {offset}")

        self.buffer[offset : offset + len(value)] = value

    def calculate_checksum(self):
        """
        Calculates and writes the header checksum.

        The checksum field (offset 148, 8 bytes) counts as eight ASCII
        spaces during the sum. The result is stored as 6 octal digits,
        a NULL byte and a space.
        """
        total_sum = header_checksum(self.buffer)
        self.set_octal(CHECKSUM_FIELD, 6, total_sum, b"\0 ")

    def build(self) -> bytes:
        """Constructs the 512-byte header block."""
        meta = self.metadata

        self.set_string(NAME_FIELD, meta.filename)
        # 2 zeros + special bits digit + user/group/other digits
        self.set_octal(MODE_FIELD, 6, meta.mode.to_octal(), b" \0")
        self.set_number(UID_FIELD, meta.owner_id, b" \0")
        self.set_number(GID_FIELD, meta.group_id, b" \0")
        self.set_number(SIZE_FIELD, meta.file_size, b" ")
        self.set_number(MTIME_FIELD, meta.last_modification_time, b" ")

        type_flag = meta.link_indicator.value.encode("ascii")
        self.set_bytes(TYPEFLAG_FIELD[0], type_flag)
        self.set_string(LINKNAME_FIELD, meta.linked_file_name)

        self.set_bytes(MAGIC_FIELD[0], USTAR_MAGIC)
        self.set_bytes(VERSION_FIELD[0], USTAR_VERSION)

        self.set_string(UNAME_FIELD, meta.user_name)
        self.set_string(GNAME_FIELD, meta.group_name)

        self.set_octal(DEVMAJOR_FIELD, 7, 0, b" ")
        self.set_octal(DEVMINOR_FIELD, 7, 0, b" ")

        self.set_string(PREFIX_FIELD, meta.file_name_prefix)

        self.calculate_checksum()
        header = bytes(self.buffer)
        if len(header) != TAR_BLOCK_SIZE:
            raise HeaderFieldError("Header is not 512 bytes long.")
        return header


def encode_header(metadata: Metadata) -> bytes:
    return TarHeader(metadata).build()


def _field(block: bytes, field: tuple[int, int]) -> bytes:
    offset, width = field
    return block[offset : offset + width]


def read_string(block: bytes, field: tuple[int, int]) -> str:
    """Reads a NULL-terminated UTF-8 field (placeholder if not valid UTF-8)."""
    raw = _field(block, field).split(b"\0", 1)[0]
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug(f"Unreadable text at offset {field[0]}")
        return UNREADABLE_TEXT


def read_octal(block: bytes, field: tuple[int, int]) -> int:
    return decode_octal_field(_field(block, field))


def read_link_indicator(block: bytes) -> LinkIndicator:
    flag = _field(block, TYPEFLAG_FIELD)
    if flag == b"\0":
        # pre-POSIX writers leave the flag empty for regular files
        return LinkIndicator.NORMAL_FILE
    try:
        return LinkIndicator(flag.decode("ascii"))
    except (UnicodeDecodeError, ValueError):
        logger.debug(f"Unsupported type flag {flag!r}, read as a regular file")
        return LinkIndicator.NORMAL_FILE


def is_ustar(block: bytes) -> bool:
    offset = MAGIC_FIELD[0]
    return block[offset : offset + 5] == USTAR_MAGIC[:5]


def parse_header(block: bytes) -> Metadata:
    """Rebuilds the Metadata stored in a header block."""
    return Metadata(
        filename=read_string(block, NAME_FIELD),
        mode=FileMode.from_octal(read_octal(block, MODE_FIELD)),
        owner_id=read_octal(block, UID_FIELD),
        group_id=read_octal(block, GID_FIELD),
        file_size=read_octal(block, SIZE_FIELD),
        last_modification_time=read_octal(block, MTIME_FIELD),
        link_indicator=read_link_indicator(block),
        linked_file_name=read_string(block, LINKNAME_FIELD),
        user_name=read_string(block, UNAME_FIELD),
        group_name=read_string(block, GNAME_FIELD),
        file_name_prefix=read_string(block, PREFIX_FIELD),
    )


def classify_block(
    block: bytes, verify_checksum: bool = True
) -> BlockClassification:
    """
    Sorts a 512-byte block into a header, a null block or a malformed block.

    A block is a header when it carries the 'ustar' magic at offset 257
    (and, if `verify_checksum` is set, its stored checksum matches).
    """
    if len(block) != TAR_BLOCK_SIZE:
        return MalformedBlock(reason=f"Short block ({len(block)} bytes)")

    if is_ustar(block):
        if verify_checksum:
            stored = read_octal(block, CHECKSUM_FIELD)
            computed = header_checksum(block)
            if stored != computed:
                return MalformedBlock(
                    reason=f"Checksum mismatch (stored {stored}, computed {computed})"
                )

        metadata = parse_header(block)
        return HeaderBlock(metadata=metadata, inferred_extension=metadata.extension)

    if block == NULL_BLOCK:
        return NullBlock()

    return MalformedBlock(reason="Neither a header nor a null block")
