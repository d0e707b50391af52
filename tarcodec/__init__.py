"""
In-memory USTAR archive codec.

    >>> from tarcodec import Metadata, create_archive, extract_archive
    >>> data = create_archive([(Metadata(filename="one.txt"), "One")])
    >>> [(m.filename, c.text) for m, c in extract_archive(data)]
    [('one.txt', 'One')]
"""

from typing import Iterable, List, Optional, Tuple

from .enums import ContentKind, DecoderState, LinkIndicator, Permission, SpecialBits
from .header import HeaderFieldError, TarHeader, classify_block, encode_header
from .octal import (
    decode_octal_field,
    encode_octal_field,
    header_checksum,
    pad_to_block,
    padding_size,
)
from .reader import (
    ArchiveReader,
    ContentPolicy,
    ExtensionContentPolicy,
    decode_archive,
    decode_text_archive,
)
from .schemas import (
    ArchiveEntry,
    BinaryContent,
    Content,
    FileMode,
    HeaderBlock,
    MalformedBlock,
    Metadata,
    NullBlock,
    TextContent,
)
from .stream import ArchiveStreamGenerator, encode_archive, encode_text_archive

__version__ = "0.1.0"

__all__ = [
    "ArchiveEntry",
    "ArchiveReader",
    "ArchiveStreamGenerator",
    "BinaryContent",
    "Content",
    "ContentKind",
    "ContentPolicy",
    "DecoderState",
    "ExtensionContentPolicy",
    "FileMode",
    "HeaderBlock",
    "HeaderFieldError",
    "LinkIndicator",
    "MalformedBlock",
    "Metadata",
    "NullBlock",
    "Permission",
    "SpecialBits",
    "TarHeader",
    "TextContent",
    "classify_block",
    "create_archive",
    "create_text_archive",
    "decode_octal_field",
    "encode_header",
    "encode_octal_field",
    "extract_archive",
    "extract_text_archive",
    "header_checksum",
    "pad_to_block",
    "padding_size",
]


def create_archive(entries: Iterable[Tuple[Metadata, object]]) -> bytes:
    """
    Encodes (metadata, content) pairs into a USTAR byte stream.

    Content may be a TextContent/BinaryContent, a str or bytes. The
    declared file_size of each Metadata is replaced by the real length.
    """
    return encode_archive(entries)


def create_text_archive(entries: Iterable[Tuple[Metadata, str]]) -> bytes:
    return encode_text_archive(entries)


def extract_archive(
    data: bytes,
    content_policy: Optional[ContentPolicy] = None,
    verify_checksum: bool = True,
) -> List[ArchiveEntry]:
    """
    Decodes a USTAR byte stream into (metadata, content) pairs.

    Never raises on bad input: decoding stops at the first null or
    malformed block and returns what was recognised up to there.
    """
    return decode_archive(
        data, content_policy=content_policy, verify_checksum=verify_checksum
    )


def extract_text_archive(
    data: bytes, verify_checksum: bool = True
) -> List[Tuple[Metadata, str]]:
    return decode_text_archive(data, verify_checksum=verify_checksum)
