from typing import Annotated, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .constants import MAX_ID, MAX_SIZE, NAME_FIELD, PREFIX_FIELD
from .enums import (
    ArchiveEventType,
    BlockKind,
    ContentKind,
    LinkIndicator,
    Permission,
    SpecialBits,
)


class FileMode(BaseModel):
    """Permission set per subject plus the setuid/setgid/sticky bits."""

    model_config = ConfigDict(frozen=True)

    user: Permission = Permission.READ | Permission.WRITE
    group: Permission = Permission.READ
    other: Permission = Permission.READ
    special: SpecialBits = SpecialBits.NONE

    @classmethod
    def from_octal(cls, value: int) -> "FileMode":
        """Builds a mode from its numeric form (e.g. 0o4755)."""
        return cls(
            user=Permission((value >> 6) & 0o7),
            group=Permission((value >> 3) & 0o7),
            other=Permission(value & 0o7),
            special=SpecialBits((value >> 9) & 0o7),
        )

    def to_octal(self) -> int:
        return (
            (int(self.special) << 9)
            | (int(self.user) << 6)
            | (int(self.group) << 3)
            | int(self.other)
        )


class Metadata(BaseModel):
    """Describes one archived file. Immutable."""

    model_config = ConfigDict(frozen=True)

    filename: str
    mode: FileMode = Field(default_factory=FileMode)
    owner_id: int = Field(default=0, ge=0, le=MAX_ID)
    group_id: int = Field(default=0, ge=0, le=MAX_ID)
    file_size: int = Field(default=0, ge=0, le=MAX_SIZE)
    last_modification_time: int = Field(default=0, ge=0, le=MAX_SIZE)
    link_indicator: LinkIndicator = LinkIndicator.NORMAL_FILE
    linked_file_name: str = ""
    user_name: str = ""
    group_name: str = ""
    file_name_prefix: str = ""

    @property
    def full_path(self) -> str:
        if self.file_name_prefix:
            return f"{self.file_name_prefix}/{self.filename}"
        return self.filename

    @property
    def extension(self) -> Optional[str]:
        """Final dot-suffix of the filename's last component, if any."""
        basename = self.filename.rsplit("/", 1)[-1]
        if "." not in basename:
            return None
        suffix = basename.rsplit(".", 1)[1]
        return suffix or None

    @staticmethod
    def split_path(path: str) -> Tuple[str, str]:
        """
        Splits a path into (filename, prefix) so that each fits its field.
        Limits: Name (100 bytes), Prefix (155 bytes).

        Paths that already fit the name field are returned unchanged with
        an empty prefix.
        """
        limit_name = NAME_FIELD[1]
        limit_prefix = PREFIX_FIELD[1]

        if len(path.encode("utf-8")) <= limit_name:
            return path, ""

        # Rightmost '/' such that:
        # - Left part (prefix) <= 155 bytes
        # - Right part (name) <= 100 bytes
        best_split_index = -1
        for i, char in enumerate(path):
            if char != "/":
                continue
            prefix_size = len(path[:i].encode("utf-8"))
            name_size = len(path[i + 1 :].encode("utf-8"))
            if prefix_size <= limit_prefix and name_size <= limit_name:
                best_split_index = i

        if best_split_index == -1:
            raise ValueError(
                f"Path is too long or cannot be split into USTAR prefix/name: '{path}'"
            )

        return path[best_split_index + 1 :], path[:best_split_index]

    @classmethod
    def for_path(cls, path: str, **kwargs) -> "Metadata":
        """Metadata whose filename/prefix come from splitting a long path."""
        name, prefix = cls.split_path(path)
        return cls(filename=name, file_name_prefix=prefix, **kwargs)


class TextContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal[ContentKind.TEXT] = ContentKind.TEXT
    text: str

    def to_bytes(self) -> bytes:
        return self.text.encode("utf-8", errors="replace")


class BinaryContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal[ContentKind.BINARY] = ContentKind.BINARY
    data: bytes

    def to_bytes(self) -> bytes:
        return self.data


Content = Annotated[Union[TextContent, BinaryContent], Field(discriminator="kind")]

ArchiveEntry = Tuple[Metadata, Content]


def coerce_content(value) -> Union[TextContent, BinaryContent]:
    """Accepts a Content model, a str or a bytes-like object."""
    if isinstance(value, (TextContent, BinaryContent)):
        return value
    if isinstance(value, str):
        return TextContent(text=value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return BinaryContent(data=bytes(value))
    raise TypeError(f"Unsupported content type: {type(value).__name__}")


# Block classification (decode side)


class HeaderBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal[BlockKind.HEADER] = BlockKind.HEADER
    metadata: Metadata
    inferred_extension: Optional[str] = None


class NullBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal[BlockKind.NULL] = BlockKind.NULL


class MalformedBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal[BlockKind.MALFORMED] = BlockKind.MALFORMED
    reason: str = ""


BlockClassification = Union[HeaderBlock, NullBlock, MalformedBlock]


# Encoder events


class EntryStartMetadata(BaseModel):
    start_offset: int


class EntryEndMetadata(BaseModel):
    end_offset: int
    md5sum: Optional[str]


class EntryStartEvent(BaseModel):
    type: Literal[ArchiveEventType.ENTRY_START]
    entry: Metadata
    metadata: EntryStartMetadata


class DataEvent(BaseModel):
    type: Literal[ArchiveEventType.DATA]
    entry: Optional[Metadata] = None
    data: bytes


class EntryEndEvent(BaseModel):
    type: Literal[ArchiveEventType.ENTRY_END]
    entry: Metadata
    metadata: EntryEndMetadata


class ArchiveCompletedEvent(BaseModel):
    type: Literal[ArchiveEventType.ARCHIVE_COMPLETED]


ArchiveEvent = Union[EntryStartEvent, DataEvent, EntryEndEvent, ArchiveCompletedEvent]
