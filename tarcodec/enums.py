from enum import Enum, IntFlag


class Permission(IntFlag):
    """Access rights granted to one subject (user, group or other)."""

    NONE = 0
    EXECUTE = 1
    WRITE = 2
    READ = 4


class SpecialBits(IntFlag):
    NONE = 0
    STICKY = 1
    SETGID = 2
    SETUID = 4


class LinkIndicator(str, Enum):
    """Type flag stored at offset 156 of the header."""

    NORMAL_FILE = "0"
    HARD_LINK = "1"
    SYMBOLIC_LINK = "2"


class ContentKind(str, Enum):
    TEXT = "text"
    BINARY = "binary"


class BlockKind(str, Enum):
    HEADER = "header"
    NULL = "null"
    MALFORMED = "malformed"


class DecoderState(str, Enum):
    START = "start"
    PROCESSING = "processing"
    END_OF_DATA = "end_of_data"


class ArchiveEventType(str, Enum):
    ENTRY_START = "entry_start"
    DATA = "data"
    ENTRY_END = "entry_end"
    ARCHIVE_COMPLETED = "archive_completed"
