TAR_BLOCK_SIZE = 512
TAR_FOOTER_SIZE = 1024

NULL_BLOCK = b"\0" * TAR_BLOCK_SIZE

USTAR_MAGIC = b"ustar\0"
USTAR_VERSION = b"00"

# (offset, width) of every header field
NAME_FIELD = (0, 100)
MODE_FIELD = (100, 8)
UID_FIELD = (108, 8)
GID_FIELD = (116, 8)
SIZE_FIELD = (124, 12)
MTIME_FIELD = (136, 12)
CHECKSUM_FIELD = (148, 8)
TYPEFLAG_FIELD = (156, 1)
LINKNAME_FIELD = (157, 100)
MAGIC_FIELD = (257, 6)
VERSION_FIELD = (263, 2)
UNAME_FIELD = (265, 32)
GNAME_FIELD = (297, 32)
DEVMAJOR_FIELD = (329, 8)
DEVMINOR_FIELD = (337, 8)
PREFIX_FIELD = (345, 155)

# Largest values the 8- and 12-byte numeric fields can carry
MAX_ID = 0o77777777
MAX_SIZE = 0o777777777777

TEXT_EXTENSIONS = frozenset({"text", "txt", "tex", "csv", "html"})

# Returned when a header text field is not valid UTF-8
UNREADABLE_TEXT = "<unreadable>"
