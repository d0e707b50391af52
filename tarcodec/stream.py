import hashlib
import logging
from typing import Generator, Iterable, List, Optional, Tuple

from .constants import TAR_BLOCK_SIZE, TAR_FOOTER_SIZE
from .enums import ArchiveEventType
from .header import encode_header
from .octal import padding_size
from .schemas import (
    ArchiveCompletedEvent,
    ArchiveEvent,
    DataEvent,
    EntryEndEvent,
    EntryEndMetadata,
    EntryStartEvent,
    EntryStartMetadata,
    Metadata,
    TextContent,
    coerce_content,
)

logger = logging.getLogger(__name__)


class ArchiveStreamGenerator:
    """
    Turns an ordered list of (metadata, content) pairs into the event
    sequence of a USTAR archive: header, content, padding for each
    entry, then the 1024-byte footer.
    """

    def __init__(self, entries: Iterable[Tuple[Metadata, object]]):
        self.entries = entries
        self._emitted_bytes = 0

    def stream(
        self, compute_md5: bool = True
    ) -> Generator[ArchiveEvent, None, None]:
        """
        Emits the archive events. With `compute_md5` off, entry end events
        carry no digest.
        """
        logger.info("Starting archive stream.")
        self._emitted_bytes = 0
        count = 0

        for metadata, content in self.entries:
            data = coerce_content(content).to_bytes()
            # The declared size always follows the real content
            entry = metadata.model_copy(update={"file_size": len(data)})

            yield self._create_event_start(entry)
            yield self._emit_header(entry)

            md5_hash = hashlib.md5(data).hexdigest() if compute_md5 else None
            if data:
                yield self._emit_content(entry, data)
                yield from self._emit_padding(len(data))

            yield self._create_event_end(entry, md5_hash)
            count += 1

        yield from self._emit_archive_footer()
        yield ArchiveCompletedEvent(type=ArchiveEventType.ARCHIVE_COMPLETED)
        logger.info(
            f"Archive stream completed: {count} entries, {self._emitted_bytes} bytes."
        )

    def _create_event_start(self, entry: Metadata) -> EntryStartEvent:
        return EntryStartEvent(
            type=ArchiveEventType.ENTRY_START,
            entry=entry,
            metadata=EntryStartMetadata(start_offset=self._emitted_bytes),
        )

    def _emit_header(self, entry: Metadata) -> DataEvent:
        header_bytes = encode_header(entry)
        self._emitted_bytes += len(header_bytes)
        logger.debug(f"Header for '{entry.full_path}' ({entry.file_size} bytes)")
        return DataEvent(type=ArchiveEventType.DATA, data=header_bytes, entry=entry)

    def _emit_content(self, entry: Metadata, data: bytes) -> DataEvent:
        self._emitted_bytes += len(data)
        return DataEvent(type=ArchiveEventType.DATA, data=data, entry=entry)

    def _emit_padding(self, size: int) -> Generator[ArchiveEvent, None, None]:
        padding = padding_size(size)
        if padding > 0:
            self._emitted_bytes += padding
            yield DataEvent(type=ArchiveEventType.DATA, data=b"\0" * padding)

    def _create_event_end(
        self, entry: Metadata, md5: Optional[str]
    ) -> EntryEndEvent:
        return EntryEndEvent(
            type=ArchiveEventType.ENTRY_END,
            entry=entry,
            metadata=EntryEndMetadata(md5sum=md5, end_offset=self._emitted_bytes),
        )

    def _emit_archive_footer(self) -> Generator[ArchiveEvent, None, None]:
        footer = b"\0" * TAR_FOOTER_SIZE
        self._emitted_bytes += len(footer)
        yield DataEvent(type=ArchiveEventType.DATA, data=footer)


def encode_archive(entries: Iterable[Tuple[Metadata, object]]) -> bytes:
    """Encodes (metadata, content) pairs into one archive byte string."""
    chunks: List[bytes] = []
    for event in ArchiveStreamGenerator(entries).stream(compute_md5=False):
        if isinstance(event, DataEvent):
            chunks.append(event.data)

    archive = b"".join(chunks)
    assert len(archive) % TAR_BLOCK_SIZE == 0
    return archive


def encode_text_archive(entries: Iterable[Tuple[Metadata, str]]) -> bytes:
    return encode_archive(
        (metadata, TextContent(text=text)) for metadata, text in entries
    )
