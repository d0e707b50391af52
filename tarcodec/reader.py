import logging
from typing import Callable, Generator, Iterable, List, Optional, Tuple, Union

from .constants import TAR_BLOCK_SIZE, TEXT_EXTENSIONS
from .enums import DecoderState
from .header import classify_block
from .octal import round_up_to_block
from .schemas import (
    ArchiveEntry,
    BinaryContent,
    HeaderBlock,
    Metadata,
    NullBlock,
    TextContent,
)

logger = logging.getLogger(__name__)

ContentPolicy = Callable[[HeaderBlock], bool]


class ExtensionContentPolicy:
    """
    Decides whether an entry body is text from the extension inferred
    from its filename. Matching is case-insensitive.
    """

    def __init__(self, text_extensions: Iterable[str] = TEXT_EXTENSIONS):
        self.text_extensions = frozenset(
            ext.lower().lstrip(".") for ext in text_extensions
        )

    def __call__(self, header: HeaderBlock) -> bool:
        extension = header.inferred_extension
        return extension is not None and extension.lower() in self.text_extensions


def always_text(header: HeaderBlock) -> bool:
    return True


class ArchiveReader:
    """
    Walks an in-memory archive block by block.

    States go START -> PROCESSING (after each recognised header) and end
    in END_OF_DATA at the first null block, malformed block or truncated
    entry. Nothing after that point is ever inspected.
    """

    def __init__(
        self,
        data: bytes,
        content_policy: Optional[ContentPolicy] = None,
        verify_checksum: bool = True,
    ):
        self.data = bytes(data)
        self.content_policy = content_policy or ExtensionContentPolicy()
        self.verify_checksum = verify_checksum
        self.state = DecoderState.START
        self.cursor = 0

    def iter_entries(self) -> Generator[ArchiveEntry, None, None]:
        """
        Lazily yields (metadata, content) pairs in stream order. The
        sequence is finite and cannot be restarted: the reader keeps its
        cursor between calls.
        """
        if self.state is DecoderState.START:
            logger.info(f"Decoding archive of {len(self.data)} bytes.")

        while self.state is not DecoderState.END_OF_DATA:
            if self.cursor >= len(self.data):
                logger.debug("Input exhausted without an end-of-archive marker.")
                self._finish()
                return

            block = self.data[self.cursor : self.cursor + TAR_BLOCK_SIZE]
            result = classify_block(block, verify_checksum=self.verify_checksum)

            if isinstance(result, HeaderBlock):
                entry = self._read_entry(result)
                if entry is None:
                    self._finish()
                    return
                self.state = DecoderState.PROCESSING
                yield entry
            elif isinstance(result, NullBlock):
                logger.debug(f"End-of-archive block at offset {self.cursor}.")
                self._finish()
            else:
                logger.warning(
                    f"Malformed block at offset {self.cursor}: {result.reason}"
                )
                self._finish()

    def read_all(self) -> List[ArchiveEntry]:
        return list(self.iter_entries())

    def __iter__(self):
        return self.iter_entries()

    def _finish(self):
        self.state = DecoderState.END_OF_DATA

    def _read_entry(self, header: HeaderBlock) -> Optional[ArchiveEntry]:
        metadata = header.metadata
        content_start = self.cursor + TAR_BLOCK_SIZE
        content_end = content_start + metadata.file_size

        if content_end > len(self.data):
            available = max(0, len(self.data) - content_start)
            logger.warning(
                f"Truncated entry '{metadata.full_path}': "
                f"expected {metadata.file_size} bytes, found {available}."
            )
            return None

        body = self.data[content_start:content_end]
        self.cursor = content_start + round_up_to_block(metadata.file_size)

        logger.debug(f"Entry '{metadata.full_path}' ({metadata.file_size} bytes)")
        return metadata, self._decode_body(header, body)

    def _decode_body(
        self, header: HeaderBlock, body: bytes
    ) -> Union[TextContent, BinaryContent]:
        if not self.content_policy(header):
            return BinaryContent(data=body)

        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug(
                f"'{header.metadata.full_path}' is not valid UTF-8, keeping it binary."
            )
            return BinaryContent(data=body)

        return TextContent(text=text.replace("\0", ""))


def decode_archive(
    data: bytes,
    content_policy: Optional[ContentPolicy] = None,
    verify_checksum: bool = True,
) -> List[ArchiveEntry]:
    """Decodes every recognised entry of an archive, in stream order."""
    reader = ArchiveReader(
        data, content_policy=content_policy, verify_checksum=verify_checksum
    )
    return reader.read_all()


def decode_text_archive(
    data: bytes, verify_checksum: bool = True
) -> List[Tuple[Metadata, str]]:
    """Decodes every entry body as text, whatever its extension."""
    entries = []
    for metadata, content in decode_archive(data, always_text, verify_checksum):
        if isinstance(content, TextContent):
            entries.append((metadata, content.text))
        else:
            text = content.data.decode("utf-8", errors="replace")
            entries.append((metadata, text.replace("\0", "")))
    return entries
