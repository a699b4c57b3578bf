"""
Paste ingestion: read piped content, classify it, store it and link it to its author.
"""
import logging
from typing import Optional, Protocol

from pipbin import shortid
from pipbin.classifier import UNKNOWN_LANGUAGE, LanguageClassifier
from pipbin.database import PasteDatabase
from pipbin.errors import ClassifierRequestFailure, PasteTooLarge, StorageFailure, TransportReadFailure
from pipbin.models import IngestResult, User

logger = logging.getLogger(__name__)

DEFAULT_MAX_PASTE_BYTES = 512 * 1024
DEFAULT_EXPIRY = "never"


class ByteStream(Protocol):
    async def read(self, n: int = -1) -> bytes:
        ...


class IngestionPipeline:
    """Turns one non-interactive connection's input into a stored paste."""

    def __init__(
        self,
        db: PasteDatabase,
        classifier: LanguageClassifier,
        app_domain: str,
        max_bytes: int = DEFAULT_MAX_PASTE_BYTES,
    ):
        self.db = db
        self.classifier = classifier
        self.app_domain = app_domain.rstrip("/")
        self.max_bytes = max_bytes

    def link_for(self, paste_id: int) -> str:
        return f"{self.app_domain}/{shortid.encode(paste_id)}"

    async def read_content(self, stream: ByteStream) -> bytes:
        """
        Read the stream until end-of-stream, never holding more than
        ``max_bytes + 1`` bytes.

        Raises:
            PasteTooLarge: If the stream holds more than ``max_bytes``
            TransportReadFailure: If a read fails for any reason other than end-of-stream
        """
        chunks = []
        size = 0
        while size <= self.max_bytes:
            try:
                chunk = await stream.read(self.max_bytes + 1 - size)
            except Exception as e:
                logger.error(f"Could not read from session: {type(e).__name__}: {e}")
                raise TransportReadFailure(f"read failed: {type(e).__name__}: {e}") from e
            if not chunk:
                break
            chunks.append(chunk)
            size += len(chunk)

        if size > self.max_bytes:
            raise PasteTooLarge(
                f"paste exceeds {self.max_bytes} bytes",
                message=f"X your paste is larger than the {self.max_bytes} byte limit and was not saved",
            )
        return b"".join(chunks)

    async def ingest(self, user: User, stream: ByteStream) -> IngestResult:
        """
        Read, classify, store and link one paste.

        The classifier gets exactly the bytes read, with no buffer padding.
        Classifier failures degrade to an unknown language. A failure to
        link the paste to the user is reported in the result; the paste
        stays stored.

        Raises:
            TransportReadFailure: If reading the content fails
            PasteTooLarge: If the content exceeds the size cap
            StorageFailure: If the paste cannot be saved
        """
        data = await self.read_content(stream)

        classifier_error: Optional[str] = None
        try:
            language = await self.classifier.classify(data)
        except ClassifierRequestFailure as e:
            logger.error(f"Could not guess language: {e}")
            language = UNKNOWN_LANGUAGE
            classifier_error = e.message

        paste = await self.db.create_paste(
            data.decode("utf-8", errors="replace"),
            language,
            DEFAULT_EXPIRY,
        )
        logger.info(f"Stored paste {paste.id} for {user.name} ({language}, {len(data)} bytes)")

        link_error: Optional[str] = None
        try:
            await self.db.add_user_paste(user, str(paste.id))
        except StorageFailure as e:
            link_error = e.message

        code = shortid.encode(paste.id)
        return IngestResult(
            paste=paste,
            short_id=code,
            url=self.link_for(paste.id),
            language=language,
            size=len(data),
            linked=link_error is None,
            classifier_error=classifier_error,
            link_error=link_error,
        )
