"""
VerificationPipeline — stream every blob of a storage and re-hash it.

One producer thread drains BlobStreamer.stream_blobs into a bounded queue;
the calling thread consumes the queue, validates each blob and keeps the
tally. A corrupt blob is counted and reported, never fatal. A failure of the
stream itself is raised as StreamingError after the queue has been drained,
carrying the tally so far.
"""

import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from ..config.settings import VerifySettings
from ..errors import BlobValidationError, StreamingError, UnsupportedBackendError
from ..storage.base import BlobStreamer, Storage
from ..storage.models import BlobAndToken, BlobRef
from .reporter import Reporter

logger = logging.getLogger(__name__)

# Put by the producer after the last blob, whether streaming succeeded or not
_CLOSED = object()

# Seconds between checks of the cancel event while the queue is full
_PUT_POLL_INTERVAL = 0.1


@dataclass
class TallyResult:
    """Outcome of a verification run."""

    valid: int = 0
    invalid: int = 0
    invalid_refs: List[BlobRef] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.valid + self.invalid

    @property
    def ok(self) -> bool:
        return self.invalid == 0


class VerificationPipeline:
    """Verifies all blobs of one streaming storage."""

    def __init__(
        self,
        storage: Storage,
        handler_type: str,
        settings: Optional[VerifySettings] = None,
        reporter: Optional[Reporter] = None,
    ):
        """
        Initialize VerificationPipeline.

        Args:
            storage: Storage to verify. Must be a BlobStreamer.
            handler_type: Storage type name, used in error messages.
            settings: Queue and read sizes. Defaults to VerifySettings().
            reporter: Receives progress events. Defaults to a silent Reporter.
        """
        self.storage = storage
        self.handler_type = handler_type
        self.settings = settings or VerifySettings()
        self.reporter = reporter or Reporter()

    def run(self) -> TallyResult:
        """
        Verify every blob in the storage.

        Returns:
            TallyResult with valid/invalid counts and the invalid refs.

        Raises:
            UnsupportedBackendError: The storage cannot stream blobs. Nothing
                is read.
            StreamingError: Streaming failed. ``e.result`` holds the tally of
                the blobs seen before the failure.
        """
        if not isinstance(self.storage, BlobStreamer) or not self.storage.can_stream():
            raise UnsupportedBackendError(self.handler_type)

        blobs: "queue.Queue" = queue.Queue(maxsize=self.settings.queue_size)
        cancel = threading.Event()
        errors: List[BaseException] = []

        producer = threading.Thread(
            target=self._produce,
            args=(blobs, cancel, errors),
            name="blob-streamer",
            daemon=True,
        )
        logger.info(f"Verifying {self.handler_type} storage (queue size {self.settings.queue_size})")
        producer.start()

        tally = TallyResult()
        try:
            self._consume(blobs, tally)
        except BaseException:
            # Nobody is draining the queue any more
            cancel.set()
            raise
        producer.join()

        if errors:
            reason = str(errors[0]) or type(errors[0]).__name__
            raise StreamingError(f"error while streaming blobs: {reason}", result=tally) from errors[0]

        logger.info(f"Verification finished: {tally.valid} valid, {tally.invalid} invalid")
        return tally

    # =========================================================================
    # Producer
    # =========================================================================

    def _put(self, blobs: "queue.Queue", item: object, cancel: threading.Event) -> bool:
        """Block until ``item`` is queued. Returns False if cancelled first."""
        while not cancel.is_set():
            try:
                blobs.put(item, timeout=_PUT_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def _produce(self, blobs: "queue.Queue", cancel: threading.Event, errors: List[BaseException]) -> None:
        streamed = 0
        try:
            for item in self.storage.stream_blobs(cancel, ""):
                if not self._put(blobs, item, cancel):
                    logger.info("Blob streaming cancelled")
                    return
                streamed += 1
        except BaseException as e:
            # Recorded, not re-raised: a truncated stream must never pass for a complete one
            logger.debug(f"Blob streaming failed after {streamed} blobs: {e}", exc_info=True)
            errors.append(e)
        finally:
            self._put(blobs, _CLOSED, cancel)
        logger.debug(f"Blob streaming finished: {streamed} blobs")

    # =========================================================================
    # Consumer
    # =========================================================================

    def _check(self, item: BlobAndToken, tally: TallyResult) -> None:
        blob = item.blob
        try:
            blob.validate_contents(self.settings.read_chunk_size)
        except BlobValidationError as e:
            tally.invalid += 1
            tally.invalid_refs.append(blob.ref)
            logger.debug(f"Invalid blob: {e}")
            self.reporter.invalid_blob(blob.ref)
        else:
            tally.valid += 1

    def _consume(self, blobs: "queue.Queue", tally: TallyResult) -> None:
        while True:
            item = blobs.get()
            if item is _CLOSED:
                return
            self._check(item, tally)
            self.reporter.progress(tally)
