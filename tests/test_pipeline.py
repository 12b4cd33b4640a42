"""
Tests for the verification pipeline.

Tests cover:
1. All-valid and partially tampered stores
2. Unsupported (non-streaming) storages
3. Streaming failure after partial success
4. Bounded queue back-pressure
5. Cancellation when the consumer fails
6. Console reporter output
"""

import io
import sys
import threading
import time
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from blobverify.config.settings import VerifySettings
from blobverify.errors import StreamingError, UnsupportedBackendError
from blobverify.storage import BlobpackedStorage, BlobStreamer, MemoryStorage, Storage
from blobverify.storage.blobpacked import MetaIndexArgs
from blobverify.storage.models import Blob, BlobAndToken, BlobRef, SizedRef
from blobverify.verify.pipeline import TallyResult, VerificationPipeline
from blobverify.verify.reporter import ConsoleReporter, Reporter


def make_blob(content: bytes, claimed: bytes = None) -> Blob:
    """A blob whose ref is computed from ``claimed`` (defaults to ``content``)."""
    ref = BlobRef.for_bytes(content if claimed is None else claimed)
    return Blob(SizedRef(ref=ref, size=len(content)), lambda: io.BytesIO(content))


class ListStreamer(Storage, BlobStreamer):
    """Streams a fixed list of blobs, then optionally fails."""

    def __init__(self, blobs, fail_with=None):
        self.blobs = blobs
        self.fail_with = fail_with
        self.streamed = 0

    def stat_blobs(self, refs):
        return {}

    def stream_blobs(self, cancel, token=""):
        for blob in self.blobs:
            if cancel.is_set():
                return
            self.streamed += 1
            yield BlobAndToken(blob, str(blob.ref))
        if self.fail_with is not None:
            raise self.fail_with


class EndlessStreamer(Storage, BlobStreamer):
    """Streams the same blob until cancelled."""

    def __init__(self):
        self.stopped = threading.Event()

    def stat_blobs(self, refs):
        return {}

    def stream_blobs(self, cancel, token=""):
        blob = make_blob(b"again")
        try:
            while not cancel.is_set():
                yield BlobAndToken(blob, "")
        finally:
            self.stopped.set()


class NonStreamingStorage(Storage):
    def stat_blobs(self, refs):
        return {}


class StreamAborted(BaseException):
    """Raised by a backend that bypasses Exception, e.g. on shutdown."""


class RecordingReporter(Reporter):
    def __init__(self):
        self.invalid = []
        self.progress_calls = 0

    def progress(self, tally):
        self.progress_calls += 1

    def invalid_blob(self, ref):
        self.invalid.append(ref)


# =============================================================================
# Test: Tallies
# =============================================================================

class TestTally:

    def test_all_valid(self):
        storage = ListStreamer([make_blob(bytes([i]) * 10) for i in range(25)])
        reporter = RecordingReporter()

        result = VerificationPipeline(storage, "list", reporter=reporter).run()

        assert result == TallyResult(valid=25, invalid=0, invalid_refs=[])
        assert result.ok
        assert reporter.progress_calls == 25

    def test_tampered_blobs_counted(self):
        blobs = [make_blob(f"blob {i}".encode()) for i in range(10)]
        tampered = [make_blob(b"evil", claimed=b"good"), make_blob(b"bad", claimed=b"fine")]
        stream = blobs[:3] + [tampered[0]] + blobs[3:7] + [tampered[1]] + blobs[7:]
        reporter = RecordingReporter()

        result = VerificationPipeline(ListStreamer(stream), "list", reporter=reporter).run()

        assert result.valid == 10
        assert result.invalid == 2
        assert result.total == 12
        assert not result.ok
        assert result.invalid_refs == [tampered[0].ref, tampered[1].ref]
        assert reporter.invalid == result.invalid_refs

    def test_empty_store(self):
        result = VerificationPipeline(ListStreamer([]), "list").run()

        assert result == TallyResult()

    def test_memory_storage(self):
        storage = MemoryStorage()
        for i in range(5):
            storage.add_blob(b"x" * i)
        storage.receive_blob(BlobRef.for_bytes(b"expected"), b"actual")

        result = VerificationPipeline(storage, "memory").run()

        assert (result.valid, result.invalid) == (5, 1)
        assert result.invalid_refs == [BlobRef.for_bytes(b"expected")]

    def test_read_error_counts_as_invalid(self):
        ref = BlobRef.for_bytes(b"vanished")

        def opener():
            raise PermissionError("denied")

        result = VerificationPipeline(ListStreamer([Blob(SizedRef(ref=ref, size=8), opener)]), "list").run()

        assert result.invalid_refs == [ref]


# =============================================================================
# Test: Failures
# =============================================================================

class TestFailures:

    def test_unsupported_storage(self):
        with pytest.raises(UnsupportedBackendError) as exc:
            VerificationPipeline(NonStreamingStorage(), "replica").run()

        assert exc.value.handler_type == "replica"
        assert "'replica'" in str(exc.value)

    def test_streaming_failure_after_valid_blobs(self):
        """Test that a clean partial tally does not hide a streaming failure."""
        storage = ListStreamer([make_blob(bytes([i])) for i in range(4)], fail_with=OSError("I/O error"))

        with pytest.raises(StreamingError, match="I/O error") as exc:
            VerificationPipeline(storage, "list").run()

        assert exc.value.result == TallyResult(valid=4, invalid=0, invalid_refs=[])
        assert isinstance(exc.value.__cause__, OSError)

    def test_streaming_failure_keeps_invalid_refs(self):
        bad = make_blob(b"x", claimed=b"y")
        storage = ListStreamer([make_blob(b"a"), bad], fail_with=RuntimeError("backend fault"))

        with pytest.raises(StreamingError) as exc:
            VerificationPipeline(storage, "list").run()

        assert exc.value.result.invalid_refs == [bad.ref]

    def test_blobpacked_over_non_streaming_child(self):
        """Test that a blobpacked storage is rejected before anything is read."""
        small = ListStreamer([make_blob(b"a")])
        packed = BlobpackedStorage(small, NonStreamingStorage(), MetaIndexArgs(type="memory"))
        reporter = RecordingReporter()

        with pytest.raises(UnsupportedBackendError) as exc:
            VerificationPipeline(packed, "blobpacked", reporter=reporter).run()

        assert exc.value.handler_type == "blobpacked"
        assert small.streamed == 0
        assert reporter.progress_calls == 0

    def test_base_exception_in_stream_is_a_failure(self):
        """Test that a stream cut short by a non-Exception error still fails the run."""
        storage = ListStreamer([make_blob(bytes([i])) for i in range(3)], fail_with=StreamAborted())

        with pytest.raises(StreamingError, match="StreamAborted") as exc:
            VerificationPipeline(storage, "list").run()

        assert exc.value.result.valid == 3
        assert isinstance(exc.value.__cause__, StreamAborted)

    def test_immediate_streaming_failure(self):
        with pytest.raises(StreamingError) as exc:
            VerificationPipeline(ListStreamer([], fail_with=OSError("no such dir")), "list").run()

        assert exc.value.result.total == 0


# =============================================================================
# Test: Concurrency
# =============================================================================

class TestConcurrency:

    def test_queue_is_bounded(self):
        """Test that the producer never runs more than the queue size ahead."""
        queue_size = 3
        storage = ListStreamer([make_blob(bytes([i])) for i in range(40)])
        lead = []

        class SlowReporter(Reporter):
            def __init__(self):
                self.consumed = 0

            def progress(self, tally):
                self.consumed += 1
                lead.append(storage.streamed - self.consumed)
                time.sleep(0.002)

        VerificationPipeline(
            storage, "list", settings=VerifySettings(queue_size=queue_size), reporter=SlowReporter()
        ).run()

        # queued items + the one waiting to be put
        assert max(lead) <= queue_size + 1

    def test_order_preserved(self):
        blobs = [make_blob(f"{i}".encode(), claimed=f"claim {i}".encode()) for i in range(30)]

        result = VerificationPipeline(ListStreamer(blobs), "list", settings=VerifySettings(queue_size=2)).run()

        assert result.invalid_refs == [b.ref for b in blobs]

    def test_consumer_failure_cancels_producer(self):
        storage = EndlessStreamer()

        class ExplodingReporter(Reporter):
            def __init__(self):
                self.calls = 0

            def progress(self, tally):
                self.calls += 1
                if self.calls == 5:
                    raise RuntimeError("consumer died")

        with pytest.raises(RuntimeError, match="consumer died"):
            VerificationPipeline(
                storage, "endless", settings=VerifySettings(queue_size=1), reporter=ExplodingReporter()
            ).run()

        for thread in threading.enumerate():
            if thread.name == "blob-streamer":
                thread.join(timeout=5)
                assert not thread.is_alive()


# =============================================================================
# Test: ConsoleReporter
# =============================================================================

class TestConsoleReporter:

    @pytest.fixture
    def out(self):
        return io.StringIO()

    def test_progress_clean(self, out):
        reporter = ConsoleReporter(out)

        reporter.progress(TallyResult(valid=1))
        reporter.progress(TallyResult(valid=2))

        assert out.getvalue() == " verified 1 blob...\r verified 2 blobs...\r"

    def test_progress_with_invalid(self, out):
        ConsoleReporter(out).progress(TallyResult(valid=1, invalid=3))

        assert out.getvalue() == " 3 invalid blobs, 1 valid blob...\r"

    def test_invalid_blob_line(self, out):
        ref = BlobRef.for_bytes(b"foo", "sha1")

        ConsoleReporter(out).invalid_blob(ref)

        assert out.getvalue() == "found invalid blob: sha1-0beec7b5ea3f0fdbc95d0dd47f3c5bc275da8a33\n"

    def test_summary_clean(self, out):
        ConsoleReporter(out).summary(TallyResult(valid=42))

        assert out.getvalue() == "verified all 42 blobs\n"

    def test_summary_corruption(self, out):
        ConsoleReporter(out).summary(TallyResult(valid=8, invalid=2))

        assert out.getvalue() == (
            "CORRUPTION DETECTED: 2 of 10 blobs failed validation. Their refs are listed above.\n"
        )

    def test_defaults_to_stdout(self, capsys):
        ConsoleReporter().summary(TallyResult(valid=1))

        assert capsys.readouterr().out == "verified all 1 blobs\n"
