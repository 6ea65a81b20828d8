"""
Download Pipeline Orchestrator

This module drives the retrieval of every planned artifact: it skips files
that are already present and intact, fetches the rest through a Downloader,
verifies published checksums and reports aggregate progress.
"""

import os
import queue
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from sysimage.constants import (
    ACTIVITY_DOWNLOADING,
    ACTIVITY_VERIFYING,
    BYTES_PER_MEGABYTE,
    PROGRESS_CEILING,
)
from sysimage.exceptions import ChecksumMismatchError, DownloadError
from sysimage.log_utils import logger
from sysimage.utils import calculate_checksum

from .interfaces import (
    ActivityEvent,
    Artifact,
    ArtifactDoneEvent,
    ChecksumFunc,
    DownloadCompleteEvent,
    DownloadEvent,
    Downloader,
    ProgressEvent,
)

ProgressCallback = Callable[[float, float], None]
ArtifactDoneCallback = Callable[[int, int], None]
ActivityCallback = Callable[[str], None]

# Minimum span, in seconds, over which the transfer rate is measured
RATE_SAMPLE_SECONDS = 1.0


class ProgressTracker:
    """
    Per-download accumulator shared by all worker threads.

    Every mutation happens under one lock so concurrent chunk and completion
    updates are never lost.
    """

    def __init__(self, total_artifacts: int, clock: Callable[[], float]):
        self.total_artifacts = total_artifacts
        self.clock = clock
        self.expected_bytes = 0
        self.downloaded_bytes = 0
        self.completed = 0
        self._rate_mbps = 0.0
        self._sample_bytes = 0
        self._sample_time = clock()
        self._lock = threading.Lock()

    def add_expected(self, size: Optional[int]) -> None:
        if not size:
            return
        with self._lock:
            self.expected_bytes += size

    def add_downloaded(self, count: int) -> ProgressEvent:
        with self._lock:
            self.downloaded_bytes += count
            now = self.clock()
            elapsed = now - self._sample_time
            if elapsed >= RATE_SAMPLE_SECONDS:
                self._rate_mbps = (
                    (self.downloaded_bytes - self._sample_bytes) / BYTES_PER_MEGABYTE
                ) / elapsed
                self._sample_bytes = self.downloaded_bytes
                self._sample_time = now
            return ProgressEvent(self._fraction(), self._rate_mbps)

    def complete_artifact(self) -> ArtifactDoneEvent:
        with self._lock:
            self.completed += 1
            return ArtifactDoneEvent(self.completed, self.total_artifacts)

    def _fraction(self) -> float:
        # The expected total only grows as response headers arrive, so early
        # values may be 0.0 and the fraction stays below 1.0 until completion.
        if self.expected_bytes <= 0:
            return 0.0
        return min(self.downloaded_bytes / self.expected_bytes, PROGRESS_CEILING)


@dataclass(frozen=True)
class _WorkerFinished:
    index: int
    future: Future


class DownloadOrchestrator:
    """
    Materializes a list of artifacts on local disk.

    Artifacts are processed concurrently, up to the Downloader's
    `max_concurrent`. Events are produced by the worker threads but always
    delivered on the thread that iterates `iter_download` (or calls
    `download`).
    """

    def __init__(
        self,
        downloader: Downloader,
        checksum_func: Optional[ChecksumFunc] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Create a DownloadOrchestrator.

        Parameters:
            downloader (Downloader): Transport used to fetch missing artifacts.
            checksum_func (Optional[ChecksumFunc]): Computes `(path, algorithm) -> hex digest`; defaults to hashlib-based calculate_checksum.
            clock (Optional[Callable[[], float]]): Monotonic time source used for rate measurement.
        """
        self.downloader = downloader
        self.checksum_func = checksum_func or calculate_checksum
        self.clock = clock or time.monotonic

    def download(
        self,
        artifacts: Iterable[Artifact],
        on_progress: Optional[ProgressCallback] = None,
        on_artifact_done: Optional[ArtifactDoneCallback] = None,
        on_activity: Optional[ActivityCallback] = None,
    ) -> List[Artifact]:
        """
        Materialize every artifact, reporting progress through callbacks.

        Parameters:
            artifacts (Iterable[Artifact]): Planned artifacts, in order.
            on_progress (Optional[ProgressCallback]): Called with `(fraction, rate_mbps)`; the last call is `(1.0, 0.0)`.
            on_artifact_done (Optional[ArtifactDoneCallback]): Called once per artifact with `(completed, total)`.
            on_activity (Optional[ActivityCallback]): Called with coarse state names such as "downloading".

        Returns:
            List[Artifact]: The artifacts in input order with their confirmed local paths.

        Raises:
            ChecksumMismatchError: If a fetched file does not match its checksum.
            DownloadError: Wrapping the first other artifact failure.
        """
        result: List[Artifact] = []
        for event in self.iter_download(artifacts):
            if isinstance(event, ProgressEvent):
                if on_progress:
                    on_progress(event.fraction, event.rate_mbps)
            elif isinstance(event, ArtifactDoneEvent):
                if on_artifact_done:
                    on_artifact_done(event.completed, event.total)
            elif isinstance(event, ActivityEvent):
                if on_activity:
                    on_activity(event.state)
            elif isinstance(event, DownloadCompleteEvent):
                result = list(event.artifacts)
        return result

    def iter_download(self, artifacts: Iterable[Artifact]) -> Iterator[DownloadEvent]:
        """
        Materialize every artifact, yielding progress events as they happen.

        Yields an ActivityEvent whenever the coarse state changes, a
        ProgressEvent whenever the downloaded byte total grows, exactly one
        ArtifactDoneEvent per artifact, then exactly one terminal
        `ProgressEvent(1.0, 0.0)` and a DownloadCompleteEvent.

        On the first failure the remaining queued artifacts are cancelled,
        in-flight fetches are allowed to finish, and the failure is raised.
        Files already on disk are left in place so a later run can reuse them.

        Raises:
            ChecksumMismatchError: If a fetched file does not match its checksum.
            DownloadError: Wrapping the first other artifact failure.
        """
        planned = list(artifacts)
        tracker = ProgressTracker(len(planned), self.clock)
        events: "queue.Queue[object]" = queue.Queue()
        last_state: Optional[str] = ACTIVITY_DOWNLOADING

        yield ActivityEvent(ACTIVITY_DOWNLOADING)
        logger.info(f"Preparing {len(planned)} artifacts")

        results: Dict[int, Artifact] = {}
        if planned:
            workers = max(1, int(getattr(self.downloader, "max_concurrent", 1) or 1))
            executor = ThreadPoolExecutor(
                max_workers=min(workers, len(planned)),
                thread_name_prefix="sysimage-download",
            )
            futures: List[Future] = []
            failure: Optional[BaseException] = None
            failed_artifact: Optional[Artifact] = None
            try:
                for index, artifact in enumerate(planned):
                    future = executor.submit(
                        self._materialize, artifact, tracker, events
                    )
                    future.add_done_callback(
                        lambda f, i=index: events.put(_WorkerFinished(i, f))
                    )
                    futures.append(future)

                pending = len(futures)
                while pending:
                    item = events.get()
                    if isinstance(item, _WorkerFinished):
                        pending -= 1
                        if item.future.cancelled():
                            continue
                        error = item.future.exception()
                        if error is None:
                            results[item.index] = item.future.result()
                        elif failure is None:
                            failure = error
                            failed_artifact = planned[item.index]
                            for other in futures:
                                other.cancel()
                        continue
                    if failure is not None:
                        continue
                    if isinstance(item, ActivityEvent):
                        if item.state == last_state:
                            continue
                        last_state = item.state
                    yield item  # type: ignore[misc]
            finally:
                executor.shutdown(wait=True, cancel_futures=True)

            if failure is not None:
                if isinstance(failure, DownloadError):
                    raise failure
                raise self._wrap_failure(failed_artifact, failure) from failure

        yield ProgressEvent(1.0, 0.0)
        logger.info(f"All {len(planned)} artifacts are present and verified")
        yield DownloadCompleteEvent(tuple(results[i] for i in range(len(planned))))

    def _materialize(
        self,
        artifact: Artifact,
        tracker: ProgressTracker,
        events: "queue.Queue[object]",
    ) -> Artifact:
        """Ensure one artifact exists locally and is intact; runs on a worker thread."""
        name = os.path.basename(artifact.local_path)
        if self._is_satisfied(artifact):
            logger.info(f"Skipped: {name} (already present & verified)")
            events.put(tracker.complete_artifact())
            return artifact

        def on_chunk(count: int) -> None:
            if count > 0:
                events.put(tracker.add_downloaded(count))

        events.put(ActivityEvent(ACTIVITY_DOWNLOADING))
        logger.debug(f"Fetching {artifact.url}")
        fetched = self.downloader.fetch(
            artifact.url, artifact.local_path, tracker.add_expected, on_chunk
        )
        local_path = str(fetched) if fetched is not None else artifact.local_path

        if artifact.checksum is not None:
            events.put(ActivityEvent(ACTIVITY_VERIFYING))
            actual = self.checksum_func(local_path, artifact.checksum.algorithm)
            if not _digests_match(actual, artifact.checksum.sum):
                logger.error(
                    f"Checksum mismatch for {name}: expected {artifact.checksum.sum}, got {actual}"
                )
                raise ChecksumMismatchError(
                    local_path, artifact.checksum.sum, actual, url=artifact.url
                )

        events.put(tracker.complete_artifact())
        if local_path != artifact.local_path:
            return replace(artifact, local_path=local_path)
        return artifact

    def _is_satisfied(self, artifact: Artifact) -> bool:
        """
        Determine whether an artifact is already present and intact.

        Returns:
            bool: `True` if the file exists and either no checksum is required or it matches, `False` otherwise.
        """
        if not Path(artifact.local_path).is_file():
            return False
        if artifact.checksum is None:
            return True
        actual = self.checksum_func(artifact.local_path, artifact.checksum.algorithm)
        if _digests_match(actual, artifact.checksum.sum):
            return True
        logger.info(
            f"Hash verification failed for {os.path.basename(artifact.local_path)}, re-downloading"
        )
        return False

    @staticmethod
    def _wrap_failure(
        artifact: Optional[Artifact], error: BaseException
    ) -> DownloadError:
        url = artifact.url if artifact else None
        logger.error(f"Failed to download {url}: {error}")
        return DownloadError(
            f"Download failed: {url}", url=url, cause=error, details=str(error)
        )


def _digests_match(actual: Optional[str], expected: str) -> bool:
    return actual is not None and actual.lower() == expected.lower()
