"""
UploadOrchestrator - Stores every variant of one image, all or nothing.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from functools import partial
from typing import Dict, List, Optional, Sequence, Tuple

from retrying import Retrying

from .errors import PartialFailure, RateLimitBackoff, ReferenceNotFound, StorageError
from .image_paths import VARIANT_CONTENT_TYPE, base_path
from .size_policy import SizeClass
from .variant import Variant


@dataclass
class UploadResult:
    """
    Outcome of a successful upload.

    Attributes:
        canonical_path: Canonical path all variants were stored under
        stored: Object names now present in the store
        original_name: Object name of the original variant, if uploaded
        attempts: Number of fan-out rounds it took
    """
    canonical_path: str
    stored: List[str] = field(default_factory=list)
    original_name: Optional[str] = None
    attempts: int = 1
    errors: Dict[str, str] = field(default_factory=dict)


class UploadOrchestrator:
    """
    Uploads the variants of one image in parallel.

    Each variant put is independent and bounded by a deadline. Variants that
    failed transiently are retried with exponential backoff; if any variant
    is still missing afterwards, the call is undone and PartialFailure is
    raised. Undoing deletes objects the call created and, for overwrite
    uploads, writes back the bytes each overwritten object held before the
    call. A canonical path is only reported usable when every variant was
    stored.
    """

    def __init__(
        self,
        storage,
        max_workers: int = 5,
        put_timeout: float = 30.0,
        retry_attempts: int = 3,
        retry_wait_ms: int = 500,
        retry_wait_max_ms: int = 10000,
        late_put_timeout: Optional[float] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize orchestrator.

        Args:
            storage: Storage client (S3Client or compatible)
            max_workers: Concurrent variant puts
            put_timeout: Seconds to wait for one fan-out round
            retry_attempts: Maximum fan-out rounds for transient failures
            retry_wait_ms: Exponential backoff multiplier in milliseconds
            retry_wait_max_ms: Cap for a single backoff wait
            late_put_timeout: Seconds a failed upload waits for timed-out puts
                to finish before undoing (default: put_timeout)
            logger: Optional logger instance
        """
        self.storage = storage
        self.max_workers = max_workers
        self.put_timeout = put_timeout
        self.retry_attempts = max(1, retry_attempts)
        self.retry_wait_ms = retry_wait_ms
        self.retry_wait_max_ms = retry_wait_max_ms
        self.late_put_timeout = put_timeout if late_put_timeout is None else late_put_timeout
        self.logger = logger or logging.getLogger(__name__)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix='variant-put'
        )

    def close(self) -> None:
        """Release worker threads without waiting for hung puts."""
        self._executor.shutdown(wait=False)

    def __enter__(self) -> 'UploadOrchestrator':
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def upload(
        self,
        canonical_path: str,
        variants: Sequence[Variant],
        overwrite: bool = False
    ) -> UploadResult:
        """
        Upload all variants of one image.

        Args:
            canonical_path: Canonical path the variants belong to
            variants: Variants produced by VariantGenerator
            overwrite: Replace existing objects (repair jobs only). The
                current bytes of every existing variant are read first so a
                failed call can put them back.

        Returns:
            UploadResult with every stored object name

        Raises:
            PartialFailure: Some variants were stored, then rolled back
            StorageError: No variant could be stored
        """
        canonical_path = base_path(canonical_path)
        if not variants:
            raise StorageError(f"No variants to upload for {canonical_path}", canonical_path)

        pending: Dict[str, Variant] = {v.object_name: v for v in variants}
        previous = self.snapshot(list(pending)) if overwrite else {}
        stored: List[str] = []
        errors: Dict[str, str] = {}
        timed_out = set()
        in_flight: List[Tuple[str, Future]] = []
        rounds = []

        def fan_out_round():
            rounds.append(len(pending))
            outcomes, late = self._fan_out(list(pending.values()), overwrite)
            in_flight.extend(late)

            retryable = 0
            for name, error in outcomes.items():
                if error is None:
                    stored.append(name)
                    pending.pop(name)
                    errors.pop(name, None)
                elif (name in timed_out and not overwrite
                        and not isinstance(error, RateLimitBackoff)
                        and 'already exists' in str(error)):
                    # The put that timed out in an earlier round landed after all.
                    self.logger.info(f"Earlier put of {name} completed late; keeping it")
                    stored.append(name)
                    pending.pop(name)
                    errors.pop(name, None)
                else:
                    errors[name] = str(error)
                    if isinstance(error, RateLimitBackoff):
                        retryable += 1
                        if 'timed out' in str(error):
                            timed_out.add(name)

            if pending and retryable == len(pending):
                raise RateLimitBackoff(
                    f"{len(pending)} variant(s) of {canonical_path} failed transiently",
                    canonical_path
                )

        retrier = Retrying(
            stop_max_attempt_number=self.retry_attempts,
            wait_exponential_multiplier=self.retry_wait_ms,
            wait_exponential_max=self.retry_wait_max_ms,
            retry_on_exception=lambda e: isinstance(e, RateLimitBackoff),
        )
        try:
            retrier.call(fan_out_round)
        except RateLimitBackoff:
            self.logger.warning(
                f"Giving up on {len(pending)} variant(s) of {canonical_path} "
                f"after {len(rounds)} attempt(s)"
            )

        if pending:
            stored.extend(self._settle(in_flight, stored, previous))
            self._fail(canonical_path, stored, errors, previous)

        original_name = next(
            (v.object_name for v in variants if v.size is SizeClass.ORIGINAL),
            None
        )
        self.logger.info(
            f"Stored {len(stored)} variant(s) of {canonical_path}"
            f"{' (overwrite)' if overwrite else ''}"
        )
        return UploadResult(
            canonical_path=canonical_path,
            stored=stored,
            original_name=original_name,
            attempts=len(rounds),
        )

    def snapshot(self, names: List[str]) -> Dict[str, bytes]:
        """Current bytes of every named object that exists, keyed by name."""
        previous = {}
        for name in names:
            try:
                previous[name] = self.storage.download_object(name)
            except ReferenceNotFound:
                continue
        if previous:
            self.logger.debug(f"Saved {len(previous)} existing variant(s) before overwrite")
        return previous

    def _fan_out(
        self,
        variants: List[Variant],
        overwrite: bool
    ) -> Tuple[Dict[str, Optional[Exception]], List[Tuple[str, Future]]]:
        """
        Issue one put per variant and collect every outcome (None on success).

        Returns:
            Tuple of (outcomes by name, puts still running past the deadline)
        """
        futures = {
            self._executor.submit(
                self.storage.put_object,
                variant.object_name,
                variant.data,
                variant.content_type,
                overwrite
            ): variant.object_name
            for variant in variants
        }
        done, not_done = wait(futures, timeout=self.put_timeout)

        outcomes: Dict[str, Optional[Exception]] = {}
        for future in done:
            name = futures[future]
            error = future.exception()
            if error is None:
                outcomes[name] = None
            elif isinstance(error, StorageError):
                outcomes[name] = error
            else:
                outcomes[name] = StorageError(f"Unexpected error storing {name}: {error}", name)
            if error is not None:
                self.logger.warning(f"Put failed for {name}: {outcomes[name]}")

        late = []
        for future in not_done:
            name = futures[future]
            # cancel() only succeeds for puts that never started
            if not future.cancel():
                late.append((name, future))
            outcomes[name] = RateLimitBackoff(
                f"Put of {name} timed out after {self.put_timeout}s", name
            )
            self.logger.warning(f"Put timed out for {name}")

        return outcomes, late

    def _settle(
        self,
        in_flight: List[Tuple[str, Future]],
        stored: List[str],
        previous: Dict[str, bytes]
    ) -> List[str]:
        """
        Wait for timed-out puts before a failed upload is undone.

        Returns names whose put landed while waiting, so the rollback covers
        them. Puts still running after late_put_timeout are undone by a
        callback when they finish.
        """
        if not in_flight:
            return []

        done, _ = wait([future for _, future in in_flight], timeout=self.late_put_timeout)
        landed = []
        for name, future in in_flight:
            if future not in done:
                self.logger.warning(f"Put of {name} still running; undoing it once it finishes")
                future.add_done_callback(partial(self._undo_late_put, name, previous))
            elif future.exception() is None and name not in stored and name not in landed:
                self.logger.info(f"Timed-out put of {name} landed late")
                landed.append(name)
        return landed

    def _undo_late_put(self, name: str, previous: Dict[str, bytes], future: Future) -> None:
        if future.cancelled() or future.exception() is not None:
            return
        try:
            self._undo(name, previous)
            self.logger.info(f"Undid late put of {name}")
        except StorageError as e:
            self.logger.error(f"Could not undo late put of {name}: {e}")

    def _fail(
        self,
        canonical_path: str,
        stored: List[str],
        errors: Dict[str, str],
        previous: Dict[str, bytes]
    ) -> None:
        """Roll back stored variants and raise."""
        if not stored:
            detail = '; '.join(f"{name}: {msg}" for name, msg in sorted(errors.items()))
            raise StorageError(f"All variant uploads failed for {canonical_path}: {detail}", canonical_path)

        rolled_back, rollback_failed = self.rollback(stored, previous)
        raise PartialFailure(
            f"{len(errors)} of {len(errors) + len(stored)} variant(s) of {canonical_path} "
            f"could not be stored; rolled back {len(rolled_back)}",
            stored=list(stored),
            rolled_back=rolled_back,
            rollback_failed=rollback_failed,
            errors=dict(errors),
        )

    def _undo(self, name: str, previous: Dict[str, bytes]) -> None:
        if name in previous:
            self.storage.put_object(name, previous[name], VARIANT_CONTENT_TYPE, overwrite=True)
        else:
            self.storage.delete_object(name)

    def rollback(self, names: List[str], previous: Optional[Dict[str, bytes]] = None):
        """
        Undo puts made by a failed upload. Returns (rolled back, failed).

        Names found in previous get their earlier bytes written back; all
        others are deleted.
        """
        previous = previous or {}
        removed, failed = [], []
        for name in names:
            try:
                self._undo(name, previous)
                removed.append(name)
            except StorageError as e:
                self.logger.error(f"Rollback failed for {name}: {e}")
                failed.append(name)
        if removed:
            self.logger.info(f"Rolled back {len(removed)} variant(s)")
        return removed, failed
