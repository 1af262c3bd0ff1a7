"""Single-flight generation worker.

One daemon thread owns the GenerationSession. Callers enqueue requests and get
a `concurrent.futures.Future` back; requests are served strictly FIFO, one at a
time. There is no cancellation once a request has started decoding.
"""

from __future__ import annotations

import asyncio
import logging
import queue
import threading
import uuid
from concurrent.futures import Future
from dataclasses import dataclass, field

from .session import GenerationSession
from .types import GenerationRequest, GenerationResult

logger = logging.getLogger(__name__)


@dataclass
class _Job:
    request: GenerationRequest
    future: Future = field(default_factory=Future)
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])


class GenerationWorker:
    """Serializes every generation against one session.

    Thread-safety:
        `submit`, `generate` and `agenerate` may be called from any thread or
        event loop. Only the worker thread touches the session.
    """

    def __init__(self, session: GenerationSession, *, name: str | None = None) -> None:
        self._session = session
        self._name = name or f"smolchat-gen-{uuid.uuid4().hex[:8]}"
        self._queue: queue.Queue[_Job | None] = queue.Queue()
        self._thread: threading.Thread | None = None
        self._state_lock = threading.Lock()
        self._stopping = False

    @property
    def session(self) -> GenerationSession:
        return self._session

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def pending(self) -> int:
        """Approximate number of queued (not yet started) requests."""
        return self._queue.qsize()

    def start(self) -> None:
        with self._state_lock:
            if self.running:
                return
            self._stopping = False
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Finish queued work, then stop the thread."""
        with self._state_lock:
            if self._thread is None:
                return
            self._stopping = True
            self._queue.put(None)
            thread = self._thread
        thread.join(timeout)
        with self._state_lock:
            if not thread.is_alive():
                self._thread = None

    def submit(self, request: GenerationRequest) -> Future:
        """Queue a request; the returned future resolves to a GenerationResult."""
        request.validate()
        with self._state_lock:
            if self._stopping or not self.running:
                raise RuntimeError("Generation worker is not running.")
            job = _Job(request=request)
            self._queue.put(job)
        logger.debug("Queued job %s (max_tokens=%d)", job.job_id, request.max_tokens)
        return job.future

    def generate(self, prompt: str, max_tokens: int, *, timeout: float | None = None) -> GenerationResult:
        """Blocking helper around `submit`."""
        return self.submit(GenerationRequest(prompt=prompt, max_tokens=max_tokens)).result(timeout)

    async def agenerate(self, prompt: str, max_tokens: int) -> GenerationResult:
        """Await a generation from an asyncio event loop."""
        future = self.submit(GenerationRequest(prompt=prompt, max_tokens=max_tokens))
        return await asyncio.wrap_future(future)

    def _run(self) -> None:
        while True:
            job = self._queue.get()
            if job is None:
                break
            if not job.future.set_running_or_notify_cancel():
                logger.debug("Job %s was cancelled before it started", job.job_id)
                continue

            logger.info("Starting job %s", job.job_id)
            try:
                result = self._session.run(job.request)
            except Exception as exc:
                logger.warning("Job %s failed: %s", job.job_id, exc)
                job.future.set_exception(exc)
            else:
                job.future.set_result(result)
