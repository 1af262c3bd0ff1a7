import asyncio
import threading

import pytest


torch = pytest.importorskip("torch", reason="torch not installed")


from smolchat.engine.config import SamplerConfig
from smolchat.engine.errors import TokenizeError
from smolchat.engine.sampling import SamplerChain
from smolchat.engine.session import GenerationSession
from smolchat.engine.types import GenerationRequest, StopReason
from smolchat.engine.worker import GenerationWorker


def _worker(adapter) -> GenerationWorker:
    session = GenerationSession(adapter, SamplerChain.from_config(SamplerConfig(seed=0)))
    worker = GenerationWorker(session, name="test-gen")
    worker.start()
    return worker


def test_submit_returns_result(scripted_adapter_cls) -> None:
    cls = scripted_adapter_cls
    worker = _worker(cls(cls.encode_text("pong")))
    try:
        result = worker.submit(GenerationRequest(prompt="ping", max_tokens=10)).result(timeout=10)
    finally:
        worker.stop(timeout=10)

    assert result.text == "pong"
    assert result.stop_reason is StopReason.END_OF_SEQUENCE
    assert not worker.running


def test_concurrent_callers_are_serialized(scripted_adapter_cls) -> None:
    cls = scripted_adapter_cls
    adapter = cls(cls.encode_text("abcdef"))
    worker = _worker(adapter)
    results = []
    lock = threading.Lock()

    def call() -> None:
        res = worker.generate("prompt", 4, timeout=30)
        with lock:
            results.append(res)

    threads = [threading.Thread(target=call) for _ in range(8)]
    try:
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)
    finally:
        worker.stop(timeout=10)

    assert len(results) == 8
    # Interleaved sessions would corrupt the scripted stream.
    assert all(r.text == "abcd" for r in results)
    assert adapter.prefill_calls == 8
    assert adapter.decode_calls == 8 * 4


def test_errors_propagate_through_future(scripted_adapter_cls) -> None:
    worker = _worker(scripted_adapter_cls(fail_tokenize=True))
    try:
        future = worker.submit(GenerationRequest(prompt="p", max_tokens=2))
        with pytest.raises(TokenizeError):
            future.result(timeout=10)
        # The worker survives a failed job.
        assert worker.running
    finally:
        worker.stop(timeout=10)


def test_submit_after_stop_raises(scripted_adapter_cls) -> None:
    worker = _worker(scripted_adapter_cls())
    worker.stop(timeout=10)

    with pytest.raises(RuntimeError):
        worker.submit(GenerationRequest(prompt="p", max_tokens=2))


def test_invalid_request_rejected_on_submit(scripted_adapter_cls) -> None:
    worker = _worker(scripted_adapter_cls())
    try:
        with pytest.raises(ValueError):
            worker.submit(GenerationRequest(prompt="p", max_tokens=-1))
    finally:
        worker.stop(timeout=10)


def test_agenerate(scripted_adapter_cls) -> None:
    cls = scripted_adapter_cls
    worker = _worker(cls(cls.encode_text("async")))
    try:
        result = asyncio.run(worker.agenerate("p", 5))
    finally:
        worker.stop(timeout=10)

    assert result.text == "async"
    assert result.stop_reason is StopReason.MAX_TOKENS
