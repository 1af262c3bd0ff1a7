import pytest


torch = pytest.importorskip("torch", reason="torch not installed")


import smolchat
from smolchat.engine import registry
from smolchat.engine.errors import ContextOverflowError, LoadError
from smolchat.engine.types import StopReason


@pytest.fixture
def scripted_family(monkeypatch, scripted_adapter_cls):
    class _Loadable(scripted_adapter_cls):
        def load(self, model_path: str, **kwargs) -> None:
            if model_path == "missing":
                raise OSError("no such file")
            self.capacity = kwargs["context_capacity"]
            self.script = list(kwargs.get("script", ()))
            self.load_kwargs = kwargs

    monkeypatch.setattr(registry, "_ADAPTER_REGISTRY", dict(registry._ADAPTER_REGISTRY))
    registry.register_adapter("scripted", _Loadable)
    return _Loadable


def test_load_generate_close(scripted_family) -> None:
    script = scripted_family.encode_text("hello")
    handle = smolchat.load_model("toy", 32, 2, family="scripted", script=script, sampler={"seed": 3})
    try:
        result = smolchat.generate(handle, "hi", max_tokens=3)
        assert result.text == "hel"
        assert result.stop_reason is StopReason.MAX_TOKENS
        assert handle.info.context_capacity == 32
        assert handle.config.thread_count == 2
        assert handle.config.sampler.seed == 3
        assert handle.adapter.load_kwargs["thread_count"] == 2
    finally:
        handle.close()

    assert handle.closed
    assert handle.adapter.unloaded
    with pytest.raises(RuntimeError):
        handle.generate("again", 1)


def test_default_max_tokens_and_context_manager(scripted_family) -> None:
    script = scripted_family.encode_text("abc")
    with smolchat.load_model("toy", family="scripted", script=script, config={"default_max_tokens": 2}) as handle:
        assert handle.config.context_capacity == 2048
        assert handle.generate("x").text == "ab"


def test_context_overflow_surfaces(scripted_family) -> None:
    with smolchat.load_model("toy", 4, family="scripted") as handle:
        with pytest.raises(ContextOverflowError):
            smolchat.generate(handle, "abcdef", max_tokens=2)


def test_load_failure_is_wrapped(scripted_family) -> None:
    with pytest.raises(LoadError) as excinfo:
        smolchat.load_model("missing", family="scripted")
    assert excinfo.value.model_path == "missing"


def test_generate_then_extract(scripted_family) -> None:
    payload = '```json\n{"category": "Spam", "confidence": 0.9}\n```'
    script = scripted_family.encode_text(payload)
    with smolchat.load_model("toy", 256, family="scripted", script=script) as handle:
        result = smolchat.generate(handle, "classify", max_tokens=200)

    record = smolchat.extract_structured(result.text, "classification")
    assert result.stop_reason is StopReason.END_OF_SEQUENCE
    assert record.to_dict() == {"category": "Spam", "confidence": 0.9}
