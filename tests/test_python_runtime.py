import asyncio

import pytest

from verifier.config import Settings
from verifier.python_runtime import PythonRuntime
from verifier.runtime import RuntimeRegistry, default_registry, get_runtime, reset_runtimes, supported_languages
from verifier.sandbox import SandboxError
from tests.sandbox_fakes import FakeRuntime, InProcessSandbox

def test_unattached_runtime_is_not_ready():
    async def _run():
        runtime = PythonRuntime(Settings())
        assert not runtime.is_ready()
        result = await runtime.compare_by_ast("x", "x")
        assert result.infra_available is False
        assert result.error == "Sandbox not attached"
        with pytest.raises(SandboxError):
            await runtime.execute("print(1)")
        with pytest.raises(SandboxError):
            await runtime.compare_by_tokens("x", "x")

    asyncio.run(_run())

def test_attach_new_handle_recompiles_helpers():
    async def _run():
        runtime = PythonRuntime(Settings())
        first = InProcessSandbox()
        runtime.attach(first)
        assert runtime.is_ready()
        assert (await runtime.compare_by_ast("x[0:3]", "x[:3]")).match
        assert (await runtime.compare_by_tokens("a+b", "a + b")).match
        assert sorted(first.loads) == ["canonical", "tokenizer"]

        runtime.attach(first)
        await runtime.compare_by_ast("a", "a")
        assert len(first.loads) == 2

        second = InProcessSandbox()
        runtime.attach(second)
        await runtime.compare_by_ast("a", "a")
        assert second.loads == ["canonical"]

        runtime.reset_normalizer()
        await runtime.compare_by_ast("a", "a")
        assert second.loads == ["canonical", "canonical"]

    asyncio.run(_run())

def test_owned_sandbox_lifecycle():
    async def _run():
        runtime = PythonRuntime(Settings(execution_timeout_s=0.5))
        await runtime.initialize()
        try:
            assert runtime.is_ready()
            result = await runtime.execute("print(6 * 7)")
            assert result.success and result.output == "42\n" and result.error is None
            slow = await runtime.execute("while True:\n    pass")
            assert not slow.success
            assert "timeout" in slow.error.lower()
            tokens = await runtime.tokenize("x = 1")
            assert [text for _, text in tokens][:3] == ["x", "=", "1"]
        finally:
            await runtime.terminate()
        assert not runtime.is_ready()
        assert runtime.sandbox is None

    asyncio.run(_run())

def test_terminate_leaves_host_sandbox_open():
    async def _run():
        runtime = PythonRuntime(Settings())
        host = InProcessSandbox()
        runtime.attach(host)
        await runtime.terminate()
        assert runtime.sandbox is None
        assert host.is_ready()

    asyncio.run(_run())

def test_registry_lookup():
    registry = RuntimeRegistry()
    fake = FakeRuntime()
    registry.register("Python", fake)
    assert registry.get("python") is fake
    assert registry.get(" PYTHON ") is fake
    assert registry.get("ruby") is None
    assert registry.get(None) is None
    assert registry.get("") is None
    assert registry.languages() == ["python"]

def test_registry_terminate_all():
    async def _run():
        registry = RuntimeRegistry()
        a, b = FakeRuntime(), FakeRuntime()
        registry.register("python", a)
        registry.register("lua", b)
        await registry.terminate_all()
        assert not a.is_ready() and not b.is_ready()

    asyncio.run(_run())

def test_default_registry_has_python():
    reset_runtimes()
    try:
        assert isinstance(get_runtime("python"), PythonRuntime)
        assert get_runtime("python") is default_registry().get("python")
        assert supported_languages() == ["python"]
    finally:
        reset_runtimes()

def test_runtime_ready_while_sandbox_awaits_restart():
    class Restarting(InProcessSandbox):
        def is_ready(self):
            return False

        def is_available(self):
            return True

    runtime = PythonRuntime(Settings())
    runtime.attach(Restarting())
    assert runtime.is_ready()
    runtime.attach(InProcessSandbox())
    assert runtime.is_ready()
