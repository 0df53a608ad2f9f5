import asyncio

from verifier.ast_compare import AstNormalizer
from verifier.sandbox import PythonSandbox
from verifier.types import AstCompareOptions
from tests.sandbox_fakes import InProcessSandbox

def test_primary_match():
    async def _run():
        sandbox = InProcessSandbox()
        result = await AstNormalizer().compare(sandbox, "s[1:4]", "s[1:4]")
        assert result.match is True
        assert result.matched_alternative is None
        assert result.infra_available is True

    asyncio.run(_run())

def test_alternative_match_reports_original_text():
    async def _run():
        sandbox = InProcessSandbox()
        result = await AstNormalizer().compare(sandbox, "1", "2", ["3", "1"])
        assert result.match is True
        assert result.matched_alternative == "1"

        renamed = await AstNormalizer().compare(
            sandbox, "for j in xs: print(j)", "print(xs)", ["for  i in xs:\n    print(i)"]
        )
        assert renamed.matched_alternative == "for  i in xs:\n    print(i)"

    asyncio.run(_run())

def test_invalid_submission_is_a_learner_error():
    async def _run():
        result = await AstNormalizer().compare(InProcessSandbox(), "for i in", "for i in x: pass")
        assert result.match is False
        assert result.infra_available is True
        assert result.error is None

    asyncio.run(_run())

def test_unparseable_alternative_is_skipped():
    async def _run():
        result = await AstNormalizer().compare(InProcessSandbox(), "x[:3]", "x[:4]", ["x[", "x[0:3:1]"])
        assert result.match is True
        assert result.matched_alternative == "x[0:3:1]"

    asyncio.run(_run())

def test_sandbox_fault_is_infra_unavailable():
    async def _run():
        result = await AstNormalizer().compare(InProcessSandbox(crash_with="Sandbox crashed"), "s[1:4]", "s[1:4]")
        assert result.match is False
        assert result.infra_available is False
        assert result.error == "Sandbox crashed"

    asyncio.run(_run())

def test_options_are_forwarded():
    async def _run():
        sandbox = InProcessSandbox()
        normalizer = AstNormalizer()
        strict = AstCompareOptions(normalize_slices=False)
        assert (await normalizer.compare(sandbox, "x[0:3]", "x[:3]")).match
        assert not (await normalizer.compare(sandbox, "x[0:3]", "x[:3]", options=strict)).match

    asyncio.run(_run())

def test_helper_compiled_once_per_session_and_after_reset():
    async def _run():
        sandbox = InProcessSandbox()
        normalizer = AstNormalizer()
        assert not normalizer.is_initialized(sandbox)
        await normalizer.compare(sandbox, "a", "a")
        await normalizer.compare(sandbox, "b", "c", ["d"])
        assert sandbox.loads == ["canonical"]
        assert normalizer.is_initialized(sandbox)

        normalizer.reset()
        assert not normalizer.is_initialized(sandbox)
        await normalizer.compare(sandbox, "a", "a")
        assert sandbox.loads == ["canonical", "canonical"]

        sandbox.restart()
        assert not normalizer.is_initialized(sandbox)
        assert (await normalizer.compare(sandbox, "a", "a")).match
        assert len(sandbox.loads) == 3

        other = InProcessSandbox()
        await normalizer.compare(other, "a", "a")
        assert other.loads == ["canonical"]

    asyncio.run(_run())

def test_compare_in_subprocess_sandbox():
    async def _run():
        async with PythonSandbox() as sandbox:
            normalizer = AstNormalizer()
            result = await normalizer.compare(sandbox, "[y for y in items]", "[x for x in items]")
            assert result.match and result.infra_available
            result = await normalizer.compare(sandbox, "list(x)", "[*x]")
            assert not result.match and result.infra_available
            result = await normalizer.compare(sandbox, "x[:3]", "x[3:]", ["x[0:3:1]"])
            assert result.matched_alternative == "x[0:3:1]"

    asyncio.run(_run())
