import pytest

from coclai.adapter import ArtifactPluginAdapter, ArtifactTurnOutput
from coclai.artifact_types import ArtifactTaskKind, ArtifactTaskSpec, ParseError
from coclai.hooks import PluginContractVersion


class FakeAdapter(ArtifactPluginAdapter):
    def __init__(self, start_thread_id, turn_id, turn_output):
        self.start_thread_id = start_thread_id
        self.turn_id = turn_id
        self.turn_output = turn_output
        self.start_calls = 0
        self.resume_calls = []
        self.run_turn_calls = []

    async def start_thread(self):
        self.start_calls += 1
        return self.start_thread_id

    async def resume_thread(self, thread_id):
        self.resume_calls.append(thread_id)
        return thread_id

    async def run_turn(self, thread_id, prompt, spec):
        self.run_turn_calls.append((thread_id, prompt, spec))
        return ArtifactTurnOutput(turn_id=self.turn_id, output=self.turn_output)


class FutureAdapter(FakeAdapter):
    def plugin_contract_version(self):
        return PluginContractVersion(2, 0)


class FailingAdapter(FakeAdapter):
    async def resume_thread(self, thread_id):
        raise ParseError("thread/resume missing thread id in result")


def make_spec():
    return ArtifactTaskSpec(
        artifact_id="doc:adapter",
        kind=ArtifactTaskKind.DOC_GENERATE,
        user_goal="GENERATE_DOC",
        constraints=["Keep output deterministic"],
        output_schema={"type": "object"},
    )


def test_default_contract_version_is_current():
    adapter = FakeAdapter("thr_fake_adapter", None, {})
    version = ArtifactPluginAdapter.plugin_contract_version(adapter)
    assert version == PluginContractVersion.CURRENT
    assert (version.major, version.minor) == (1, 0)
    assert PluginContractVersion.CURRENT.is_compatible_with(version)


def test_overridden_contract_version_is_incompatible():
    adapter = FutureAdapter("thr", None, {})
    assert not PluginContractVersion.CURRENT.is_compatible_with(
        adapter.plugin_contract_version()
    )


def test_adapter_requires_all_methods():
    class Partial(ArtifactPluginAdapter):
        async def start_thread(self):
            return "thr"

    with pytest.raises(TypeError):
        Partial()
    with pytest.raises(TypeError):
        ArtifactPluginAdapter()


@pytest.mark.asyncio
async def test_start_and_resume_thread():
    adapter = FakeAdapter("thr_fake_adapter", None, {})
    assert await adapter.start_thread() == "thr_fake_adapter"
    assert await adapter.resume_thread("thr_existing") == "thr_existing"
    assert adapter.start_calls == 1
    assert adapter.resume_calls == ["thr_existing"]
    version = ArtifactPluginAdapter.plugin_contract_version(adapter)
    assert version == PluginContractVersion(1, 0)


@pytest.mark.asyncio
async def test_run_turn_returns_turn_output():
    output = {"format": "markdown", "title": "Adapter Title", "text": "# Adapter\nok\n"}
    adapter = FakeAdapter("thr_fake_adapter", "turn_fake_adapter", output)
    spec = make_spec()
    result = await adapter.run_turn("thr_fake_adapter", "GOAL:\nGENERATE_DOC", spec)
    assert result == ArtifactTurnOutput(turn_id="turn_fake_adapter", output=output)
    assert adapter.run_turn_calls == [("thr_fake_adapter", "GOAL:\nGENERATE_DOC", spec)]


@pytest.mark.asyncio
async def test_adapter_errors_propagate():
    adapter = FailingAdapter("thr", None, {})
    expected = ParseError("thread/resume missing thread id in result")
    with pytest.raises(ParseError) as info:
        await adapter.resume_thread("thr_existing")
    assert str(info.value) == str(expected)
    assert "thread/resume missing thread id in result" in str(info.value)