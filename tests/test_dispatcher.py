import asyncio
from collections.abc import AsyncIterator
from typing import Any

import pytest

from guardian.agents.base import AnalysisAgent
from guardian.backends.base import AgentBackend, GenerationConfig
from guardian.dispatcher import ScanDispatcher, ScanOptions, normalize_categories
from guardian.errors import ValidationError
from guardian.models import Category, CodeUnit, ResultStatus


class NullBackend(AgentBackend):
    async def execute(self, prompt: str, config: GenerationConfig) -> AsyncIterator[str]:
        _ = prompt, config
        yield "{}"


class ScriptedAgent(AnalysisAgent):
    def __init__(
        self,
        category: Category,
        *,
        output: Any = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        super().__init__(NullBackend())
        self.category = category
        self.output = {"score": 75} if output is None else output
        self.error = error
        self.delay = delay
        self.calls = 0

    async def analyze(self, unit: CodeUnit) -> Any:
        _ = unit
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.output


UNIT = CodeUnit(code="print('hi')\n", language="python", filepath="hello.py")


def _agents(**overrides: ScriptedAgent) -> dict[Category, ScriptedAgent]:
    agents = {category: ScriptedAgent(category) for category in Category}
    for name, agent in overrides.items():
        agents[Category(name)] = agent
    return agents


@pytest.mark.parametrize(
    "requested",
    [
        [Category.SECURITY],
        [Category.SECURITY, Category.QUALITY],
        [Category.DEVOPS, Category.LEARNING, Category.COMPLIANCE],
        list(Category),
    ],
)
def test_one_result_per_requested_category(requested: list[Category]) -> None:
    dispatcher = ScanDispatcher(_agents())

    report = asyncio.run(dispatcher.execute(UNIT, requested))

    assert list(report.per_category) == requested
    assert all(result.category == category for category, result in report.per_category.items())
    assert all(result.ok for result in report.per_category.values())


def test_all_successful_scores_follow_weighted_formula() -> None:
    agents = _agents(
        security=ScriptedAgent(Category.SECURITY, output={"score": 90}),
        quality=ScriptedAgent(Category.QUALITY, output={"score": 70}),
        compliance=ScriptedAgent(Category.COMPLIANCE, output={"score": 50}),
    )
    dispatcher = ScanDispatcher(agents)

    report = asyncio.run(dispatcher.execute(UNIT, ["security", "quality", "compliance"]))

    # (36 + 21 + 10) / 0.9 = 74.44
    assert report.overall_score == 74
    assert report.per_category[Category.SECURITY].score == 90


def test_all_failures_score_zero() -> None:
    agents = {
        category: ScriptedAgent(category, error=RuntimeError(f"{category} down"))
        for category in Category
    }
    dispatcher = ScanDispatcher(agents)

    report = asyncio.run(dispatcher.execute(UNIT, list(Category)))

    assert report.overall_score == 0
    assert all(result.status == ResultStatus.ERROR for result in report.per_category.values())
    assert report.per_category[Category.DEVOPS].error == "devops down"


def test_single_failure_is_isolated() -> None:
    agents = _agents(learning=ScriptedAgent(Category.LEARNING, error=ValueError("bad input")))
    dispatcher = ScanDispatcher(agents)

    report = asyncio.run(dispatcher.execute(UNIT, list(Category)))

    assert report.failed == [Category.LEARNING]
    assert len(report.succeeded) == 5
    assert report.per_category[Category.LEARNING].error == "bad input"
    assert report.overall_score == 75


def test_security_scores_while_quality_times_out() -> None:
    agents = _agents(
        security=ScriptedAgent(Category.SECURITY, output={"score": 80}),
        quality=ScriptedAgent(Category.QUALITY, delay=5.0),
    )
    dispatcher = ScanDispatcher(agents, call_timeout_seconds=0.05)

    report = asyncio.run(dispatcher.execute(UNIT, {"security", "quality"}))

    assert report.overall_score == 80
    quality = report.per_category[Category.QUALITY]
    assert quality.status == ResultStatus.ERROR
    assert "timed out" in (quality.error or "")
    assert quality.duration_ms >= 30
    assert report.per_category[Category.SECURITY].ok


def test_per_call_timeout_option_overrides_default() -> None:
    agents = _agents(devops=ScriptedAgent(Category.DEVOPS, delay=5.0))
    dispatcher = ScanDispatcher(agents, call_timeout_seconds=60.0)

    report = asyncio.run(
        dispatcher.execute(UNIT, ["devops"], ScanOptions(timeout_seconds=0.05))
    )

    devops = report.per_category[Category.DEVOPS]
    assert "timed out" in (devops.error or "")
    assert devops.duration_ms < 5000


@pytest.mark.parametrize("timeout_seconds", [0, -1.5])
def test_non_positive_timeout_is_rejected(timeout_seconds: float) -> None:
    agents = _agents()
    dispatcher = ScanDispatcher(agents)

    with pytest.raises(ValidationError, match="timeout"):
        asyncio.run(
            dispatcher.execute(UNIT, ["security"], ScanOptions(timeout_seconds=timeout_seconds))
        )
    assert agents[Category.SECURITY].calls == 0


def test_unknown_categories_are_reported_not_dispatched() -> None:
    dispatcher = ScanDispatcher(_agents())

    report = asyncio.run(dispatcher.execute(UNIT, ["security", "performance", "security"]))

    assert list(report.per_category) == [Category.SECURITY]
    assert report.rejected_categories == ("performance",)


def test_known_category_without_agent_is_an_error_entry() -> None:
    dispatcher = ScanDispatcher({Category.SECURITY: ScriptedAgent(Category.SECURITY)})

    report = asyncio.run(dispatcher.execute(UNIT, ["security", "devops"]))

    devops = report.per_category[Category.DEVOPS]
    assert devops.status == ResultStatus.ERROR
    assert devops.error == "category not registered"
    assert report.overall_score == 75


@pytest.mark.parametrize("requested", [[], ["nope"], ["nope", "also-nope"]])
def test_scan_without_valid_categories_is_rejected(requested: list[str]) -> None:
    dispatcher = ScanDispatcher(_agents())

    with pytest.raises(ValidationError):
        asyncio.run(dispatcher.execute(UNIT, requested))


def test_malformed_unit_is_rejected_before_dispatch() -> None:
    agents = _agents()
    dispatcher = ScanDispatcher(agents)

    with pytest.raises(ValidationError):
        asyncio.run(dispatcher.execute(CodeUnit(code="   ", language="python"), ["security"]))
    assert agents[Category.SECURITY].calls == 0


@pytest.mark.parametrize("output", ["plain text", {"score": 150}, {"score": "high"}])
def test_malformed_agent_output_becomes_error(output: Any) -> None:
    agents = _agents(quality=ScriptedAgent(Category.QUALITY, output=output))
    dispatcher = ScanDispatcher(agents)

    report = asyncio.run(dispatcher.execute(UNIT, ["security", "quality"]))

    assert report.per_category[Category.QUALITY].status == ResultStatus.ERROR
    assert report.per_category[Category.SECURITY].ok


def test_payload_is_kept_without_score() -> None:
    output = {"score": 64, "summary": "ok", "vulnerabilities": []}
    agents = _agents(security=ScriptedAgent(Category.SECURITY, output=output))

    report = asyncio.run(ScanDispatcher(agents).execute(UNIT, ["security"]))

    result = report.per_category[Category.SECURITY]
    assert result.score == 64
    assert result.payload == {"summary": "ok", "vulnerabilities": []}


def test_categories_run_concurrently() -> None:
    quality_started = asyncio.Event()

    class WaitsForQuality(ScriptedAgent):
        async def analyze(self, unit: CodeUnit) -> Any:
            await quality_started.wait()
            return {"score": 60}

    class SignalsStart(ScriptedAgent):
        async def analyze(self, unit: CodeUnit) -> Any:
            quality_started.set()
            return {"score": 90}

    agents = {
        Category.SECURITY: WaitsForQuality(Category.SECURITY),
        Category.QUALITY: SignalsStart(Category.QUALITY),
    }
    dispatcher = ScanDispatcher(agents, call_timeout_seconds=2.0)

    report = asyncio.run(dispatcher.execute(UNIT, ["security", "quality"]))

    assert report.succeeded == [Category.SECURITY, Category.QUALITY]


def test_cancellation_keeps_completed_results() -> None:
    agents = _agents(
        security=ScriptedAgent(Category.SECURITY, output={"score": 88}),
        quality=ScriptedAgent(Category.QUALITY, delay=10.0),
    )
    dispatcher = ScanDispatcher(agents)

    async def _run():
        cancel_event = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, cancel_event.set)
        return await dispatcher.execute(
            UNIT, ["security", "quality"], ScanOptions(cancel_event=cancel_event)
        )

    report = asyncio.run(_run())

    assert report.cancelled is True
    assert report.per_category[Category.SECURITY].score == 88
    assert report.per_category[Category.QUALITY].error == "scan cancelled"
    assert report.overall_score == 88


def test_unset_cancel_event_does_not_affect_scan() -> None:
    dispatcher = ScanDispatcher(_agents())

    async def _run():
        return await dispatcher.execute(
            UNIT, ["security", "quality"], ScanOptions(cancel_event=asyncio.Event())
        )

    report = asyncio.run(_run())

    assert report.cancelled is False
    assert len(report.succeeded) == 2


def test_caller_cancellation_cancels_branches() -> None:
    slow = ScriptedAgent(Category.SECURITY, delay=10.0)
    dispatcher = ScanDispatcher({Category.SECURITY: slow})

    async def _run() -> list[asyncio.Task]:
        scan = asyncio.create_task(dispatcher.execute(UNIT, ["security"]))
        await asyncio.sleep(0.05)
        branches = [task for task in asyncio.all_tasks() if task.get_name() == "scan-security"]
        scan.cancel()
        with pytest.raises(asyncio.CancelledError):
            await scan
        assert all(task.done() for task in branches)
        return branches

    branches = asyncio.run(_run())

    assert len(branches) == 1
    assert branches[0].cancelled()


def test_normalize_categories_accepts_members_and_strings() -> None:
    accepted, rejected = normalize_categories(
        [Category.QUALITY, " Security ", "quality", "bogus", 42]
    )

    assert accepted == [Category.QUALITY, Category.SECURITY]
    assert rejected == ["bogus", "42"]
