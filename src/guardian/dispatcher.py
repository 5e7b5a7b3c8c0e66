from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from guardian.agents.base import AnalysisAgent
from guardian.errors import ValidationError
from guardian.models import AnalysisResult, Category, CodeUnit, ScanReport
from guardian.scoring import reduce_score

LOGGER = logging.getLogger(__name__)

NOT_REGISTERED_MESSAGE = "category not registered"
CANCELLED_MESSAGE = "scan cancelled"


@dataclass(slots=True)
class ScanOptions:
    timeout_seconds: float | None = None
    cancel_event: asyncio.Event | None = None


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def normalize_categories(
    categories: Iterable[Category | str],
) -> tuple[list[Category], list[str]]:
    """Split a request into known categories (deduplicated, in order) and rejects."""
    accepted: list[Category] = []
    rejected: list[str] = []
    for raw in categories:
        category = Category.parse(raw)
        if category is None:
            label = str(raw)
            if label not in rejected:
                rejected.append(label)
            continue
        if category not in accepted:
            accepted.append(category)
    return accepted, rejected


class ScanDispatcher:
    def __init__(
        self,
        agents: Mapping[Category, AnalysisAgent],
        *,
        call_timeout_seconds: float = 120.0,
    ) -> None:
        self.agents = agents
        self.call_timeout_seconds = call_timeout_seconds

    async def _analyze_category(
        self,
        category: Category,
        unit: CodeUnit,
        timeout_seconds: float,
    ) -> AnalysisResult:
        agent = self.agents.get(category)
        if agent is None:
            LOGGER.warning("No agent registered for category %s", category)
            return AnalysisResult.failure(category, NOT_REGISTERED_MESSAGE)

        started = time.perf_counter()
        try:
            output = await asyncio.wait_for(agent.analyze(unit), timeout=timeout_seconds)
            result = AnalysisResult.from_output(
                category, output, duration_ms=_elapsed_ms(started)
            )
        except TimeoutError:
            duration_ms = _elapsed_ms(started)
            LOGGER.error("%s analysis timed out after %.1fs", category, timeout_seconds)
            return AnalysisResult.failure(
                category,
                f"{category} analysis timed out after {timeout_seconds:.1f}s",
                duration_ms=duration_ms,
            )
        except Exception as exc:
            duration_ms = _elapsed_ms(started)
            LOGGER.error("%s analysis failed: %s", category, exc)
            return AnalysisResult.failure(
                category, str(exc) or type(exc).__name__, duration_ms=duration_ms
            )

        LOGGER.info("%s analysis completed in %dms", category, result.duration_ms)
        return result

    async def _await_barrier(
        self,
        tasks: list[asyncio.Task[AnalysisResult]],
        cancel_event: asyncio.Event | None,
    ) -> bool:
        """Wait until every branch settles; return True if the scan was cancelled."""
        pending: set[asyncio.Future] = set(tasks)
        if cancel_event is None:
            await asyncio.wait(pending)
            return False

        cancel_waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            while pending:
                done, _ = await asyncio.wait(
                    pending | {cancel_waiter}, return_when=asyncio.FIRST_COMPLETED
                )
                pending -= done
                if cancel_waiter in done:
                    break
        finally:
            cancel_waiter.cancel()
        if not pending:
            return False

        # Completed branches keep their results; only the stragglers are cancelled.
        for task in pending:
            task.cancel()
        await asyncio.wait(pending)
        return True

    async def execute(
        self,
        unit: CodeUnit,
        categories: Iterable[Category | str],
        options: ScanOptions | None = None,
    ) -> ScanReport:
        options = options or ScanOptions()
        unit.validate()
        accepted, rejected = normalize_categories(categories)
        for label in rejected:
            LOGGER.warning("Ignoring unknown category %r", label)
        if not accepted:
            raise ValidationError(
                "Scan requires at least one known category"
                + (f"; rejected: {', '.join(rejected)}" if rejected else "")
            )

        timeout_seconds = options.timeout_seconds
        if timeout_seconds is None:
            timeout_seconds = self.call_timeout_seconds
        elif timeout_seconds <= 0:
            raise ValidationError(f"Scan timeout must be positive, got {timeout_seconds!r}")

        LOGGER.info(
            "Executing scan for %s across %s",
            unit.filepath or "code snippet",
            ", ".join(str(category) for category in accepted),
        )

        started = time.perf_counter()
        tasks = [
            asyncio.create_task(
                self._analyze_category(category, unit, timeout_seconds),
                name=f"scan-{category}",
            )
            for category in accepted
        ]
        try:
            cancelled = await self._await_barrier(tasks, options.cancel_event)
        finally:
            stragglers = [task for task in tasks if not task.done()]
            for task in stragglers:
                task.cancel()
            if stragglers:
                with contextlib.suppress(asyncio.CancelledError):
                    await asyncio.gather(*stragglers, return_exceptions=True)

        per_category: dict[Category, AnalysisResult] = {}
        for category, task in zip(accepted, tasks, strict=True):
            if task.cancelled():
                per_category[category] = AnalysisResult.failure(
                    category, CANCELLED_MESSAGE, duration_ms=_elapsed_ms(started)
                )
            else:
                per_category[category] = task.result()

        report = ScanReport(
            filepath=unit.filepath,
            language=unit.language,
            repository=unit.repository,
            per_category=per_category,
            overall_score=reduce_score(per_category),
            rejected_categories=tuple(rejected),
            cancelled=cancelled,
        )
        LOGGER.info(
            "Scan completed with score %d (%d ok, %d failed%s)",
            report.overall_score,
            len(report.succeeded),
            len(report.failed),
            ", cancelled" if cancelled else "",
        )
        return report
