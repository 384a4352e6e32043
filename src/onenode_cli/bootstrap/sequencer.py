"""Staged bootstrap sequencer.

Runs an ordered list of provisioning stages against a host. Each stage is
skipped when its idempotency check already holds, otherwise its action is
executed and, when the stage has asynchronous effects, a readiness probe is
polled until it reports ready or its timeout elapses.

A failing action on a required stage aborts the run. A readiness timeout
or a failing optional stage is recorded as a warning and the run goes on.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NoReturn

import structlog

from ..errors import BootstrapError, StageFailedError
from ..host import Host

logger = structlog.get_logger(__name__)

Action = Callable[[Host], Any]
Check = Callable[[Host], bool]


class StageOutcome(Enum):
    """Terminal outcome of a stage."""

    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    TIMED_OUT = "succeeded_with_timeout_warning"
    FAILED = "failed"


@dataclass
class ReadinessProbe:
    """Polling predicate checked at a fixed interval up to a timeout."""

    check: Callable[[Host], Any]
    timeout_seconds: float
    interval_seconds: float
    target: Any = True
    description: str = ""

    @property
    def max_attempts(self) -> int:
        return max(1, math.ceil(self.timeout_seconds / self.interval_seconds))


@dataclass
class Stage:
    """One named, ordered unit of provisioning work.

    ``actions`` are alternatives: the first one that completes without
    raising wins. An empty list makes a pure wait stage.
    """

    name: str
    actions: Sequence[Action] = ()
    is_satisfied: Check | None = None
    probe: ReadinessProbe | None = None
    optional: bool = False
    description: str = ""


@dataclass
class PollResult:
    """Result of polling a readiness probe."""

    ready: bool
    attempts: int
    last_value: Any = None
    elapsed_seconds: float = 0.0


@dataclass
class StageRecord:
    """Recorded outcome of one stage."""

    name: str
    outcome: StageOutcome
    attempts: int = 0
    elapsed_seconds: float = 0.0
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "outcome": self.outcome.value,
            "attempts": self.attempts,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "message": self.message,
        }


@dataclass
class BootstrapReport:
    """Accumulated outcomes of a bootstrap run."""

    records: list[StageRecord] = field(default_factory=list)
    failed_stage: str | None = None

    @property
    def completed(self) -> bool:
        return self.failed_stage is None

    @property
    def warnings(self) -> list[StageRecord]:
        """Stages that finished degraded without aborting the run."""
        return [
            r
            for r in self.records
            if r.outcome == StageOutcome.TIMED_OUT
            or (r.outcome == StageOutcome.FAILED and r.name != self.failed_stage)
        ]

    def outcome_of(self, name: str) -> StageOutcome | None:
        for record in self.records:
            if record.name == name:
                return record.outcome
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "completed": self.completed,
            "failed_stage": self.failed_stage,
            "stages": [r.to_dict() for r in self.records],
            "warnings": [r.name for r in self.warnings],
        }


class ClusterBootstrapper:
    """Execute provisioning stages strictly in order."""

    def __init__(
        self,
        host: Host,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        on_record: Callable[[StageRecord], None] | None = None,
        on_attempt: Callable[[Stage, int, int, Any], None] | None = None,
    ):
        """Initialize bootstrapper.

        Args:
            host: Handle on the machine being provisioned.
            sleep: Blocking sleep used between probe evaluations.
            clock: Monotonic clock for elapsed-time reporting.
            on_record: Called with each StageRecord as soon as it is final.
            on_attempt: Called with (stage, attempt, max_attempts, value)
                after every probe evaluation that is not ready.
        """
        self.host = host
        self._sleep = sleep
        self._clock = clock
        self._on_record = on_record
        self._on_attempt = on_attempt

    def run(self, stages: Sequence[Stage]) -> BootstrapReport:
        """Run every stage in order.

        Returns:
            BootstrapReport with one record per stage.

        Raises:
            StageFailedError: A required stage failed. Carries the report
                with every outcome recorded so far.
        """
        report = BootstrapReport()

        for stage in stages:
            log = logger.bind(stage=stage.name)
            start = self._clock()

            try:
                satisfied = stage.is_satisfied is not None and stage.is_satisfied(self.host)
            except (BootstrapError, OSError) as e:
                self._abort(report, stage, start, e)

            if satisfied:
                log.info("stage already satisfied, skipping")
                self._record(report, StageRecord(stage.name, StageOutcome.SKIPPED))
                continue

            log.info("executing stage")
            error = self._execute(stage)
            if error is not None:
                if not stage.optional:
                    self._abort(report, stage, start, error)
                log.warning("optional stage failed", error=str(error))
                self._record(
                    report,
                    StageRecord(
                        stage.name,
                        StageOutcome.FAILED,
                        elapsed_seconds=self._clock() - start,
                        message=str(error),
                    ),
                )
                continue

            record = StageRecord(stage.name, StageOutcome.SUCCEEDED)
            if stage.probe is not None:
                result = self.poll(stage, stage.probe)
                record.attempts = result.attempts
                if not result.ready:
                    record.outcome = StageOutcome.TIMED_OUT
                    record.message = (
                        f"{stage.probe.description or 'readiness probe'} not ready after "
                        f"{stage.probe.timeout_seconds:g}s (last value: {result.last_value!r})"
                    )
                    log.warning("readiness probe timed out", attempts=result.attempts)
            record.elapsed_seconds = self._clock() - start
            self._record(report, record)

        return report

    def poll(self, stage: Stage, probe: ReadinessProbe) -> PollResult:
        """Poll a probe until it equals its target or attempts run out."""
        start = self._clock()
        value: Any = None
        max_attempts = probe.max_attempts

        for attempt in range(1, max_attempts + 1):
            try:
                value = probe.check(self.host)
            except (BootstrapError, OSError) as e:
                logger.debug("probe evaluation failed", stage=stage.name, error=str(e))
                value = None

            if value == probe.target:
                return PollResult(
                    ready=True,
                    attempts=attempt,
                    last_value=value,
                    elapsed_seconds=self._clock() - start,
                )

            if self._on_attempt:
                self._on_attempt(stage, attempt, max_attempts, value)

            if attempt < max_attempts:
                self._sleep(probe.interval_seconds)

        return PollResult(
            ready=False,
            attempts=max_attempts,
            last_value=value,
            elapsed_seconds=self._clock() - start,
        )

    def _execute(self, stage: Stage) -> BootstrapError | OSError | None:
        """Try candidate actions in order; return the last error if all fail."""
        error: BootstrapError | OSError | None = None
        for index, action in enumerate(stage.actions):
            try:
                action(self.host)
                return None
            except (BootstrapError, OSError) as e:
                logger.debug(
                    "stage action failed",
                    stage=stage.name,
                    candidate=index + 1,
                    candidates=len(stage.actions),
                    error=str(e),
                )
                error = e
        return error

    def _record(self, report: BootstrapReport, record: StageRecord) -> None:
        report.records.append(record)
        if self._on_record:
            self._on_record(record)

    def _abort(
        self,
        report: BootstrapReport,
        stage: Stage,
        start: float,
        error: BootstrapError | OSError,
    ) -> NoReturn:
        logger.error("stage failed", stage=stage.name, error=str(error))
        report.failed_stage = stage.name
        self._record(
            report,
            StageRecord(
                stage.name,
                StageOutcome.FAILED,
                elapsed_seconds=self._clock() - start,
                message=str(error),
            ),
        )
        raise StageFailedError(
            message=f"Stage '{stage.name}' failed: {error}",
            stage=stage.name,
            report=report,
        ) from error
