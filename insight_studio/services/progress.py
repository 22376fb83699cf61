"""Progress tracking for analysis runs.

ProgressSink is the only writer of a run's status. It keeps progress
monotonic, refuses writes after a terminal transition and owns the asyncio
tasks that feed it, cancelling them all together.

ProgressTracker drives a sink with three tasks:
- a fast local simulation with decaying increments that never reaches 100
- an optional slower poll of a remote progress source
- an absolute timeout that fails the run

States: idle -> processing -> completed | error. Website runs pass through
finalizing (progress 100) before completed.
"""

import asyncio
import inspect
import random
from collections.abc import Awaitable, Callable
from typing import Any

from insight_studio.core.logging import analysis_logger, get_logger
from insight_studio.schemas.insight import (
    TERMINAL_STATES,
    AIProcessingStatus,
    ProcessingState,
    StrategicInsight,
)

logger = get_logger(__name__)

# Running progress stays below this; 100 is reserved for finalize/complete
MAX_RUNNING_PROGRESS = 99.0
SIMULATION_CEILING = 95.0

IDLE_MESSAGE = "Ready to analyze documents"
COMPLETED_MESSAGE = "Analysis complete"
TIMEOUT_MESSAGE = "Analysis timed out. Please try again."

DOCUMENT_PHASES: list[tuple[float, str]] = [
    (15, "Extracting text from all documents..."),
    (30, "Analyzing document relationships..."),
    (45, "Analyzing business context..."),
    (60, "Identifying gaming opportunities..."),
    (75, "Connecting to Anthropic API..."),
    (90, "Processing AI-generated insights..."),
    (100, "Finalizing comprehensive insights..."),
]

WEBSITE_START_MESSAGE = "Preparing to analyze website..."
WEBSITE_FINALIZING_MESSAGE = "Finalizing website insights..."
WEBSITE_PHASES: list[tuple[float, str]] = [
    (10, "Connecting to analysis service..."),
    (20, "Fetching website content..."),
    (30, "Crawling website pages..."),
    (60, "Processing website content..."),
    (100, "Generating strategic insights..."),
]

CompletionCallback = Callable[[AIProcessingStatus], Any]
PollFunction = Callable[[], Awaitable[int | None]]
SimulationStep = Callable[[float], tuple[float, str | None]]


def phase_label(progress: float, phases: list[tuple[float, str]]) -> str:
    """Label of the phase whose upper bound progress is still below."""
    for upper, label in phases:
        if progress < upper:
            return label
    return phases[-1][1]


def document_phase_label(progress: float) -> str:
    return phase_label(progress, DOCUMENT_PHASES)


def website_phase_label(progress: float) -> str:
    return phase_label(progress, WEBSITE_PHASES)


def website_simulation_step(progress: float) -> tuple[float, str | None]:
    """Decaying increments: +5 below 10, +2 below 20, +0.5 below 30, then +0.1 up to 95."""
    if progress < 10:
        increment = 5.0
    elif progress < 20:
        increment = 2.0
    elif progress < 30:
        increment = 0.5
    else:
        increment = 0.1
    return min(SIMULATION_CEILING, progress + increment), website_phase_label(progress)


def make_document_simulation_step(rng: random.Random | None = None) -> SimulationStep:
    """Step of 1-5 points per tick, labelled with the document phases."""
    rng = rng or random.Random()

    def step(progress: float) -> tuple[float, str | None]:
        return (
            min(SIMULATION_CEILING, progress + rng.uniform(1, 5)),
            document_phase_label(progress),
        )

    return step


class ProgressSink:
    """Single writer of an analysis run's status."""

    def __init__(
        self,
        project_id: str,
        source: str,
        on_complete: CompletionCallback | None = None,
        completion_delay: float = 1.5,
    ) -> None:
        self.project_id = project_id
        self.source = source
        self._on_complete = on_complete
        self._completion_delay = completion_delay
        self._completion_task: asyncio.Task[None] | None = None

        self._state = ProcessingState.IDLE
        self._progress = 0.0
        self._message = IDLE_MESSAGE
        self._error: str | None = None
        self._retriable = False
        self._using_fallback = False
        self._insights: list[StrategicInsight] = []
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def state(self) -> ProcessingState:
        return self._state

    @property
    def progress(self) -> float:
        return self._progress

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def insights(self) -> list[StrategicInsight]:
        """Insights produced by this run; emptied when the run fails."""
        return list(self._insights)

    def snapshot(self) -> AIProcessingStatus:
        """Public view of the run; progress is reported as a whole number."""
        return AIProcessingStatus(
            status=self._state,
            progress=int(self._progress),
            message=self._message,
            error=self._error,
            retriable=self._retriable,
            using_fallback=self._using_fallback,
            insight_count=len(self._insights),
        )

    def add_task(self, task: asyncio.Task[Any]) -> None:
        """Register a task to be cancelled on the terminal transition."""
        if self.is_terminal:
            task.cancel()
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def cancel_tasks(self) -> None:
        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current:
                task.cancel()
        self._tasks.clear()

    def stop_timers(self) -> None:
        """Cancel every other task of the run before its results are written.

        The calling task is released from the sink, so neither the timeout
        nor a later close() can interrupt the write that follows.
        """
        if not self.is_terminal:
            self.cancel_tasks()

    def begin(self, message: str) -> None:
        """idle -> processing."""
        if self.is_terminal:
            return
        self._state = ProcessingState.PROCESSING
        self._message = message

    def update(self, value: float, message: str | None = None) -> bool:
        """Raise progress to value (never lowers it).

        Returns:
            False when the run is already terminal and nothing changed.
        """
        if self.is_terminal:
            return False
        ceiling = 100.0 if self._state == ProcessingState.FINALIZING else MAX_RUNNING_PROGRESS
        self._progress = max(self._progress, min(ceiling, max(0.0, float(value))))
        if message and message != self._message:
            self._message = message
            analysis_logger.phase_change(
                self.project_id, self.source, int(self._progress), message
            )
        return True

    def set_result(self, insights: list[StrategicInsight], using_fallback: bool) -> None:
        if not self.is_terminal:
            self._insights = list(insights)
            self._using_fallback = using_fallback

    def set_error_message(self, error: str | None, retriable: bool) -> None:
        """Surface a non-fatal error (e.g. fallback used) without failing the run."""
        if not self.is_terminal:
            self._error = error
            self._retriable = retriable

    def finalize(self, message: str = WEBSITE_FINALIZING_MESSAGE) -> None:
        """processing -> finalizing at 100%; timers stop, completion follows."""
        if self.is_terminal:
            return
        self._state = ProcessingState.FINALIZING
        self._progress = 100.0
        self._message = message
        self.cancel_tasks()

    def complete(self, message: str = COMPLETED_MESSAGE) -> None:
        """Terminal success: progress 100, timers cancelled, callback scheduled once."""
        if self.is_terminal:
            return
        self._state = ProcessingState.COMPLETED
        self._progress = 100.0
        self._message = message
        self.cancel_tasks()
        if self._on_complete is not None:
            callback, self._on_complete = self._on_complete, None
            self._completion_task = asyncio.create_task(self._fire_completion(callback))

    async def _fire_completion(self, callback: CompletionCallback) -> None:
        await asyncio.sleep(self._completion_delay)
        result = callback(self.snapshot())
        if inspect.isawaitable(result):
            await result

    def fail(self, message: str, retriable: bool = True) -> None:
        """Terminal failure: the run's insights are dropped; progress stays where it was."""
        if self.is_terminal:
            return
        self._state = ProcessingState.ERROR
        self._message = message
        self._error = message
        self._retriable = retriable
        self._insights = []
        self._using_fallback = False
        self.cancel_tasks()

    def close(self) -> None:
        """Cancel everything, including a pending completion callback."""
        self.cancel_tasks()
        if self._completion_task is not None and not self._completion_task.done():
            self._completion_task.cancel()


class ProgressTracker:
    """Drives a ProgressSink with simulation, polling and timeout tasks."""

    def __init__(
        self,
        sink: ProgressSink,
        *,
        step: SimulationStep = website_simulation_step,
        poll: PollFunction | None = None,
        simulation_interval: float = 0.2,
        poll_interval: float = 5.0,
        timeout: float = 120.0,
        start_message: str = WEBSITE_START_MESSAGE,
        finalize_on_poll: bool = False,
    ) -> None:
        self.sink = sink
        self._step = step
        self._poll = poll
        self._simulation_interval = simulation_interval
        self._poll_interval = poll_interval
        self._timeout = timeout
        self._start_message = start_message
        # Website runs pass through finalizing before completed
        self._finalize_on_poll = finalize_on_poll

    def start(self) -> None:
        """Enter processing and launch the simulation, poll and timeout tasks."""
        self.sink.begin(self._start_message)
        self.sink.add_task(asyncio.create_task(self._simulate()))
        if self._poll is not None:
            self.sink.add_task(asyncio.create_task(self._poll_loop()))
        self.sink.add_task(asyncio.create_task(self._timeout_timer()))

    async def _simulate(self) -> None:
        while not self.sink.is_terminal and self.sink.state != ProcessingState.FINALIZING:
            await asyncio.sleep(self._simulation_interval)
            value, message = self._step(self.sink.progress)
            self.sink.update(value, message)

    async def _poll_loop(self) -> None:
        if self._poll is None:
            return
        while not self.sink.is_terminal:
            await asyncio.sleep(self._poll_interval)
            try:
                value = await self._poll()
            except Exception as e:
                logger.warning(
                    "Progress poll failed",
                    extra={
                        "project_id": self.sink.project_id,
                        "source": self.sink.source,
                        "error": str(e),
                    },
                )
                continue
            if value is None:
                continue
            if value >= 100:
                if self._finalize_on_poll:
                    self.sink.finalize()
                self.sink.complete()
                return
            self.sink.update(value)

    async def _timeout_timer(self) -> None:
        await asyncio.sleep(self._timeout)
        if not self.sink.is_terminal:
            analysis_logger.session_timeout(self.sink.project_id, self.sink.source, self._timeout)
            self.sink.fail(TIMEOUT_MESSAGE, retriable=True)

    def stop(self) -> None:
        self.sink.close()
