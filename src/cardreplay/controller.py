"""
Replay controller.

ReplayController drives a GameEngineAdapter through a recorded event log,
one event at a time, and compares the engine's state with the snapshots the
UI recorded.

Lifecycle:
    idle -> initialized -> replaying <-> paused -> completed | stopped

    initialize_replay()  validate the log, enter "initialized"
    start_replay()       seed the adapter, then run to the end (bulk) or
                         wait in "paused" for next_step() (step by step)
    next_step()          apply exactly one event
    pause_replay()       stop advancing at the next step boundary
    resume_replay()      continue after a pause
    stop_replay()        discard the session immediately

Each event is dispatched by type:
    - move_executed, drag_drop, auto_move call adapter.execute_move()
    - state_change, card_flip adopt the recorded after-snapshot
    - everything else is observational and only advances the cursor

Failures are classified by an ErrorClassifier. Recoverable failures fall
back to a recorded state and replay continues; fatal failures halt it.
State drift found by the consistency validator is recorded as an error and
fails the result without stopping replay.

The controller runs on a single asyncio event loop. Adapter methods may be
plain functions or coroutines. At most one step runs at a time.
"""

import asyncio
import inspect
import logging
import time
from typing import Any, Callable, Mapping, Sequence

from pydantic import ValidationError

from cardreplay.adapters.base import GameEngineAdapter
from cardreplay.consistency import ConsistencyResult, perform_comprehensive_state_validation
from cardreplay.errors import (
    AdapterNotAttachedError,
    CardReplayError,
    GameEngineError,
    InvalidTransitionError,
    MissingCardDataError,
    MissingEventDataError,
    StepInProgressError,
)
from cardreplay.recovery import ErrorClassifier, select_fallback_state
from cardreplay.sanitize import validate_event_sequence
from cardreplay.schema import (
    MOVE_EVENT_TYPES,
    STATE_EVENT_TYPES,
    ErrorKind,
    GameState,
    GameStateSnapshot,
    RecreationResult,
    ReplayErrorRecord,
    ReplayOptions,
    ReplayPerformance,
    ReplayPhase,
    ReplayResult,
    ReplayState,
    StepResult,
    UIActionEvent,
)
from cardreplay.snapshots import state_from_snapshot

logger = logging.getLogger(__name__)

StateValidator = Callable[[GameState, GameStateSnapshot], ConsistencyResult]

NO_MORE_STEPS = "No more steps to execute"
REPLAY_STOPPED = "Replay stopped"

_ACTIVE_PHASES = frozenset({ReplayPhase.REPLAYING, ReplayPhase.PAUSED})


async def _call(method: Callable[..., Any], *args: Any) -> Any:
    """Call an adapter method, awaiting the result if it is awaitable."""
    result = method(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _describe(error: BaseException) -> str:
    if isinstance(error, CardReplayError):
        return error.message
    return str(error) or error.__class__.__name__


class ReplayController:
    """
    Replays a recorded event log against a game engine adapter.

    Collaborators are injected so that each controller is independent:

    Args:
        adapter: Game engine to drive (may also be passed to start_replay)
        classifier: Decides whether failures are recoverable
        validator: Compares replayed state with a recorded snapshot
        clock: Monotonic clock in seconds, used for performance figures
    """

    def __init__(
        self,
        adapter: GameEngineAdapter | None = None,
        classifier: ErrorClassifier | None = None,
        validator: StateValidator = perform_comprehensive_state_validation,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._adapter: GameEngineAdapter | None = None
        if adapter is not None:
            self.attach_adapter(adapter)
        self._classifier = classifier or ErrorClassifier()
        self._validate = validator
        self._clock = clock
        self._session = 0
        self._reset_session()

    def _reset_session(self) -> None:
        self._phase = ReplayPhase.IDLE
        self._options: ReplayOptions | None = None
        self._events: list[UIActionEvent] = []
        self._current_step = 0
        self._game_state: GameState | None = None
        self._last_valid_state: GameState | None = None
        self._errors: list[ReplayErrorRecord] = []
        self._pause_requested = False
        self._resume_event = asyncio.Event()
        self._resume_event.set()
        self._step_in_flight = False
        self._bulk_running = False
        self._processing_times: list[float] = []
        self._validation_time = 0.0
        self._started_at: float | None = None

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def adapter(self) -> GameEngineAdapter | None:
        """The attached game engine adapter."""
        return self._adapter

    @property
    def phase(self) -> ReplayPhase:
        return self._phase

    @property
    def current_step(self) -> int:
        """Number of events applied so far."""
        return self._current_step

    @property
    def total_steps(self) -> int:
        return len(self._events)

    @property
    def is_active(self) -> bool:
        """True while replaying or paused."""
        return self._phase in _ACTIVE_PHASES

    @property
    def is_paused(self) -> bool:
        """True when a pause has been requested and not yet resumed."""
        return self._pause_requested

    def attach_adapter(self, adapter: GameEngineAdapter) -> None:
        """
        Attach the game engine adapter to drive.

        Raises:
            TypeError: If adapter does not implement GameEngineAdapter
        """
        if not isinstance(adapter, GameEngineAdapter):
            msg = f"Adapter must implement GameEngineAdapter, got {type(adapter).__name__}"
            raise TypeError(msg)
        self._adapter = adapter

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def initialize_replay(self, options: ReplayOptions | Mapping[str, Any]) -> bool:
        """
        Validate a log and prepare a new session.

        Any previous session is discarded. Returns False, leaving the
        controller idle, if the log is empty, an event is malformed or
        timestamps go backwards.

        Args:
            options: ReplayOptions, or a mapping with the same keys
                     (raw event dicts are accepted)

        Returns:
            True if the session is ready to start
        """
        self._session += 1
        self._resume_event.set()
        self._reset_session()

        if isinstance(options, ReplayOptions):
            raw_events: Sequence[Any] = options.events
            settings = options.model_dump(exclude={"events"})
        else:
            raw_events = options.get("events") or []
            settings = {key: value for key, value in options.items() if key != "events"}

        events, problems = validate_event_sequence(raw_events)
        if problems:
            for problem in problems:
                logger.warning("Cannot initialize replay: %s", problem.message)
            return False

        try:
            resolved = ReplayOptions.model_validate({"events": events, **settings})
        except ValidationError as e:
            logger.warning("Cannot initialize replay: invalid options: %s", e)
            return False

        self._options = resolved
        self._events = list(resolved.events)
        self._phase = ReplayPhase.INITIALIZED
        logger.info(
            "Replay initialized with %d events (step_by_step=%s, validate_states=%s)",
            len(self._events),
            resolved.step_by_step,
            resolved.validate_states,
        )
        return True

    async def start_replay(self, adapter: GameEngineAdapter | None = None) -> ReplayResult:
        """
        Start the initialized session.

        The adapter is seeded from the first event's before-snapshot when
        there is one. In bulk mode the whole log (or up to stop_at_step) is
        replayed before returning. In step-by-step mode a zero-step result is
        returned and the controller waits in "paused" for next_step().

        Raises:
            InvalidTransitionError: If the controller is not initialized
            AdapterNotAttachedError: If no adapter is attached or passed
        """
        if adapter is not None:
            self.attach_adapter(adapter)
        return await self._start(seed=None)

    async def _start(self, seed: GameState | None) -> ReplayResult:
        if self._phase != ReplayPhase.INITIALIZED or self._options is None:
            raise InvalidTransitionError(operation="start replay", phase=self._phase.value)
        if self._adapter is None:
            raise AdapterNotAttachedError()

        token = self._session
        self._started_at = self._clock()
        self._phase = ReplayPhase.REPLAYING
        logger.info("Replay started (%d events)", len(self._events))

        if seed is None and self._events[0].game_state_before is not None:
            seed = state_from_snapshot(self._events[0].game_state_before)
        if seed is not None:
            self._game_state = seed.model_copy(deep=True)
            self._last_valid_state = seed.model_copy(deep=True)
            if not await self._push_state(seed, step=0, event=self._events[0]):
                self._phase = ReplayPhase.COMPLETED
                return self._build_result()
            if token != self._session:
                return ReplayResult(success=False)

        if self._options.step_by_step:
            self._phase = ReplayPhase.PAUSED
            return self._build_result()

        return await self._run_to_end(token)

    async def _run_to_end(self, token: int) -> ReplayResult:
        options = self._require_options()
        limit = len(self._events)
        if options.stop_at_step is not None:
            limit = min(limit, options.stop_at_step)

        executed = 0
        self._bulk_running = True
        try:
            while token == self._session and self._current_step < limit and not self._halted:
                if self._pause_requested:
                    await self._resume_event.wait()
                    continue
                await self._execute_step(token)
                executed += 1
                # Yield so pause/stop requests from other tasks land between steps
                await asyncio.sleep(0)
        finally:
            if token == self._session:
                self._bulk_running = False

        if token != self._session:
            logger.info("Replay stopped after %d steps", executed)
            return ReplayResult(success=False, steps_executed=executed)

        self._phase = ReplayPhase.COMPLETED
        result = self._build_result()
        logger.info(
            "Replay completed: %d/%d steps, %d errors, success=%s",
            result.steps_executed,
            len(self._events),
            len(result.errors),
            result.success,
        )
        return result

    async def next_step(self) -> StepResult:
        """
        Apply the next event.

        Returns:
            StepResult; success is False at the end of the log, after a fatal
            failure, when drift was detected or when the session was stopped
            while the step ran

        Raises:
            StepInProgressError: If another step is still running
        """
        if self._step_in_flight:
            raise StepInProgressError(step=self._current_step)
        if self._current_step >= len(self._events):
            return StepResult(success=False, step=self._current_step, error=NO_MORE_STEPS)
        if self._phase not in _ACTIVE_PHASES:
            return StepResult(
                success=False,
                step=self._current_step,
                error=f"Replay is not active ({self._phase.value})",
            )

        if not self._bulk_running and not self._pause_requested:
            self._phase = ReplayPhase.REPLAYING
        token = self._session
        result = await self._execute_step(token)

        if token == self._session and not self._bulk_running and self._phase in _ACTIVE_PHASES:
            if self._current_step >= len(self._events):
                self._phase = ReplayPhase.COMPLETED
                logger.info("Step-by-step replay reached the end of the log")
            else:
                self._phase = ReplayPhase.PAUSED
        return result

    def pause_replay(self) -> None:
        """Stop advancing at the next step boundary. No effect unless active."""
        if self._phase not in _ACTIVE_PHASES:
            return
        self._pause_requested = True
        self._resume_event.clear()
        self._phase = ReplayPhase.PAUSED
        logger.info("Replay paused at step %d", self._current_step)

    def resume_replay(self) -> None:
        """Continue after pause_replay(). No effect unless paused."""
        if not self._pause_requested:
            return
        self._pause_requested = False
        self._resume_event.set()
        if self._bulk_running:
            self._phase = ReplayPhase.REPLAYING
        logger.info("Replay resumed at step %d", self._current_step)

    def stop_replay(self) -> None:
        """
        Discard the session immediately.

        A step still running completes against the adapter, but its result
        is dropped and no controller state is changed by it.
        """
        previous = self._phase
        self._session += 1
        self._resume_event.set()
        self._reset_session()
        self._phase = ReplayPhase.STOPPED
        if previous != ReplayPhase.IDLE:
            logger.info("Replay stopped (was %s)", previous.value)

    def finalize_replay(self) -> ReplayResult:
        """
        Summarize the current session.

        Marks an active step-by-step session as completed.
        """
        if self._phase in _ACTIVE_PHASES and not self._bulk_running and not self._step_in_flight:
            self._phase = ReplayPhase.COMPLETED
        return self._build_result()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_progress(self) -> int:
        """Percentage of events applied, rounded to an integer."""
        if not self._events:
            return 0
        return round(self._current_step / len(self._events) * 100)

    def get_replay_state(self) -> ReplayState:
        """Snapshot of the controller's state."""
        return ReplayState(
            phase=self._phase,
            current_step=self._current_step,
            total_steps=len(self._events),
            is_replaying=self._phase in _ACTIVE_PHASES,
            is_paused=self._pause_requested,
            current_game_state=(
                self._game_state.model_copy(deep=True) if self._game_state is not None else None
            ),
            errors=list(self._errors),
        )

    # -------------------------------------------------------------------------
    # Recreation
    # -------------------------------------------------------------------------

    async def recreate_game_state_from_events(
        self,
        events: Sequence[Any],
        stop_at_step: int | None = None,
        initial_state: GameState | None = None,
        adapter: GameEngineAdapter | None = None,
        validate_states: bool = False,
    ) -> RecreationResult:
        """
        Rebuild game state by replaying events in a private session.

        The controller's own session is left untouched.

        Args:
            events: Events to apply, in order (raw dicts are accepted)
            stop_at_step: Apply at most this many events
            initial_state: Starting state; takes precedence over the first
                           event's before-snapshot
            adapter: Engine to use instead of the attached one
            validate_states: Also report drift against after-snapshots

        Raises:
            AdapterNotAttachedError: If no adapter is available
        """
        engine = adapter or self._adapter
        if engine is None:
            raise AdapterNotAttachedError()

        parsed, problems = validate_event_sequence(events)
        if problems:
            return RecreationResult(
                success=False,
                errors=[
                    ReplayErrorRecord(
                        step=problem.context.get("index", 0),
                        error=problem.message,
                        recoverable=False,
                        category=problem.category.value if problem.category else None,
                        kind=ErrorKind.VALIDATION,
                    )
                    for problem in problems
                ],
            )

        worker = ReplayController(
            adapter=engine,
            classifier=self._classifier,
            validator=self._validate,
            clock=self._clock,
        )
        worker.initialize_replay(ReplayOptions(
            events=parsed,
            stop_at_step=stop_at_step,
            validate_states=validate_states,
        ))
        result = await worker._start(seed=initial_state)
        return RecreationResult(
            success=result.success,
            game_state=result.final_game_state,
            errors=result.errors,
        )

    # -------------------------------------------------------------------------
    # Step execution
    # -------------------------------------------------------------------------

    @property
    def _halted(self) -> bool:
        return any(not error.recoverable for error in self._errors)

    def _require_adapter(self) -> GameEngineAdapter:
        if self._adapter is None:
            raise AdapterNotAttachedError()
        return self._adapter

    def _require_options(self) -> ReplayOptions:
        if self._options is None:
            raise InvalidTransitionError(operation="apply an event", phase=self._phase.value)
        return self._options

    async def _execute_step(self, token: int) -> StepResult:
        index = self._current_step
        event = self._events[index]

        self._step_in_flight = True
        started = self._clock()
        logger.debug("Step %d: %s %s", index, event.type.value, event.id)
        try:
            try:
                new_state, from_adapter = await self._dispatch(event)
            except Exception as e:
                if token != self._session:
                    return StepResult(success=False, step=index, error=REPLAY_STOPPED)
                return await self._handle_failure(event, index, e, token, started)

            if token != self._session:
                logger.debug("Discarding result of step %d from a stopped session", index)
                return StepResult(success=False, step=index, error=REPLAY_STOPPED)

            error = None
            if new_state is not None:
                self._game_state = new_state
                error = self._check_consistency(event, index, new_state, from_adapter)
                if error is None:
                    self._last_valid_state = new_state.model_copy(deep=True)

            self._current_step = index + 1
            elapsed = self._record_time(started)
            return StepResult(
                success=error is None,
                step=index,
                error=error,
                game_state=self._state_copy(),
                processing_time=elapsed,
            )
        finally:
            if token == self._session:
                self._step_in_flight = False

    async def _dispatch(self, event: UIActionEvent) -> tuple[GameState | None, bool]:
        """Apply one event. Returns the new state (or None) and whether the adapter produced it."""
        adapter = self._require_adapter()

        if event.type in MOVE_EVENT_TYPES:
            data = event.data
            if data.source_position is None or data.target_position is None:
                if event.game_state_after is not None:
                    state = state_from_snapshot(event.game_state_after)
                    await _call(adapter.set_game_state, state.model_copy(deep=True))
                    return state, False
                missing = [
                    name
                    for name, value in (
                        ("sourcePosition", data.source_position),
                        ("targetPosition", data.target_position),
                    )
                    if value is None
                ]
                raise MissingEventDataError(
                    event_id=event.id,
                    event_type=event.type.value,
                    missing=missing,
                )
            if data.card is None:
                raise MissingCardDataError(event_id=event.id, event_type=event.type.value)

            result = await _call(
                adapter.execute_move,
                data.source_position,
                data.target_position,
                data.card,
            )
            return await self._coerce_state(result, event), True

        if event.type in STATE_EVENT_TYPES and event.game_state_after is not None:
            state = state_from_snapshot(event.game_state_after)
            await _call(adapter.set_game_state, state.model_copy(deep=True))
            return state, False

        return None, False

    async def _coerce_state(self, result: Any, event: UIActionEvent) -> GameState:
        if result is None:
            result = await _call(self._require_adapter().get_game_state)
        if isinstance(result, GameState):
            return result.model_copy(deep=True)
        if isinstance(result, Mapping):
            try:
                return GameState.model_validate(result)
            except ValidationError as e:
                raise GameEngineError(
                    message=f"Fatal game engine error: adapter returned an invalid state: {e}",
                    event_id=event.id,
                    event_type=event.type.value,
                ) from e
        raise GameEngineError(
            message=f"Fatal game engine error: adapter returned {type(result).__name__}",
            event_id=event.id,
            event_type=event.type.value,
        )

    def _check_consistency(
        self,
        event: UIActionEvent,
        index: int,
        state: GameState,
        from_adapter: bool,
    ) -> str | None:
        validate = self._require_options().validate_states
        if not (validate and from_adapter) or event.game_state_after is None:
            return None

        started = self._clock()
        outcome = self._validate(state, event.game_state_after)
        self._validation_time += (self._clock() - started) * 1000
        if outcome.is_valid:
            return None

        message = f"State inconsistency detected at step {index}: " + "; ".join(outcome.inconsistencies)
        logger.warning("%s", message)
        self._errors.append(ReplayErrorRecord(
            step=index,
            error=message,
            recoverable=True,
            event_id=event.id,
            event_type=event.type,
            category="state_inconsistency",
            kind=ErrorKind.CONSISTENCY,
        ))
        return message

    async def _handle_failure(
        self,
        event: UIActionEvent,
        index: int,
        error: Exception,
        token: int,
        started: float,
    ) -> StepResult:
        classification = self._classifier.classify(error)
        message = _describe(error)
        self._errors.append(ReplayErrorRecord(
            step=index,
            error=message,
            recoverable=classification.recoverable,
            event_id=event.id,
            event_type=event.type,
            category=classification.category.value,
        ))

        if not classification.recoverable:
            logger.error(
                "Fatal error at step %d (%s): %s", index, classification.category.value, message
            )
            self._phase = ReplayPhase.COMPLETED
            self._record_time(started)
            return StepResult(success=False, step=index, error=message, game_state=self._state_copy())

        logger.warning(
            "Recoverable error at step %d (%s): %s", index, classification.category.value, message
        )
        fallback = select_fallback_state(event, self._last_valid_state, self._events[index + 1:])
        if fallback is not None:
            logger.debug("Recovering step %d from %s", index, fallback.source)
            self._game_state = fallback.state
            pushed = await self._push_state(fallback.state, step=index, event=event)
            if token != self._session:
                return StepResult(success=False, step=index, error=REPLAY_STOPPED)
            if not pushed:
                self._phase = ReplayPhase.COMPLETED
                return StepResult(success=False, step=index, error=self._errors[-1].error)
            self._last_valid_state = fallback.state.model_copy(deep=True)

        self._current_step = index + 1
        elapsed = self._record_time(started)
        return StepResult(
            success=True,
            step=index,
            error=message,
            game_state=self._state_copy(),
            recovered=fallback is not None,
            processing_time=elapsed,
        )

    async def _push_state(self, state: GameState, step: int, event: UIActionEvent) -> bool:
        """Send state to the adapter. Returns False if a fatal error was recorded."""
        adapter = self._require_adapter()
        try:
            await _call(adapter.set_game_state, state.model_copy(deep=True))
        except Exception as e:
            classification = self._classifier.classify(e)
            message = _describe(e)
            self._errors.append(ReplayErrorRecord(
                step=step,
                error=message,
                recoverable=classification.recoverable,
                event_id=event.id,
                event_type=event.type,
                category=classification.category.value,
            ))
            if classification.recoverable:
                logger.warning("Adapter rejected state at step %d: %s", step, message)
                return True
            logger.error("Adapter rejected state at step %d: %s", step, message)
            return False
        return True

    # -------------------------------------------------------------------------
    # Results
    # -------------------------------------------------------------------------

    def _record_time(self, started: float) -> float:
        elapsed = (self._clock() - started) * 1000
        self._processing_times.append(elapsed)
        return elapsed

    def _state_copy(self) -> GameState | None:
        return self._game_state.model_copy(deep=True) if self._game_state is not None else None

    def _build_result(self) -> ReplayResult:
        total = 0.0
        if self._started_at is not None:
            total = (self._clock() - self._started_at) * 1000
        average = 0.0
        if self._processing_times:
            average = sum(self._processing_times) / len(self._processing_times)

        success = all(
            error.recoverable and error.kind != ErrorKind.CONSISTENCY for error in self._errors
        )
        return ReplayResult(
            success=success,
            steps_executed=self._current_step,
            errors=list(self._errors),
            performance=ReplayPerformance(
                total_replay_time=total,
                average_event_processing_time=average,
                validation_time=self._validation_time,
            ),
            final_game_state=self._state_copy(),
        )
