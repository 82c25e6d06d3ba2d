"""
Background simulation loop and session handle.

A SimulationSession owns the robot, the loop and the cancellation signal.
The loop runs on one daemon thread and moves through three states:

    STOPPED --enable--> ARMED --first iteration--> RUNNING
    ARMED/RUNNING --disable--> STOPPED

Entering RUNNING anchors the previous pose, zeroes the step counter and
seeds the sensors. Every RUNNING iteration calls the control routine and
then steps the robot. Readers on other threads use ``robot.snapshot()``.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional
import logging
import random
import threading
import weakref

from .config import SimConfig
from .errors import CallbackFailure
from .interfaces import ControlRoutine, GridProvider, RunStateProvider, SimulationControls
from .robot import DEFAULT_TIME_STEP, DifferentialDriveRobot, RobotSnapshot

logger = logging.getLogger(__name__)


class LoopState(Enum):
    STOPPED = "stopped"
    ARMED = "armed"
    RUNNING = "running"


class SimulationLoop:
    """Drives a robot with a control routine while the run flag is set.

    ``tick`` performs one iteration synchronously and is what the
    background thread calls; tests and single-threaded hosts may call it
    directly.
    """

    def __init__(
        self,
        robot: DifferentialDriveRobot,
        control: ControlRoutine,
        run_state: RunStateProvider,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self.robot = robot
        self.control = control
        self.run_state = run_state
        self._cancel = cancel if cancel is not None else threading.Event()
        self._state = LoopState.STOPPED
        self._error: Optional[CallbackFailure] = None
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def error(self) -> Optional[CallbackFailure]:
        """Failure of the control routine that ended the loop, if any."""
        return self._error

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def _set_state(self, state: LoopState) -> None:
        if state is not self._state:
            logger.debug("Simulation loop %s -> %s", self._state.value, state.value)
            self._state = state

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------
    def tick(self) -> LoopState:
        """Run one loop iteration and return the resulting state.

        Raises CallbackFailure if the control routine raises, now or in an
        earlier iteration.
        """
        if self._error is not None:
            raise self._error
        if self._cancel.is_set():
            return self._state

        if not self.run_state.is_running():
            self._set_state(LoopState.STOPPED)
            return self._state

        if self._state is LoopState.STOPPED:
            self._set_state(LoopState.ARMED)
        if self._state is LoopState.ARMED:
            self.robot.begin_run()
            self._set_state(LoopState.RUNNING)

        try:
            self.control(self.robot)
        except Exception as exc:
            logger.exception("Control routine failed; stopping simulation")
            self._fail(exc)
            raise self._error from exc

        self.robot.step()
        return self._state

    def _fail(self, exc: Exception) -> None:
        self.robot.set_stop()
        self._set_state(LoopState.STOPPED)
        self._error = CallbackFailure(f"control routine raised {exc!r}")
        self._cancel.set()

    # ------------------------------------------------------------------
    # Thread management
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Start the background thread."""
        if self._thread is not None:
            raise RuntimeError("simulation loop already started")
        self._thread = threading.Thread(
            target=_loop_worker,
            args=(weakref.ref(self), self._cancel),
            name="gridbot-sim-loop",
            daemon=True,
        )
        self._thread.start()

    def close(self, timeout: Optional[float] = 1.0) -> None:
        """Signal termination and wait for the thread to exit."""
        self._cancel.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("Simulation loop did not exit within %s s", timeout)
        self._set_state(LoopState.STOPPED)

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


def _loop_worker(loop_ref: "weakref.ReferenceType[SimulationLoop]", cancel: threading.Event) -> None:
    """Thread body. Holds only a weak reference so a dropped loop ends the thread."""
    logger.debug("Simulation thread started")
    while not cancel.is_set():
        loop = loop_ref()
        if loop is None:
            break
        try:
            loop.tick()
        except CallbackFailure:
            break
        delay = loop.run_state.iteration_delay()
        del loop
        cancel.wait(delay)
    logger.debug("Simulation thread exited")


class SimulationSession:
    """One simulation run: grid, robot, loop and its cancellation signal.

    Use as a context manager or call ``close`` to stop the thread.

    Parameters
    ----------
    config : SimConfig
        Session constants.
    grid_provider : GridProvider
        Supplies the occupancy grid.
    control : ControlRoutine
        Called once per iteration with the robot.
    run_state : RunStateProvider, optional
        Run/stop switch and cadence; a SimulationControls is created when
        omitted and exposed as ``controls``.
    """

    def __init__(
        self,
        config: SimConfig,
        grid_provider: GridProvider,
        control: ControlRoutine,
        run_state: Optional[RunStateProvider] = None,
        rng: Optional[random.Random] = None,
        time_step: float = DEFAULT_TIME_STEP,
    ) -> None:
        self.config = config
        self.grid = grid_provider.get_grid()
        self.robot = DifferentialDriveRobot(config, self.grid, rng=rng, time_step=time_step)
        self.controls = run_state if run_state is not None else SimulationControls()
        self.cancel = threading.Event()
        self.loop = SimulationLoop(self.robot, control, self.controls, cancel=self.cancel)

    def start(self) -> "SimulationSession":
        logger.info(
            "Starting simulation: grid %s, %d rays",
            self.grid.to_dict(),
            len(self.robot.sensors),
        )
        self.loop.start()
        return self

    def snapshot(self) -> RobotSnapshot:
        return self.robot.snapshot()

    def close(self, timeout: Optional[float] = 1.0, raise_error: bool = False) -> None:
        """Stop the loop thread. With ``raise_error`` re-raise a control
        routine failure that ended the session."""
        self.loop.close(timeout)
        logger.info("Simulation stopped after %d steps", self.robot.get_step_count())
        if raise_error and self.loop.error is not None:
            raise self.loop.error

    def __enter__(self) -> "SimulationSession":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
