"""
Fixed-step time loop with snapshot recording and cooperative cancellation.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from ..postprocessing.simulation_result import SimulationResult
from .piso import FlowState

log = logging.getLogger(__name__)


class CancellationToken:
    """Thread-safe stop flag polled by the time loop once per step."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self):
        return self._event.is_set()


def is_cancelled(signal):
    """Accept a token-like object with ``cancelled`` or a zero-argument callable."""
    if signal is None:
        return False
    if callable(signal):
        return bool(signal())
    return bool(signal.cancelled)


class TimeLoopDriver:
    """
    Runs the PISO stepper from rest to ``config.t_simu``.

    Parameters:
    -----------
    config : SimulationConfig
    stepper : PisoStepper
    """

    def __init__(self, config, stepper):
        self.config = config
        self.stepper = stepper

    def run(self, cancel=None, progress=None, initial_state=None):
        """
        Advance the flow and record snapshots.

        Parameters:
        -----------
        cancel : CancellationToken or callable, optional
            Polled once before every step; when set the loop stops and the
            snapshots recorded so far are returned
        progress : callable, optional
            ``progress(step, t, elapsed)`` called after each recorded snapshot
        initial_state : FlowState, optional
            Starting fields; defaults to the rest state

        Returns:
        --------
        SimulationResult
        """
        config = self.config
        total_steps = config.total_steps
        interval = config.record_interval
        num_records = total_steps // interval + 1

        state = initial_state if initial_state is not None else FlowState.at_rest(config)
        result = SimulationResult(config, self.stepper.grid_u, self.stepper.grid_v,
                                  self.stepper.grid_p, total_steps=total_steps)
        result.record(0, 0.0, state.u, state.v, state.p)

        log.info("Simulation start: t_end=%.3gs, dt=%.3gs, %d steps, snapshot every %d steps",
                 config.t_simu, config.dt, total_steps, interval)

        executor = None
        if config.parallel_predict:
            executor = ThreadPoolExecutor(max_workers=2)
            self.stepper.executor = executor
        start = time.perf_counter()
        try:
            for step in range(1, total_steps + 1):
                if is_cancelled(cancel):
                    result.cancelled = True
                    break
                t = step * config.dt
                state = self.stepper.step(t, state)
                result.steps_completed = step

                if step % interval == 0 and len(result.times) < num_records:
                    result.record(step, t, state.u, state.v, state.p)
                    elapsed = time.perf_counter() - start
                    log.info("t = %.3fs (%.1f%%), step %d/%d, elapsed %.2fs",
                             t, 100.0 * t / config.t_simu, step, total_steps, elapsed)
                    if progress is not None:
                        progress(step, t, elapsed)
        finally:
            if executor is not None:
                executor.shutdown(wait=True)
                self.stepper.executor = None

        result.solve_time = time.perf_counter() - start
        result.final_state = state
        if result.cancelled:
            log.info("Simulation stopped by user after %d/%d steps (%.2fs)",
                     result.steps_completed, total_steps, result.solve_time)
        else:
            log.info("Simulation finished in %.2fs", result.solve_time)
        return result
