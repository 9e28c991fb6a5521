"""
Stopping policy for the EM loop.

Iteration stops when the relative log-likelihood change falls to the
tolerance or when the hard iteration cap is reached, whichever comes first.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from tqdm.auto import tqdm

from .engine import EMEngine

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 0.001
DEFAULT_MAX_ITERATIONS = 50
DEFAULT_NOMINAL_ITERATIONS = 15


class ConvergenceState(Enum):
    """State of the EM loop. Both stopped states are terminal."""

    ITERATING = "iterating"
    CONVERGED_BY_THRESHOLD = "converged_by_threshold"
    STOPPED_BY_CAP = "stopped_by_cap"

    @property
    def is_terminal(self) -> bool:
        return self is not ConvergenceState.ITERATING


@dataclass
class ConvergenceReport:
    """Outcome of an EM run."""

    state: ConvergenceState
    iterations: int
    history: List[float] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return self.state is ConvergenceState.CONVERGED_BY_THRESHOLD

    @property
    def final_change(self) -> Optional[float]:
        return self.history[-1] if self.history else None


class ConvergenceMonitor:
    """
    Dual-condition stopping rule.

    Feed the relative change of each completed iteration to ``update``.
    """

    def __init__(
        self,
        tolerance: float = DEFAULT_TOLERANCE,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> None:
        if tolerance < 0:
            raise ValueError(f"Tolerance must be non-negative, got {tolerance}")
        if max_iterations < 1:
            raise ValueError(f"Iteration cap must be at least 1, got {max_iterations}")

        self.tolerance = tolerance
        self.max_iterations = max_iterations
        self.state = ConvergenceState.ITERATING
        self.history: List[float] = []

    @property
    def iterations(self) -> int:
        return len(self.history)

    def update(self, change: float) -> ConvergenceState:
        """
        Record one iteration and advance the state.

        Args:
            change: Relative change reported by the iteration.

        Returns:
            The new state.

        Raises:
            RuntimeError: If the monitor is already in a terminal state.
        """
        if self.state.is_terminal:
            raise RuntimeError(f"EM loop already stopped ({self.state.value})")

        self.history.append(change)

        if change <= self.tolerance:
            self.state = ConvergenceState.CONVERGED_BY_THRESHOLD
        elif self.iterations >= self.max_iterations:
            self.state = ConvergenceState.STOPPED_BY_CAP

        return self.state

    def report(self) -> ConvergenceReport:
        return ConvergenceReport(
            state=self.state,
            iterations=self.iterations,
            history=list(self.history),
        )


def run_em(
    engine: EMEngine,
    tolerance: float = DEFAULT_TOLERANCE,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    nominal_iterations: int = DEFAULT_NOMINAL_ITERATIONS,
    show_progress: bool = False,
) -> ConvergenceReport:
    """
    Iterate an initialized engine until it converges or hits the cap.

    Args:
        engine: Engine on which initialize() has been called.
        tolerance: Relative change at or below which the fit has converged.
        max_iterations: Hard iteration cap.
        nominal_iterations: Expected iteration count, for progress reporting.
        show_progress: Show a progress bar.

    Returns:
        ConvergenceReport with the terminal state and change history.
    """
    if not engine.is_initialized:
        engine.initialize()

    monitor = ConvergenceMonitor(tolerance=tolerance, max_iterations=max_iterations)

    progress = None
    if show_progress:
        progress = tqdm(total=nominal_iterations, desc="EM")

    iteration = 1
    try:
        while not monitor.state.is_terminal:
            change = engine.iterate(iteration, nominal_iterations)
            monitor.update(change)
            if progress is not None:
                if iteration > progress.total:
                    progress.total = max_iterations
                    progress.refresh()
                progress.update(1)
                progress.set_postfix(change=f"{change:.2e}")
            iteration += 1
    finally:
        if progress is not None:
            progress.close()

    report = monitor.report()
    if report.state is ConvergenceState.STOPPED_BY_CAP:
        logger.warning(
            f"No convergence after {report.iterations} iterations "
            f"(last change {report.final_change:.3g}, tolerance {tolerance:g})"
        )
    else:
        logger.info(f"Converged after {report.iterations} iterations")

    return report
