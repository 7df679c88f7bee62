"""Base orchestrator for pipeline execution.

Provides common infrastructure for pipeline orchestrators:
- Timing and summary logging
- A run() template that subclasses fill in via _run_pipeline()

Usage:
    class MyOrchestrator(BaseOrchestrator[MyResult]):
        async def _run_pipeline(self) -> MyResult:
            ...

        def _log_summary(self, result, elapsed):
            ...
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Generic, TypeVar

ResultT = TypeVar("ResultT")


class BaseOrchestrator(ABC, Generic[ResultT]):
    """Abstract base class for pipeline orchestrators.

    Subclasses must implement:
    - _run_pipeline(): The actual pipeline logic, returning its result
    - _log_summary(): Log final statistics
    """

    def __init__(self) -> None:
        self.start_time: float = 0.0
        self.elapsed: float = 0.0

    async def run(self) -> ResultT:
        """Run the pipeline, then log its summary with the elapsed time."""
        self.start_time = time.monotonic()

        result = await self._run_pipeline()

        self.elapsed = time.monotonic() - self.start_time
        self._log_summary(result, self.elapsed)
        return result

    @abstractmethod
    async def _run_pipeline(self) -> ResultT:
        """Execute the pipeline logic."""
        ...

    @abstractmethod
    def _log_summary(self, result: ResultT, elapsed: float) -> None:
        """Log the final summary statistics.

        Args:
            result: What _run_pipeline() returned
            elapsed: Total time elapsed in seconds
        """
        ...
