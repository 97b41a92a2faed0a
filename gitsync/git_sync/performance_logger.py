"""Timing of reconciliation runs and their network steps."""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Generator, List, Optional


@dataclass
class PerformanceMetrics:
    """Timing of one step of a sync run."""
    operation: str
    duration: float
    start_time: float
    end_time: float
    context: Optional[Dict[str, Any]] = None
    success: bool = True


class PerformanceLogger:
    """
    Collects step timings for a single sync run.

    One instance is created per run over the run's logger, so timings of
    concurrent runs on different repositories never mix.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize performance logger.

        Args:
            logger: Logger the timings are written to
        """
        self.logger = logger or logging.getLogger('gitsync.git_sync.performance')
        self._metrics: List[PerformanceMetrics] = []

    @contextmanager
    def time_operation(
        self,
        operation: str,
        context: Optional[Dict[str, Any]] = None,
        log_level: int = logging.DEBUG
    ) -> Generator[None, None, None]:
        """
        Context manager for timing operations.

        Args:
            operation: Name of the operation being timed
            context: Additional context information
            log_level: Logging level for performance messages
        """
        start_time = time.time()
        self.logger.log(log_level, f"⏱️ Starting {operation}")

        success = True
        try:
            yield
        except Exception as e:
            success = False
            self.logger.warning(f"❌ {operation} failed after {time.time() - start_time:.3f}s: {e}")
            raise
        finally:
            end_time = time.time()
            duration = end_time - start_time
            self._metrics.append(PerformanceMetrics(
                operation=operation,
                duration=duration,
                start_time=start_time,
                end_time=end_time,
                context=context,
                success=success
            ))

            if success:
                self.logger.log(log_level, f"✅ {operation} completed in {duration:.3f}s")
                if context:
                    context_str = ", ".join(f"{k}={v}" for k, v in context.items())
                    self.logger.debug(f"📊 {operation} context: {context_str}")

    def log_network_performance(self, operation: str, url: str, duration: float, success: bool = True) -> None:
        """
        Log performance of a fetch or push.

        Args:
            operation: Network operation performed
            url: Credential-free remote URL
            duration: Duration in seconds
            success: Whether the operation succeeded
        """
        status_icon = "✅" if success else "❌"
        self.logger.debug(f"{status_icon} Network operation '{operation}' to {url} completed in {duration:.3f}s")
        if duration > 15.0:
            self.logger.warning(f"⚠️ Slow network operation: '{operation}' took {duration:.3f}s")

    def get_performance_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the timings collected so far.

        Returns:
            Dictionary containing performance summary
        """
        if not self._metrics:
            return {"total_operations": 0, "average_duration": 0.0}

        total_operations = len(self._metrics)
        total_duration = sum(m.duration for m in self._metrics)
        successful_ops = sum(1 for m in self._metrics if m.success)
        slowest_op = max(self._metrics, key=lambda m: m.duration)

        return {
            "total_operations": total_operations,
            "total_duration": total_duration,
            "average_duration": total_duration / total_operations,
            "success_rate": successful_ops / total_operations,
            "slowest_operation": {
                "name": slowest_op.operation,
                "duration": slowest_op.duration
            }
        }
