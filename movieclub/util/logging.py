"""
Structured logging for movie club operations: transitions, phase changes,
schedule runs and notification delivery.
"""

import logging
from typing import Any, Dict, List, Optional


class StructuredLogger:
    """Structured logger for lifecycle operations."""

    def __init__(self, name: str = "movieclub"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.info(message)

    def log_transition(self, proposal_id: str, from_status: str, to_status: str, details: Dict[str, Any] = None):
        """Log a proposal status transition."""
        log_details = {"proposal_id": proposal_id, "from": from_status, "to": to_status}
        if details:
            log_details.update(details)

        self.log_operation("proposal.transition", "applied", log_details)

    def log_phase_change(self, previous: str, current: str, week: int):
        """Log a change of the process-wide phase."""
        self.log_operation("state.phase", "changed", {"previous": previous, "current": current, "week": week})

    def log_week_change(self, previous: int, current: int):
        """Log a week advancement."""
        self.log_operation("state.week", "advanced", {"previous": previous, "current": current})

    def log_schedule(self, proposal_ids: List[str], first_vetting_id: Optional[str]):
        """Log a completed batch schedule."""
        self.log_operation("schedule.batch", "success", {
            "count": len(proposal_ids),
            "order": proposal_ids,
            "first_vetting": first_vetting_id
        })

    def log_notification(self, kind: str, status: str, details: Dict[str, Any] = None):
        """Log a notification attempt."""
        log_details = {"kind": kind}
        if details:
            log_details.update(details)

        self.log_operation(f"notify.{kind}", status, log_details)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()
