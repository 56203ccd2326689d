"""
Audit Logger

DESIGN DECISION: Every store write, sync pass and family membership
change is logged as a structured event. This provides:
1. Traceability of what was written where (personal vs family collection)
2. Visibility of the failures this layer tolerates (remote delete errors,
   denied sync reads) instead of silently swallowing them

The audit logger never raises; a logging failure must not break a user action.
"""

import structlog

from expenseflow.models.audit import AuditEvent, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def get_logger(name: str):
    """Get a named structlog logger."""
    return structlog.get_logger(name)


class AuditLogger:
    """
    Central audit logging service.

    Keeps the last events in memory (``history``) so callers and tests can
    inspect what happened during a session.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("expenseflow.audit")
        self._history: list[AuditEvent] = []
        self._history_size = history_size

    @property
    def history(self) -> list[AuditEvent]:
        return list(self._history)

    def log(self, event: AuditEvent) -> None:
        """Log an audit event at the level matching its severity."""
        self._history.append(event)
        if len(self._history) > self._history_size:
            del self._history[0]

        log_dict = event.to_log_dict()
        try:
            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Don't raise - audit logging should not break the main flow
            structlog.get_logger("expenseflow.audit").error(
                "audit_log_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
