"""Observation hooks around the expense engine's orchestration steps."""

import logging
from enum import StrEnum
from typing import Any, Protocol


class EngineStep(StrEnum):
    """The orchestration steps of expense creation, in order."""

    RESOLVE_GROUP = "resolve_group"
    RESOLVE_PAYER = "resolve_payer"
    RESOLVE_PARTICIPANTS = "resolve_participants"
    APPLY_POLICY = "apply_policy"
    PERSIST = "persist"


class EngineHooks(Protocol):
    """Receives start/finish/failure notifications for each engine step."""

    def step_started(self, step: EngineStep, **fields: Any) -> None: ...

    def step_finished(self, step: EngineStep, **fields: Any) -> None: ...

    def step_failed(self, step: EngineStep, error: Exception, **fields: Any) -> None: ...


class NullHooks:
    """Hooks that ignore every notification."""

    def step_started(self, step: EngineStep, **fields: Any) -> None:
        pass

    def step_finished(self, step: EngineStep, **fields: Any) -> None:
        pass

    def step_failed(self, step: EngineStep, error: Exception, **fields: Any) -> None:
        pass


def _format_fields(fields: dict[str, Any]) -> str:
    return " ".join(f"{key}={value}" for key, value in fields.items())


class LoggingHooks:
    """
    Report engine steps as log records.

    Each record carries ``engine_step`` and ``engine_fields`` in its
    ``extra`` so a structured handler can pick them up without parsing the
    message.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("groupsplit.engine")

    def _log(self, level: int, step: EngineStep, message: str, fields: dict) -> None:
        self.logger.log(
            level,
            f"{step.value} {message} {_format_fields(fields)}".rstrip(),
            extra={"engine_step": step.value, "engine_fields": fields},
        )

    def step_started(self, step: EngineStep, **fields: Any) -> None:
        self._log(logging.DEBUG, step, "started", fields)

    def step_finished(self, step: EngineStep, **fields: Any) -> None:
        self._log(logging.INFO, step, "finished", fields)

    def step_failed(self, step: EngineStep, error: Exception, **fields: Any) -> None:
        self._log(
            logging.WARNING,
            step,
            f"failed ({type(error).__name__}: {error})",
            fields,
        )
