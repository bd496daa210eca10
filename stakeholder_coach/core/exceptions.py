"""
Error taxonomy for the Stakeholder Interview Coach.

Only UnknownStageError and SessionNotFoundError abort an operation outright.
Oracle errors are absorbed by the component that made the call and replaced
with that component's deterministic fallback.
"""
from typing import Optional


class StakeholderCoachError(Exception):
    """Base class for all domain errors."""


class UnknownStageError(StakeholderCoachError, ValueError):
    """Stage id is not one of the five recognized stages."""

    def __init__(self, stage_id: object):
        self.stage_id = stage_id
        super().__init__(f"Unknown stage: {stage_id!r}")


class UnknownScenarioError(StakeholderCoachError, LookupError):
    """No project scenario is registered under the given id."""

    def __init__(self, scenario_id: str):
        self.scenario_id = scenario_id
        super().__init__(f"Unknown scenario: {scenario_id}")


class UnknownPersonaError(StakeholderCoachError, ValueError):
    """Persona id does not belong to the session's scenario."""

    def __init__(self, persona_id: str, scenario_id: str):
        self.persona_id = persona_id
        self.scenario_id = scenario_id
        super().__init__(f"Persona {persona_id} is not part of scenario {scenario_id}")


class OracleError(StakeholderCoachError):
    """A judgment oracle call failed."""

    def __init__(self, message: str, operation: Optional[str] = None):
        self.operation = operation
        super().__init__(message)


class OracleTimeoutError(OracleError):
    """The oracle did not answer within the configured timeout."""


class OracleMalformedResponseError(OracleError):
    """The oracle answered with content that could not be parsed."""


class OracleUnavailableError(OracleError):
    """The oracle capability is not reachable at all."""


class ConcurrentTurnError(StakeholderCoachError):
    """A turn is already in flight for this session."""

    retry_after_seconds = 2

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"A question is already being processed for session {session_id}; retry later")


class SessionNotFoundError(StakeholderCoachError, LookupError):
    """No session exists under the given id."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class SessionClosedError(StakeholderCoachError):
    """The session has been archived and can no longer be mutated."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} has ended")


class StageTransitionError(StakeholderCoachError):
    """The requested stage advancement is not allowed."""
