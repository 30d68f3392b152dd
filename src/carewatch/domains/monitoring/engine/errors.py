"""Simulation registry errors."""

from __future__ import annotations


class SimulationError(Exception):
    """Base class for simulation lifecycle failures."""


class UserNotFoundError(SimulationError):
    """No baseline exists for the user."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class SimulationAlreadyRunningError(SimulationError):
    """A task for (user_id, vital_kind) is already active."""

    def __init__(self, user_id: str, vital_kind: str) -> None:
        super().__init__(f"{vital_kind} simulation is already running for user {user_id}")
        self.user_id = user_id
        self.vital_kind = vital_kind


class SimulationNotRunningError(SimulationError):
    """No task exists for (user_id, vital_kind)."""

    def __init__(self, user_id: str, vital_kind: str) -> None:
        super().__init__(f"No {vital_kind} simulation is running for user {user_id}")
        self.user_id = user_id
        self.vital_kind = vital_kind
