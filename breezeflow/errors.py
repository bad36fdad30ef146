"""Exception hierarchy for breezeflow."""

from __future__ import annotations


class BreezeflowError(Exception):
    """Base class for all breezeflow errors."""


class WorkflowDefinitionError(BreezeflowError):
    """The workflow graph is malformed (dangling edge, unknown node type, cycle...)."""


class WorkflowNotFound(BreezeflowError):
    """No workflow definition exists for the requested id."""


class WorkflowNotActive(BreezeflowError):
    """A trigger fired for a workflow that is not in the ``active`` status."""


class ExecutionNotFound(BreezeflowError):
    """No execution exists for the requested id."""


class NodeFailed(BreezeflowError):
    """A node could not produce an output.

    ``retryable`` tells the engine whether another attempt may succeed.
    """

    def __init__(self, message: str, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


class TransientError(NodeFailed):
    """External failure worth retrying (timeout, 5xx, rate limit)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=True)


class PermanentError(NodeFailed):
    """External failure that will not go away on retry (invalid input, 4xx)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=False)


class StoreError(BreezeflowError):
    """The execution store is unavailable or rejected an operation."""


class ClaimLost(StoreError):
    """The caller no longer owns the claim on an execution it tried to write."""

    def __init__(self, execution_id: str, owner: str) -> None:
        super().__init__(f"Claim on execution {execution_id} is not held by {owner}")
        self.execution_id = execution_id
        self.owner = owner
