"""Branch Chat error hierarchy.

All project exceptions inherit from BranchChatError:

    BranchChatError
    ├── PersistenceError        # storage call failed; blocks the user
    ├── GenerationError         # completion failed or was empty; fallback text
    ├── TitleGenerationError    # titling failed; fallback title
    │   └── InvalidTitleError   # title was empty, too long, or echoed the prompt
    ├── BrokenChainError        # a node's parent is missing from the tree store
    ├── SendInProgressError     # a send was requested while another is in flight
    └── SendCancelledError      # the in-flight send was cancelled and rolled back
"""

from typing import Optional


class BranchChatError(Exception):
    """Base class for all Branch Chat errors."""


class PersistenceError(BranchChatError):
    """A create/update/fetch call against the persistence service failed."""

    def __init__(self, message: str, operation: Optional[str] = None, phase: Optional[str] = None):
        super().__init__(message)
        self.operation = operation
        self.phase = phase  # Send phase the failure interrupted, set by the coordinator

    def __str__(self) -> str:
        base = super().__str__()
        if self.operation:
            base = f"{self.operation}: {base}"
        if self.phase:
            base = f"{base} (during {self.phase})"
        return base


class GenerationError(BranchChatError):
    """The generation service failed or returned nothing usable."""


class TitleGenerationError(BranchChatError):
    """Title generation failed or timed out."""


class InvalidTitleError(TitleGenerationError):
    """A generated title failed validation."""


class BrokenChainError(BranchChatError):
    """A parent pointer does not resolve to a node in the tree store."""

    def __init__(self, node_id: str, missing_parent_id: str):
        super().__init__(f"Node {node_id} references missing parent {missing_parent_id}")
        self.node_id = node_id
        self.missing_parent_id = missing_parent_id


class SendInProgressError(BranchChatError):
    """Only one send may be in flight per session."""


class SendCancelledError(BranchChatError):
    """The in-flight send was cancelled and rolled back."""
