"""
Error taxonomy for flow calculation runs.

- NotFound: the requested network does not resolve to an active network
- DataAccessError: the data store could not be read or written
- ConflictError: a canonical flow record could not be written atomically
- CalculationCancelled: the run was cancelled between stages
"""


class GasFlowError(Exception):
    """Base class for all gasflow errors."""


class NotFound(GasFlowError):
    """Raised when a network (or other entity) does not exist or is inactive."""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class DataAccessError(GasFlowError):
    """Raised when the data store fails to read or write."""


class ConflictError(GasFlowError):
    """Raised when a concurrent writer modified the flow store during a run."""


class CalculationCancelled(GasFlowError):
    """Raised when a calculation run is cancelled before its write phase."""
