"""Error taxonomy for the benchmark harness."""


class BulkBenchError(Exception):
    """Base exception for bulkbench errors."""

    kind = "BulkBenchError"


class InvalidArgument(BulkBenchError, ValueError):
    """Raised for bad input to the generator, the reporter or the configuration."""

    kind = "InvalidArgument"


class StoreError(BulkBenchError):
    """Raised when the persistence collaborator fails during an operation."""

    kind = "StoreError"

    def __init__(self, operation: str, entities: int, message: str):
        super().__init__(f"{operation} failed for {entities} entities: {message}")
        self.operation = operation
        self.entities = entities
