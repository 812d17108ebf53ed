"""Synthetic record generation."""
from bulkbench.errors import InvalidArgument
from bulkbench.models import Customer


def generate(count: int) -> list[Customer]:
    """
    Build ``count`` unsaved customers.

    Index ``i`` always yields ``Customer_i`` / ``Description_i`` and is active
    for even ``i``. Identities are left for the store to assign.
    """
    if isinstance(count, bool) or not isinstance(count, int):
        raise InvalidArgument(f"count must be an integer, got {type(count).__name__}")
    if count < 0:
        raise InvalidArgument(f"count must be non-negative, got {count}")

    return [
        Customer(name=f"Customer_{i}", description=f"Description_{i}", is_active=i % 2 == 0)
        for i in range(count)
    ]
