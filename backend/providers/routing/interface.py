from typing import Protocol, runtime_checkable

from models.types import GeoPoint, MatrixElement, RouteLeg


class RoutingProvider(Protocol):
    name: str
    metered: bool

    def is_configured(self) -> bool: ...

    async def route(self, origin: GeoPoint, destination: GeoPoint) -> RouteLeg: ...

    async def close(self) -> None: ...


@runtime_checkable
class MatrixRoutingProvider(Protocol):
    """A routing provider that answers one origin to many destinations in a single call."""

    name: str
    metered: bool
    max_destinations_per_call: int

    def is_configured(self) -> bool: ...

    async def distance_matrix(
        self, origin: GeoPoint, destinations: list[GeoPoint]
    ) -> list[MatrixElement]: ...
