from typing import Any, Generic, Protocol, TypeVar

from jobqueue.v1.core.exceptions import HandlerNotFoundError

# Base registry implementation
T = TypeVar("T")


class Registry(Generic[T]):
    """Generic registry for pluggable implementations."""

    def __init__(self, name: str):
        self.name = name
        self._implementations: dict[str, T] = {}
        self._frozen = False

    def register(self, name: str, implementation: T) -> None:
        """Register an implementation with a given name.

        Registering an existing name replaces the previous implementation.
        """
        if self._frozen:
            raise RuntimeError(
                f"Cannot register '{name}' in {self.name.lower()} registry: "
                "registry is frozen in production mode"
            )
        self._implementations[name] = implementation

    def get(self, name: str) -> T:
        """Get an implementation by name."""
        if name not in self._implementations:
            raise KeyError(
                f"No {self.name.lower()} implementation registered with name: {name}"
            )
        return self._implementations[name]

    def list(self) -> list[str]:
        """List all registered implementation names."""
        return list(self._implementations.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._implementations

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if the registry is frozen."""
        return self._frozen


# Job handlers - executable work keyed by job type
class JobHandler(Protocol):
    """Protocol for job handlers.

    A handler receives the claimed job and returns a JSON-serialisable result,
    or raises to signal failure. Coroutine functions are awaited; plain
    callables are run in a worker thread.
    """

    def __call__(self, job: Any) -> Any:
        ...


class HandlerRegistry(Registry[JobHandler]):
    """Registry mapping job types to handlers."""

    def __init__(self):
        super().__init__("Handler")

    def get(self, name: str) -> JobHandler:
        try:
            return super().get(name)
        except KeyError:
            raise HandlerNotFoundError(name) from None
