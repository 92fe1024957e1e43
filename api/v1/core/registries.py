from typing import Any, Generic, Protocol, TypeVar

# Base registry implementation
T = TypeVar("T")


class Registry(Generic[T]):
    """Generic registry for pluggable implementations."""

    def __init__(self, name: str):
        self.name = name
        self._implementations: dict[str, T] = {}
        self._frozen = False

    def register(self, name: str, implementation: T) -> None:
        """Register an implementation with a given name."""
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

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if the registry is frozen."""
        return self._frozen


# Render Provider Registry - external processors that perform the render
class RenderProvider(Protocol):
    """Protocol for external render providers."""

    name: str

    async def start(self, request: Any) -> Any:
        """
        Hand a render job to the provider.

        Args:
            request: StartRequest with job id, storyboard, webhook URL, metadata

        Returns:
            StartResult carrying the provider's correlation id

        Raises:
            ProviderError: the provider was unreachable or rejected the job
        """
        ...


class RenderProviderRegistry(Registry[RenderProvider]):
    """Registry for render providers (mock, http)."""

    def __init__(self):
        super().__init__("RenderProvider")


# Story Analyzer Registry - best-effort quality scoring before publishing
class StoryAnalyzer(Protocol):
    """Protocol for story analyzers."""

    async def analyze(self, text: str) -> Any:
        """Return StoryInsights (rating 0-100 or None, insight text)."""
        ...


class StoryAnalyzerRegistry(Registry[StoryAnalyzer]):
    """Registry for story analyzers (stub, openai)."""

    def __init__(self):
        super().__init__("StoryAnalyzer")


# Global registry instances (singletons)
provider_registry = RenderProviderRegistry()
analyzer_registry = StoryAnalyzerRegistry()
