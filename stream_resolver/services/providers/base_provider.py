# stream_resolver/services/providers/base_provider.py

from abc import ABC, abstractmethod

from ...models import Candidate, ContentRequest


class Provider(ABC):
    """
    Abstract base class for all stream providers.
    """

    name: str = "provider"

    def applies_to(self, request: ContentRequest) -> bool:
        """Whether this provider should be queried for ``request`` at all."""
        return True

    @abstractmethod
    async def search(self, request: ContentRequest) -> list[Candidate]:
        """
        Query the provider for streams of the requested title.

        Args:
            request: The movie or episode being resolved.

        Returns:
            The provider's candidates, already normalized.

        Raises:
            ProviderUnavailable: the provider could not be reached or its
                payload could not be read at all.
        """
        pass
