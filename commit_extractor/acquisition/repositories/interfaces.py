"""Repository interfaces for credential resolution."""

from abc import ABC, abstractmethod

from commit_extractor.acquisition.domain.value_objects import CredentialOptions, RemoteLocation


class CredentialProvider(ABC):
    """Interface for one way of authenticating against a remote."""

    name: str = "credentials"

    @abstractmethod
    def supports(self, location: RemoteLocation) -> bool:
        """
        Check whether this provider can be tried for a remote.

        Args:
            location: Remote repository location

        Returns:
            True if the provider has what it needs for this remote
        """
        ...

    @abstractmethod
    def credential_options(self, location: RemoteLocation) -> CredentialOptions:
        """
        Build the git configuration and environment for one attempt.

        Args:
            location: Remote repository location

        Returns:
            CredentialOptions to pass to the clone
        """
        ...
