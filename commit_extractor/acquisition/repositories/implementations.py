"""Concrete implementations of credential providers."""

from commit_extractor.acquisition.domain.value_objects import (
    CredentialOptions,
    RemoteLocation,
    Transport,
)
from commit_extractor.acquisition.repositories.interfaces import CredentialProvider

_USERNAME_VARIABLE = "COMMIT_EXTRACTOR_USERNAME"
_PASSWORD_VARIABLE = "COMMIT_EXTRACTOR_PASSWORD"

# Inline helper answering git's "get" request from the clone's environment,
# so the secret is never part of a command line
_PLAINTEXT_HELPER = (
    "!f() { test \"$1\" = get || return 0; "
    f'echo "username=${_USERNAME_VARIABLE}"; '
    f'echo "password=${_PASSWORD_VARIABLE}"; '
    "}; f"
)


def _batch_ssh_command(base_command: str) -> str:
    return f"{base_command} -o BatchMode=yes"


class SshAgentCredentialProvider(CredentialProvider):
    """
    Delegates signing to a running ssh-agent.

    ssh offers the agent's keys first. BatchMode keeps it from prompting for
    the passphrase of any key file it tries after them.
    """

    name = "ssh-agent"

    def __init__(self, auth_socket: str | None, ssh_command: str = "ssh") -> None:
        """
        Initialize SshAgentCredentialProvider.

        Args:
            auth_socket: Value of SSH_AUTH_SOCK, None when no agent is running
            ssh_command: Base ssh command git should run
        """
        self._auth_socket = auth_socket
        self._ssh_command = ssh_command

    def supports(self, location: RemoteLocation) -> bool:
        return location.transport == Transport.SSH and bool(self._auth_socket)

    def credential_options(self, location: RemoteLocation) -> CredentialOptions:
        assert self._auth_socket is not None
        return CredentialOptions(
            env={
                "SSH_AUTH_SOCK": self._auth_socket,
                "GIT_SSH_COMMAND": (
                    f"{_batch_ssh_command(self._ssh_command)} "
                    "-o PreferredAuthentications=publickey"
                ),
            },
        )


class PlaintextCredentialProvider(CredentialProvider):
    """Supplies a configured username and secret over http(s)."""

    name = "plaintext"

    def __init__(self, username: str | None, password: str | None) -> None:
        """
        Initialize PlaintextCredentialProvider.

        Args:
            username: Username to authenticate with
            password: Password or access token
        """
        self._username = username
        self._password = password

    def supports(self, location: RemoteLocation) -> bool:
        return (
            location.transport == Transport.HTTP
            and bool(self._username)
            and bool(self._password)
        )

    def credential_options(self, location: RemoteLocation) -> CredentialOptions:
        assert self._username is not None and self._password is not None
        return CredentialOptions(
            # The empty helper entry clears helpers from the user's git config
            config=("credential.helper=", f"credential.helper={_PLAINTEXT_HELPER}"),
            env={
                _USERNAME_VARIABLE: self._username,
                _PASSWORD_VARIABLE: self._password,
            },
        )


class AnonymousCredentialProvider(CredentialProvider):
    """Attempts the clone without credentials."""

    name = "anonymous"

    def __init__(self, ssh_command: str = "ssh") -> None:
        """
        Initialize AnonymousCredentialProvider.

        Args:
            ssh_command: Base ssh command git should run
        """
        self._ssh_command = ssh_command

    def supports(self, location: RemoteLocation) -> bool:
        return True

    def credential_options(self, location: RemoteLocation) -> CredentialOptions:
        return CredentialOptions(
            config=("credential.helper=",),
            env={"GIT_SSH_COMMAND": _batch_ssh_command(self._ssh_command)},
        )
