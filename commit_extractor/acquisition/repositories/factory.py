"""Factory for the ordered list of credential providers."""

import os
from collections.abc import Mapping

from commit_extractor.acquisition.repositories.implementations import (
    AnonymousCredentialProvider,
    PlaintextCredentialProvider,
    SshAgentCredentialProvider,
)
from commit_extractor.acquisition.repositories.interfaces import CredentialProvider
from commit_extractor.config import ExtractorSettings


def create_credential_providers(
    settings: ExtractorSettings,
    environ: Mapping[str, str] | None = None,
) -> tuple[CredentialProvider, ...]:
    """
    Create credential providers in the order they are tried.

    The order is ssh-agent, then plaintext username/secret, then anonymous.

    Args:
        settings: Extractor settings holding any plaintext credentials
        environ: Environment to read SSH_AUTH_SOCK and GIT_SSH_COMMAND from.
                 Defaults to os.environ

    Returns:
        Tuple of credential providers
    """
    environ = os.environ if environ is None else environ
    ssh_command = environ.get("GIT_SSH_COMMAND") or "ssh"

    return (
        SshAgentCredentialProvider(
            auth_socket=environ.get("SSH_AUTH_SOCK") or None,
            ssh_command=ssh_command,
        ),
        PlaintextCredentialProvider(username=settings.username, password=settings.password),
        AnonymousCredentialProvider(ssh_command=ssh_command),
    )
