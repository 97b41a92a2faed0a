"""Embedding and removing an HTTPS credential in a remote URL."""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional, Union
from urllib.parse import quote

from git import Repo

from .steps import GitStep, step_logger

_LOGGER_NAME = 'gitsync.git_sync.credential'
_HTTPS = "https://"


def get_git_url_with_credential(remote_url: str, user_name: str, access_token: str) -> str:
    """
    Insert ``user:token@`` after ``https://``; the rest of the URL is kept verbatim.

    Both parts are percent-encoded, so tokens holding ``/``, ``@`` or ``#``
    cannot end the authority early. Git decodes them before authenticating.
    """
    if not remote_url.startswith(_HTTPS):
        return remote_url
    credential = f"{quote(user_name, safe='')}:{quote(access_token, safe='')}"
    return f"{_HTTPS}{credential}@{remote_url[len(_HTTPS):]}"


def get_git_url_without_credential(remote_url: str) -> str:
    """Remove any ``user:token@`` part from an HTTPS URL."""
    if not remote_url.startswith(_HTTPS):
        return remote_url
    rest = remote_url[len(_HTTPS):]
    authority_end = rest.find("/")
    authority = rest if authority_end == -1 else rest[:authority_end]
    if "@" not in authority:
        return remote_url
    return _HTTPS + rest[authority.rindex("@") + 1:]


def get_git_url_with_git_suffix(remote_url: str) -> str:
    return remote_url if remote_url.endswith(".git") else f"{remote_url}.git"


def get_git_url_without_git_suffix(remote_url: str) -> str:
    return remote_url[:-len(".git")] if remote_url.endswith(".git") else remote_url


def _write_remote_url(dir: Union[str, Path], remote_name: str, url: str) -> None:
    # Written straight into the config so the token never shows up in a process list.
    section = f'remote "{remote_name}"'
    with Repo(dir) as repo:
        with repo.config_writer() as writer:
            if not writer.has_section(section):
                writer.add_section(section)
                writer.set_value(section, "fetch", f"+refs/heads/*:refs/remotes/{remote_name}/*")
            writer.set_value(section, "url", url)


def _read_remote_url(dir: Union[str, Path], remote_name: str) -> Optional[str]:
    section = f'remote "{remote_name}"'
    with Repo(dir) as repo:
        with repo.config_reader("repository") as reader:
            if not reader.has_option(section, "url"):
                return None
            return reader.get_value(section, "url")


def credential_on(
    dir: Union[str, Path],
    remote_url: str,
    user_name: str,
    access_token: str,
    remote_name: str = "origin",
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Point the remote at a URL that carries the access token.

    The remote is created when it does not exist yet. Only HTTPS URLs get a
    credential; anything else is set as given.

    Args:
        dir: Working tree path
        remote_url: Credential-free remote URL
        user_name: User name put in front of the token
        access_token: Token used as password
        remote_name: Remote to update
        logger: Logger for diagnostics
    """
    log = step_logger(logger, _LOGGER_NAME, 'credential_on', dir)
    log.progress(GitStep.PREPARING_USER_INFO)
    if not remote_url.startswith(_HTTPS):
        log.warning(
            f"Remote URL for {remote_name} is not HTTPS, setting it without a credential",
            step=GitStep.PREPARING_USER_INFO
        )
    _write_remote_url(dir, remote_name, get_git_url_with_credential(remote_url, user_name, access_token))


def credential_off(
    dir: Union[str, Path],
    remote_name: str = "origin",
    logger: Optional[logging.Logger] = None,
) -> None:
    """Restore the remote's URL to its credential-free form."""
    log = step_logger(logger, _LOGGER_NAME, 'credential_off', dir)
    log.progress(GitStep.REMOVING_CREDENTIAL)
    current_url = _read_remote_url(dir, remote_name)
    if current_url is None:
        return
    stripped_url = get_git_url_without_credential(current_url)
    if stripped_url != current_url:
        _write_remote_url(dir, remote_name, stripped_url)


@contextmanager
def authenticated(
    dir: Union[str, Path],
    remote_url: str,
    user_name: str,
    access_token: str,
    remote_name: str = "origin",
    logger: Optional[logging.Logger] = None,
) -> Generator[None, None, None]:
    """Keep the credential on the remote for the duration of the block only."""
    credential_on(dir, remote_url, user_name, access_token, remote_name, logger)
    try:
        yield
    finally:
        credential_off(dir, remote_name, logger)
