from __future__ import annotations

import typing

from typing_extensions import TypedDict

from .__version__ import __version__

DEFAULT_CHUNK_SIZE = 4096 * 16
DEFAULT_TIMEOUT = 30.0
DEFAULT_USER_AGENT = f"uclient/{__version__}"


class ClientConfig(TypedDict, total=False):
    timeout: typing.Optional[float]
    follow_redirects: bool
    verify: typing.Union[bool, str]
    chunk_size: int
    user_agent: str


def resolve_config(config: typing.Optional[ClientConfig]) -> ClientConfig:
    """
    Fill the unset keys of `config` with the defaults
    """
    resolved = ClientConfig(
        timeout=DEFAULT_TIMEOUT,
        follow_redirects=False,
        verify=True,
        chunk_size=DEFAULT_CHUNK_SIZE,
        user_agent=DEFAULT_USER_AGENT,
    )
    if config:
        resolved.update(config)
    if resolved["chunk_size"] <= 0:
        raise ValueError("chunk_size must be a positive integer")
    return resolved
