"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

from datetime import datetime
from typing import Protocol, runtime_checkable


@runtime_checkable
class Identity(Protocol):
    """An entity that can be authenticated by a signer."""

    expiration: datetime | None = None
    """The expiration time of the identity.

    If time zone is provided, it is updated to UTC. The value must always be in UTC.
    """

    @property
    def is_expired(self) -> bool:
        """Whether the identity is expired."""
        ...


@runtime_checkable
class AWSCredentialsIdentity(Identity, Protocol):
    """Long-term or temporary AWS credentials."""

    @property
    def access_key_id(self) -> str:
        """A unique identifier for an AWS user or role."""
        ...

    @property
    def secret_access_key(self) -> str:
        """A secret key used in conjunction with the access key id to sign
        requests."""
        ...

    @property
    def session_token(self) -> str | None:
        """A value that validates the temporary credentials, if any."""
        ...
