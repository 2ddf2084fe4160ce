"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0

Signing of requests bound for an S3 bucket endpoint.

:class:`S3RequestSigner` turns a method, path, body and headers into a
:class:`SignedRequest` that carries everything needed to send it: the full
``https`` URI, the ``Host``, ``X-Amz-Date``, ``X-Amz-Content-SHA256`` and
``Authorization`` headers, and the body. Sending it is left to the caller.
"""

import datetime
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from http import HTTPMethod
from types import MappingProxyType

from ._http import URI, AWSRequest, Fields
from ._identity import AWSCredentialIdentity
from .exceptions import InvalidRequestException
from .signers import (
    Configuration,
    SigV4Signer,
    SigV4SigningProperties,
    sigv4_timestamps,
    uri_encode,
)

logger = logging.getLogger(__name__)

S3_SERVICE_NAME: str = "s3"
DEFAULT_ENDPOINT_SUFFIX: str = "amazonaws.com"


@dataclass(frozen=True, kw_only=True)
class S3SigningContext:
    """Target bucket and credential scope of the signed requests."""

    bucket: str
    region: str
    service: str = S3_SERVICE_NAME
    endpoint_suffix: str = DEFAULT_ENDPOINT_SUFFIX

    @property
    def host(self) -> str:
        """Virtual-hosted style endpoint of the bucket."""
        return f"{self.bucket}.{self.service}.{self.endpoint_suffix}"


@dataclass(frozen=True, kw_only=True)
class SignedRequest:
    """A signed request, ready to be handed to an HTTP client."""

    method: str
    uri: str
    headers: Mapping[str, str]
    body: bytes | None = None


class S3RequestSigner:
    """
    Signs requests against a bucket endpoint with AWS Signature Version 4.

    Instances hold no per-request state and may be shared between threads.
    """

    def __init__(self, *, config: Configuration | None = None):
        self._signer = SigV4Signer(config=config)

    def sign(
        self,
        method: str | HTTPMethod,
        path: str,
        body: bytes | bytearray | memoryview | None = None,
        headers: Mapping[str, str] | None = None,
        *,
        credentials: AWSCredentialIdentity,
        context: S3SigningContext,
        now: datetime.datetime | None = None,
        query: str = "",
    ) -> SignedRequest:
        """Sign a request for the bucket described by ``context``.

        :param method: Standard HTTP method of the request.
        :param path: Absolute request path, starting with ``/``.
        :param body: Raw request body. ``None`` is signed as an empty body.
        :param headers: Additional headers to send and sign. Names must be unique
            ignoring case. Names in ``Configuration.unsigned_headers`` (by default
            ``Accept``, ``Accept-Encoding``, ``Connection``, ``Expect``,
            ``User-Agent`` and ``X-Amzn-Trace-Id``) are sent but left out of the
            signature.
        :param credentials: Credentials used to derive the signing key.
        :param context: Bucket, region and service to sign for.
        :param now: Signing time. Defaults to the current time.
        :param query: Percent-encoded query string, without the leading ``?``.
            It is sent as given. For signing, escapes are decoded and ``+`` is
            read as a space, so a literal plus sign must be sent as ``%2B``.
        """
        resolved_method = self._resolve_method(method=method)
        self._validate_path(path=path)
        self._validate_context(context=context)
        payload = self._resolve_body(body=body)

        timestamps = sigv4_timestamps(now)
        request = AWSRequest(
            destination=URI(
                scheme="https",
                host=context.host,
                path=path,
                query=query or None,
            ),
            method=resolved_method,
            fields=self._resolve_fields(headers=headers),
            body=payload,
        )
        signing_properties = SigV4SigningProperties(
            region=context.region,
            service=context.service,
            date=timestamps.long_date,
        )
        signed_request = self._signer.sign(
            signing_properties=signing_properties,
            request=request,
            identity=credentials,
        )

        # The path on the wire must match the encoded path that was signed.
        destination = signed_request.destination.to_dict()
        destination["path"] = uri_encode(path, safe="/")
        uri = URI(**destination).build()
        logger.debug("Signed %s request for %s", resolved_method, uri)
        return SignedRequest(
            method=resolved_method,
            uri=uri,
            headers=MappingProxyType(signed_request.fields.as_dict()),
            body=payload,
        )

    def _resolve_method(self, *, method: str | HTTPMethod) -> str:
        if isinstance(method, HTTPMethod):
            return method.value
        if not isinstance(method, str) or method.upper() not in HTTPMethod.__members__:
            raise InvalidRequestException(
                f"Expected a standard HTTP method but received {method!r}."
            )
        return method.upper()

    def _validate_path(self, *, path: str) -> None:
        if not isinstance(path, str) or not path.startswith("/"):
            raise InvalidRequestException(
                "Request paths must be absolute and start with '/'. "
                f"Received {path!r}."
            )

    def _validate_context(self, *, context: S3SigningContext) -> None:
        if not isinstance(context, S3SigningContext):
            raise InvalidRequestException(
                "Expected an S3SigningContext for the context parameter but "
                f"received {type(context)}."
            )
        for name in ("bucket", "region", "service", "endpoint_suffix"):
            value = getattr(context, name)
            if not isinstance(value, str) or not value:
                raise InvalidRequestException(
                    f"The signing context requires a non-empty {name}."
                )

    def _resolve_body(
        self, *, body: bytes | bytearray | memoryview | None
    ) -> bytes | None:
        if body is None:
            return None
        if not isinstance(body, (bytes, bytearray, memoryview)):
            raise InvalidRequestException(
                f"Request bodies must be bytes-like. Received {type(body)}."
            )
        return bytes(body)

    def _resolve_fields(self, *, headers: Mapping[str, str] | None) -> Fields:
        seen: set[str] = set()
        for name, value in (headers or {}).items():
            if not isinstance(name, str) or not isinstance(value, str):
                raise InvalidRequestException(
                    "Header names and values must be strings. "
                    f"Received {name!r}: {type(value)}."
                )
            normalized_name = name.strip().lower()
            if not normalized_name:
                raise InvalidRequestException("Header names must not be empty.")
            if normalized_name in seen:
                raise InvalidRequestException(
                    f"Header {name!r} is supplied more than once. Header names "
                    "are compared ignoring case."
                )
            seen.add(normalized_name)
        return Fields.from_mapping(headers)


def sign_request(
    method: str | HTTPMethod,
    path: str,
    body: bytes | bytearray | memoryview | None = None,
    headers: Mapping[str, str] | None = None,
    *,
    credentials: AWSCredentialIdentity,
    context: S3SigningContext,
    now: datetime.datetime | None = None,
    query: str = "",
    config: Configuration | None = None,
) -> SignedRequest:
    """Sign a single request. See :meth:`S3RequestSigner.sign`."""
    return S3RequestSigner(config=config).sign(
        method,
        path,
        body,
        headers,
        credentials=credentials,
        context=context,
        now=now,
        query=query,
    )
