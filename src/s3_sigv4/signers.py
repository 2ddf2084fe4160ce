"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0
"""

import datetime
import hmac
import logging
import re
import warnings
from collections.abc import Iterable
from copy import deepcopy
from dataclasses import dataclass
from hashlib import sha256
from typing import NamedTuple, Required, TypedDict
from urllib.parse import parse_qsl, quote

from ._http import URI, AWSRequest, Field, Fields
from ._identity import AWSCredentialIdentity
from .exceptions import (
    AWSSDKWarning,
    InvalidRequestException,
    MissingExpectedParameterException,
)
from .interfaces.identity import AWSCredentialsIdentity as _AWSCredentialsIdentity

logger = logging.getLogger(__name__)

HEADERS_EXCLUDED_FROM_SIGNING: tuple[str, ...] = (
    "accept",
    "accept-encoding",
    "authorization",
    "connection",
    "expect",
    "user-agent",
    "x-amzn-trace-id",
)
DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443}

SIGV4_ALGORITHM: str = "AWS4-HMAC-SHA256"
SIGV4_TIMESTAMP_FORMAT: str = "%Y%m%dT%H%M%SZ"
SIGV4_DATE_FORMAT: str = "%Y%m%d"
SIGV4_SCOPE_TERMINATOR: str = "aws4_request"
EMPTY_SHA256_HASH = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

_SIGV4_TIMESTAMP_RE = re.compile(r"\d{8}T\d{6}Z")


class SigV4Timestamps(NamedTuple):
    long_date: str
    short_date: str


def sigv4_timestamps(now: datetime.datetime | None = None) -> SigV4Timestamps:
    """Format the long (``YYYYMMDDTHHMMSSZ``) and short (``YYYYMMDD``) dates.

    Aware datetimes are converted to UTC. Naive datetimes are assumed to
    already be in UTC. When ``now`` is omitted the current time is used.
    """
    if now is None:
        now = datetime.datetime.now(datetime.UTC)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=datetime.UTC)
    else:
        now = now.astimezone(datetime.UTC)
    return SigV4Timestamps(
        long_date=now.strftime(SIGV4_TIMESTAMP_FORMAT),
        short_date=now.strftime(SIGV4_DATE_FORMAT),
    )


def sha256_hex(data: bytes) -> str:
    return sha256(data).hexdigest()


def hmac_sha256(key: bytes, msg: bytes) -> bytes:
    return hmac.new(key=key, msg=msg, digestmod=sha256).digest()


def hmac_sha256_hex(key: bytes, msg: bytes) -> str:
    return hmac_sha256(key, msg).hex()


@dataclass(frozen=True, kw_only=True)
class Configuration:
    unsigned_headers: tuple[str, ...] = HEADERS_EXCLUDED_FROM_SIGNING


@dataclass(frozen=True, kw_only=True)
class CanonicalRequestInfo:
    request_string: str
    signed_header_names: tuple[str, ...]

    @property
    def signed_headers(self) -> str:
        return ";".join(self.signed_header_names)


class SigV4SigningProperties(TypedDict, total=False):
    region: Required[str]
    service: Required[str]
    date: str


class SigV4Signer:
    """
    Request signer for applying the AWS Signature Version 4 algorithm.
    """

    def __init__(self, *, config: Configuration | None = None):
        self._config = config or Configuration()
        self._unsigned_headers = frozenset(
            name.lower() for name in self._config.unsigned_headers
        )

    def sign(
        self,
        *,
        signing_properties: SigV4SigningProperties,
        request: AWSRequest,
        identity: AWSCredentialIdentity,
    ) -> AWSRequest:
        """Generate and apply a SigV4 Signature to a copy of the supplied request.

        :param signing_properties: SigV4SigningProperties to define signing primitives
            such as the target service, region, and date.
        :param request: An AWSRequest to sign prior to sending to the service.
        :param identity: A set of credentials representing an AWS Identity or role
            capacity.
        """
        # Copy and prepopulate any missing values in the
        # supplied request and signing properties.
        self._validate_identity(identity=identity)
        new_signing_properties = self._normalize_signing_properties(
            signing_properties=signing_properties
        )
        assert "date" in new_signing_properties
        date = new_signing_properties["date"]

        new_request = self._generate_new_request(request=request)
        payload_hash = self._format_canonical_payload(request=new_request)
        self._apply_required_fields(
            request=new_request,
            signing_properties=new_signing_properties,
            identity=identity,
            payload_hash=payload_hash,
        )

        # Construct core signing components
        canonical_request = self.canonical_request_info(
            method=new_request.method,
            path=new_request.destination.path,
            query=new_request.destination.query,
            fields=new_request.fields,
            payload_hash=payload_hash,
        )
        credential_scope = self.scope(
            short_date=date[0:8],
            region=new_signing_properties["region"],
            service=new_signing_properties["service"],
        )
        string_to_sign = self.string_to_sign(
            canonical_request=canonical_request.request_string,
            date=date,
            scope=credential_scope,
        )
        logger.debug("SignedHeaders: %s", canonical_request.signed_headers)
        logger.debug("StringToSign:\n%s", string_to_sign)
        signature = self._signature(
            string_to_sign=string_to_sign,
            secret_key=identity.secret_access_key,
            signing_properties=new_signing_properties,
        )

        credential = f"{identity.access_key_id}/{credential_scope}"
        authorization = self.generate_authorization_field(
            credential=credential,
            signed_headers=list(canonical_request.signed_header_names),
            signature=signature,
        )
        new_request.fields.set_field(authorization)

        return new_request

    def generate_authorization_field(
        self, *, credential: str, signed_headers: list[str], signature: str
    ) -> Field:
        """Generate the `Authorization` field.

        :param credential:
            Credential scope string for generating the Authorization header.
            Defined as:
                <access_key>/<date>/<region>/<service>/aws4_request
        :param signed_headers:
            A list of the field names used in signing.
        :param signature:
            Final hash of the SigV4 signing algorithm generated from the
            canonical request and string to sign.
        """
        signed_headers_str = ";".join(signed_headers)
        auth_str = (
            f"{SIGV4_ALGORITHM} Credential={credential}, "
            f"SignedHeaders={signed_headers_str}, Signature={signature}"
        )
        return Field(name="Authorization", values=[auth_str])

    def _signature(
        self,
        *,
        string_to_sign: str,
        secret_key: str,
        signing_properties: SigV4SigningProperties,
    ) -> str:
        """Sign the string to sign.

        In SigV4, a signing key is created that is scoped to a specific region and
        service. The date, region, service and resulting signing key are individually
        hashed, then the composite hash is used to sign the string to sign.
        """
        assert "date" in signing_properties
        signing_key = self.signing_key(
            secret_key=secret_key,
            short_date=signing_properties["date"][0:8],
            region=signing_properties["region"],
            service=signing_properties["service"],
        )
        return hmac_sha256_hex(signing_key, string_to_sign.encode())

    def signing_key(
        self, *, secret_key: str, short_date: str, region: str, service: str
    ) -> bytes:
        """Derive the signing key for a single date, region and service.

        DateKey              = HMAC-SHA256("AWS4"+"<SecretAccessKey>", "<YYYYMMDD>")
        DateRegionKey        = HMAC-SHA256(<DateKey>, "<aws-region>")
        DateRegionServiceKey = HMAC-SHA256(<DateRegionKey>, "<aws-service>")
        SigningKey           = HMAC-SHA256(<DateRegionServiceKey>, "aws4_request")

        Every stage is keyed with the raw digest of the previous one.
        """
        k_date = self._hash(key=f"AWS4{secret_key}".encode(), value=short_date)
        k_region = self._hash(key=k_date, value=region)
        k_service = self._hash(key=k_region, value=service)
        return self._hash(key=k_service, value=SIGV4_SCOPE_TERMINATOR)

    def _hash(self, key: bytes, value: str) -> bytes:
        return hmac_sha256(key, value.encode())

    def _validate_identity(self, *, identity: AWSCredentialIdentity) -> None:
        """Perform runtime and expiration checks before attempting signing."""
        if not isinstance(identity, _AWSCredentialsIdentity):
            raise ValueError(
                "Received unexpected value for identity parameter. Expected "
                f"AWSCredentialIdentity but received {type(identity)}."
            )
        elif not identity.access_key_id or not identity.secret_access_key:
            raise MissingExpectedParameterException(
                "Both access_key_id and secret_access_key must be set on the "
                "identity used for signing."
            )
        elif identity.is_expired:
            raise ValueError(
                f"Provided identity expired at {identity.expiration}. Please "
                "refresh the credentials or update the expiration parameter."
            )

    def _normalize_signing_properties(
        self, *, signing_properties: SigV4SigningProperties
    ) -> SigV4SigningProperties:
        for name in ("region", "service"):
            if not signing_properties.get(name):
                raise MissingExpectedParameterException(
                    f"Cannot sign a request without a {name} in your "
                    "signing_properties. Current value: "
                    f"{signing_properties.get(name)}"
                )
        # Create copy of signing properties to avoid mutating the original
        new_signing_properties = SigV4SigningProperties(**signing_properties)
        if "date" not in new_signing_properties:
            new_signing_properties["date"] = sigv4_timestamps().long_date
        elif not _SIGV4_TIMESTAMP_RE.fullmatch(new_signing_properties["date"]):
            raise InvalidRequestException(
                "Expected a signing date formatted as YYYYMMDD'T'HHMMSS'Z'. "
                f"Current value: {new_signing_properties['date']}"
            )
        return new_signing_properties

    def _generate_new_request(self, *, request: AWSRequest) -> AWSRequest:
        # Bodies may be single-use iterators, so only the fields are copied.
        return AWSRequest(
            destination=request.destination,
            method=request.method,
            fields=deepcopy(request.fields),
            body=request.body,
        )

    def _apply_required_fields(
        self,
        *,
        request: AWSRequest,
        signing_properties: SigV4SigningProperties,
        identity: AWSCredentialIdentity,
        payload_hash: str,
    ) -> None:
        assert "date" in signing_properties
        required = {
            "X-Amz-Date": signing_properties["date"],
            "X-Amz-Content-SHA256": payload_hash,
            "Host": self._normalize_host_field(uri=request.destination),
        }
        if identity.session_token is not None:
            required["X-Amz-Security-Token"] = identity.session_token

        for name, value in required.items():
            if name in request.fields and request.fields[name].as_string() != value:
                # Values are left out of the message, the token is a secret.
                warnings.warn(
                    f"Replacing the supplied {name} field with the value "
                    "computed for signing.",
                    AWSSDKWarning,
                    stacklevel=3,
                )
            request.fields.set_field(Field(name=name, values=[value]))

    def canonical_request(
        self,
        *,
        method: str,
        path: str | None,
        query: str | None,
        fields: Fields,
        payload_hash: str,
    ) -> str:
        """The canonical request as a single string.

        See :meth:`canonical_request_info`.
        """
        return self.canonical_request_info(
            method=method,
            path=path,
            query=query,
            fields=fields,
            payload_hash=payload_hash,
        ).request_string

    def canonical_request_info(
        self,
        *,
        method: str,
        path: str | None,
        query: str | None,
        fields: Fields,
        payload_hash: str,
    ) -> CanonicalRequestInfo:
        """The canonical request is a standardized string laying out the components used
        in the SigV4 signing algorithm. This is useful to quickly compare inputs to find
        signature mismatches and unintended variances.

        The SigV4 specification defines the canonical request to be:
            <HTTPMethod>\n
            <CanonicalURI>\n
            <CanonicalQueryString>\n
            <CanonicalHeaders>\n
            \n
            <SignedHeaders>\n
            <HashedPayload>

        :param method: HTTP method of the request.
        :param path: Absolute, unencoded request path.
        :param query: Percent-encoded query string, without the leading ``?``.
            Escapes are decoded before re-encoding and ``+`` decodes to a space,
            so a literal plus sign must be sent as ``%2B``.
        :param fields: Fields of the request. Insertion order is irrelevant.
        :param payload_hash: Hex encoded SHA-256 digest of the request body.
        """
        canonical_path = self._format_canonical_path(path=path)
        canonical_query = self._format_canonical_query(query=query)
        normalized_fields = self._normalize_signing_fields(fields=fields)
        canonical_fields = self._format_canonical_fields(fields=normalized_fields)
        request_string = "\n".join(
            (
                method.upper(),
                canonical_path,
                canonical_query,
                canonical_fields,
                "",
                ";".join(normalized_fields),
                payload_hash,
            )
        )
        return CanonicalRequestInfo(
            request_string=request_string,
            signed_header_names=tuple(normalized_fields),
        )

    def string_to_sign(
        self,
        *,
        canonical_request: str,
        date: str | None,
        scope: str,
    ) -> str:
        """The string to sign is the second step of our signing algorithm which
        concatenates the formal identifier of our signing algorithm, the signing
        DateTime, the scope of our credentials, and a hash of our previously generated
        canonical request.

        The SigV4 specification defines the string to sign as:
            Algorithm \n
            RequestDateTime \n
            CredentialScope  \n
            HashedCanonicalRequest
        """
        if date is None:
            raise MissingExpectedParameterException(
                "Cannot generate string_to_sign without a valid date. "
                f"Current value: {date}"
            )
        return (
            f"{SIGV4_ALGORITHM}\n"
            f"{date}\n"
            f"{scope}\n"
            f"{sha256_hex(canonical_request.encode())}"
        )

    def scope(self, *, short_date: str, region: str, service: str) -> str:
        # Scope format: <YYYYMMDD>/<AWS Region>/<AWS Service>/aws4_request
        return f"{short_date}/{region}/{service}/{SIGV4_SCOPE_TERMINATOR}"

    def _format_canonical_path(self, *, path: str | None) -> str:
        if path is None:
            path = "/"
        # S3 object keys are signed as-is: no dot segment removal and a
        # single round of encoding.
        return uri_encode(path, safe="/")

    def _format_canonical_query(self, *, query: str | None) -> str:
        if not query:
            return ""

        query_params = parse_qsl(qs=query, keep_blank_values=True)
        query_parts = (
            (uri_encode(key, safe=""), uri_encode(value, safe=""))
            for key, value in query_params
        )
        # key-value pairs must be in sorted order for their encoded forms.
        return "&".join(f"{key}={value}" for key, value in sorted(query_parts))

    def _normalize_signing_fields(self, *, fields: Fields) -> dict[str, str]:
        return {
            field.name.strip().lower(): field.as_string(delimiter=",")
            for field in fields.sorted_by_name()
            if field.name.strip().lower() not in self._unsigned_headers
        }

    def _normalize_host_field(self, *, uri: URI) -> str:
        if uri.port is not None and DEFAULT_PORTS.get(uri.scheme) == uri.port:
            uri_dict = uri.to_dict()
            uri_dict.update({"port": None})
            uri = URI(**uri_dict)
        return uri.netloc

    def _format_canonical_fields(self, *, fields: dict[str, str]) -> str:
        # Only leading and trailing whitespace is trimmed.
        return "\n".join(f"{key}:{value.strip()}" for key, value in fields.items())

    def _format_canonical_payload(self, *, request: AWSRequest) -> str:
        body = request.body

        if body is None:
            return EMPTY_SHA256_HASH

        if isinstance(body, (bytes, bytearray, memoryview)):
            return sha256_hex(bytes(body))

        if isinstance(body, str) or not isinstance(body, Iterable):
            raise InvalidRequestException(
                "Request bodies must be bytes or an iterable of bytes. "
                f"Received {type(body)}."
            )

        checksum = sha256()
        buffer = bytearray()
        for chunk in body:
            checksum.update(chunk)
            buffer.extend(chunk)
        request.body = bytes(buffer)
        return checksum.hexdigest()


def uri_encode(value: str, *, safe: str) -> str:
    """Percent-encode ``value`` as UTF-8, keeping unreserved characters and ``safe``."""
    try:
        return quote(string=value, safe=safe, errors="strict")
    except UnicodeEncodeError as e:
        raise InvalidRequestException(
            f"Unable to percent-encode {value!r} as UTF-8."
        ) from e
