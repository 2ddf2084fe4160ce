"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0

S3 SigV4 provides stand-alone AWS Signature Version 4 signing of requests to
S3 bucket endpoints, for use with HTTP tools such as AioHTTP, Requests,
urllib3, etc.
"""

from __future__ import annotations

from ._http import URI, AWSRequest, Field, Fields
from ._identity import AWSCredentialIdentity
from ._version import __version__
from .s3 import S3RequestSigner, S3SigningContext, SignedRequest, sign_request
from .signers import (
    CanonicalRequestInfo,
    Configuration,
    SigV4Signer,
    SigV4SigningProperties,
)

__license__ = "Apache-2.0"
__version__ = __version__

__all__ = (
    "AWSCredentialIdentity",
    "AWSRequest",
    "CanonicalRequestInfo",
    "Configuration",
    "Field",
    "Fields",
    "S3RequestSigner",
    "S3SigningContext",
    "SigV4Signer",
    "SigV4SigningProperties",
    "SignedRequest",
    "URI",
    "sign_request",
)
