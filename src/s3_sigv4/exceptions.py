class AWSSDKWarning(UserWarning): ...


class BaseAWSSDKException(Exception):
    """Top-level exception to capture signing-related errors."""

    ...


class MissingExpectedParameterException(BaseAWSSDKException, ValueError):
    """A required signing property or credential field is absent or empty."""

    ...


class InvalidRequestException(BaseAWSSDKException, ValueError):
    """The request cannot be canonicalized: bad method, path, body or context."""

    ...
