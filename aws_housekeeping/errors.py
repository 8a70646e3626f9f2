"""Classification of AWS client errors.

Every script decides what to do with a failed call by asking one of the
predicates below instead of matching on error text. The only text match
left is ``is_export_in_use``, which reads a CloudFormation stack event
reason that has no error code of its own.
"""
import re

from botocore.exceptions import BotoCoreError, ClientError

NOT_FOUND_CODES = {
    "404",
    "NoSuchBucket",
    "NotFound",
    "ResourceNotFoundException",
    "WAFNonexistentItemException",
}

MALFORMED_CODES = {"MalformedXML"}

THROTTLING_CODES = {
    "Throttling",
    "ThrottlingException",
    "ThrottledException",
    "SlowDown",
    "TooManyRequestsException",
    "RequestLimitExceeded",
}

# failures raised by the SDK itself (endpoint, waiter, parameter errors) next to service errors
AWS_ERRORS = (ClientError, BotoCoreError)

_CANNOT_DELETE_EXPORT = re.compile(r"Cannot delete export", re.IGNORECASE)
_IN_USE_BY = re.compile(r"in use by", re.IGNORECASE)


def error_code(error):
    """Return the AWS error code of a ClientError, or None for anything else."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code")
    return None


def error_message(error):
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Message", "") or ""
    return str(error)


def is_not_found(error):
    """True when the resource the call addressed does not exist (any more)."""
    code = error_code(error)
    if code in NOT_FOUND_CODES:
        return True
    # CloudFormation reports a missing stack as a generic validation error
    return code == "ValidationError" and "does not exist" in error_message(error)


def is_malformed_request(error):
    code = error_code(error)
    if code is not None:
        return code in MALFORMED_CODES
    return "MalformedXML" in str(error)


def is_throttling(error):
    return error_code(error) in THROTTLING_CODES


def is_export_in_use(reason):
    """True when a stack event reason says an export is still imported elsewhere."""
    if not reason:
        return False
    return bool(_CANNOT_DELETE_EXPORT.search(reason)) and bool(_IN_USE_BY.search(reason))
