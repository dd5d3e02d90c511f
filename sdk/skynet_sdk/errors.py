"""
Error types for the Skynet SDK.

This module defines all exception types raised by the SDK:
- SkynetError: Base exception
- ValidationError: Malformed caller input or returned data
- PortalRequestError: Portal unreachable or the request failed in transit
- PortalRejectedError: Portal answered with an unexpected status
- ResponseError: Successful response missing expected fields
- SignatureInvalidError: Registry entry signature does not verify
- ProofError and subclasses: Registry proof chain failed validation
- RevisionOverflowError: Data key revision counter is exhausted
- MalformedEntryDataError / NotJSONError: Content of the wrong shape

Invariants:
    - All errors inherit from SkynetError
    - Errors include context for debugging
    - Not-found is never an error; lookups return None instead
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class SkynetError(Exception):
    """Base exception for all Skynet SDK errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "SKYNET_ERROR"
        self.details = details or {}


class ValidationError(SkynetError):
    """Caller input or returned data failed validation.

    Raised when:
    - A parameter has the wrong type or length
    - An options mapping contains an unexpected key
    - Entry data exceeds the maximum entry length

    Always raised before any network call for caller input.
    """

    def __init__(
        self,
        message: str,
        name: Optional[str] = None,
        code: str = "VALIDATION_ERROR",
    ) -> None:
        super().__init__(message, code=code, details={"name": name})
        self.name = name


class PortalRequestError(SkynetError):
    """Failed to reach the portal.

    Raised when:
    - Portal is unreachable
    - Connection or read times out
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="PORTAL_REQUEST_ERROR",
            details={"url": url},
        )
        self.url = url


class PortalRejectedError(SkynetError):
    """Portal answered with a non-success status.

    Raised when:
    - A registry write is rejected (e.g. stale revision)
    - A lookup or upload returns an unexpected status code

    Attributes:
        status: HTTP status code returned by the portal
        portal_message: Message extracted from the response body, if any
    """

    def __init__(
        self,
        message: str,
        status: int,
        portal_message: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="PORTAL_REJECTED",
            details={"status": status, "portal_message": portal_message},
        )
        self.status = status
        self.portal_message = portal_message


class ResponseError(SkynetError):
    """A successful portal response was incomplete or malformed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="RESPONSE_ERROR")


class SignatureInvalidError(SkynetError):
    """Signature of a retrieved registry entry does not verify.

    Possible corrupted entry or misbehaving portal. Never retried.
    """

    def __init__(
        self,
        message: str,
        public_key: Optional[str] = None,
        data_key: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="SIGNATURE_INVALID",
            details={"public_key": public_key, "data_key": data_key},
        )
        self.public_key = public_key
        self.data_key = data_key


class ProofError(SkynetError):
    """Registry proof returned by the portal failed validation.

    Attributes:
        input_skylink: Skylink the caller asked for
        data_link: Skylink the portal claims it resolved to
    """

    default_code = "PROOF_ERROR"

    def __init__(
        self,
        message: str,
        input_skylink: Optional[str] = None,
        data_link: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code=self.default_code,
            details={"input_skylink": input_skylink, "data_link": data_link},
        )
        self.input_skylink = input_skylink
        self.data_link = data_link


class ProofInvalidError(ProofError):
    """Proof chain is empty, broken, or carries a bad signature."""

    default_code = "PROOF_INVALID"


class ProofMismatchError(ProofError):
    """Returned skylink is inconsistent with the input skylink."""

    default_code = "PROOF_MISMATCH"


class UnexpectedProofError(ProofError):
    """A proof was returned for a direct content link."""

    default_code = "UNEXPECTED_PROOF"


class RevisionOverflowError(SkynetError):
    """Entry already has the maximum revision and cannot be updated.

    Terminal: the caller must use a new data key.
    """

    def __init__(self, message: str, revision: Optional[int] = None) -> None:
        super().__init__(
            message,
            code="REVISION_OVERFLOW",
            details={"revision": revision},
        )
        self.revision = revision


class MalformedEntryDataError(ValidationError):
    """Registry entry data is not a recognizable skylink encoding."""

    def __init__(self, message: str, length: Optional[int] = None) -> None:
        super().__init__(message, name="entry.data", code="MALFORMED_ENTRY_DATA")
        self.details["length"] = length
        self.length = length


class NotJSONError(SkynetError):
    """Downloaded content is not a JSON object."""

    def __init__(self, message: str, data_key: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="NOT_JSON",
            details={"data_key": data_key},
        )
        self.data_key = data_key
