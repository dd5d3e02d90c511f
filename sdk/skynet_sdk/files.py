"""
Single-file upload and download for the Skynet SDK.

Only what SkyDB needs: upload one file and get a skylink back, and download
the content behind a skylink. Every download is checked against the
portal's skylink and proof headers before its content is returned.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from ._transport import PortalResponse, PortalTransport
from .errors import PortalRejectedError, ResponseError, ValidationError
from .models import FileContentResponse, UploadResponse
from .options import DOWNLOAD_OPTIONS, UPLOAD_OPTIONS, merge_options
from .proof import validate_registry_proof_response
from .skylink import format_skylink, parse_skylink, validate_skylink_string
from .validate import validate_bytes, validate_string

logger = logging.getLogger(__name__)


def _require_header(response: PortalResponse, name: str) -> str:
    value = response.headers.get(name)
    if not value:
        raise ResponseError(
            "File content response invalid despite a successful request. "
            f"'{name}' header missing"
        )
    return value


class FileClient:
    """Uploads and downloads single files through a portal."""

    def __init__(
        self,
        transport: PortalTransport,
        *,
        custom_options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._transport = transport
        self._custom_options = dict(custom_options or {})

    async def upload_file(
        self,
        data: bytes,
        filename: str,
        content_type: str = "application/octet-stream",
        custom_options: Optional[Mapping[str, Any]] = None,
    ) -> UploadResponse:
        """Upload one file.

        Args:
            data: File content
            filename: File name sent to the portal
            content_type: MIME type of the content
            custom_options: Per-call options (UPLOAD_OPTIONS keys)

        Returns:
            UploadResponse with the formatted skylink

        Raises:
            PortalRejectedError: If the portal does not accept the upload
            ResponseError: If the response carries no valid skylink
        """
        data = validate_bytes("data", data, "parameter")
        validate_string("filename", filename, "parameter")
        opts = merge_options(UPLOAD_OPTIONS, self._custom_options, custom_options)
        filename = opts["custom_filename"] or filename

        response = await self._transport.execute_request(
            "POST",
            opts["endpoint_upload"],
            options=opts,
            files={"file": (filename, data, content_type)},
        )
        if not response.ok:
            raise PortalRejectedError(
                f"Upload of '{filename}' failed with status code {response.status}",
                status=response.status,
                portal_message=response.error_message(),
            )

        body = response.json()
        try:
            skylink = validate_skylink_string(
                "response.skylink",
                body.get("skylink") if isinstance(body, dict) else None,
                "upload response field",
            )
        except ValidationError as e:
            raise ResponseError(
                f"Did not get a complete upload response despite a successful request: {e}"
            ) from e

        logger.debug("Uploaded %d bytes as %r -> %s", len(data), filename, skylink)
        return UploadResponse(skylink=format_skylink(skylink))

    async def get_file_content(
        self,
        skylink_url: str,
        custom_options: Optional[Mapping[str, Any]] = None,
    ) -> FileContentResponse:
        """Download the content at a skylink and verify what was served.

        Args:
            skylink_url: Skylink, "sia://" skylink, or portal URL, optionally with a path
            custom_options: Per-call options (DOWNLOAD_OPTIONS keys)

        Returns:
            FileContentResponse with the raw body and portal headers

        Raises:
            ValidationError: If skylink_url holds no skylink
            PortalRejectedError: If the portal returns a non-success status
            ResponseError: If required headers are missing
            ProofError: If the served skylink or its proof do not check out
        """
        input_skylink = validate_skylink_string("skylink_url", skylink_url, "parameter")
        path = parse_skylink(skylink_url, only_path=True) or ""
        opts = merge_options(DOWNLOAD_OPTIONS, self._custom_options, custom_options)

        headers = {"Range": opts["range"]} if opts["range"] else None
        endpoint_path = f"{opts['endpoint_download'].rstrip('/')}/{input_skylink}{path}"
        response = await self._transport.execute_request(
            "GET",
            endpoint_path,
            options=opts,
            headers=headers,
        )
        if not response.ok:
            raise PortalRejectedError(
                f"Download of {input_skylink} failed with status code {response.status}",
                status=response.status,
                portal_message=response.error_message(),
            )

        content_type = _require_header(response, "content-type")
        portal_url = _require_header(response, "skynet-portal-api")
        try:
            served_skylink = validate_skylink_string(
                "skynet-skylink",
                _require_header(response, "skynet-skylink"),
                "response header",
            )
        except ValidationError as e:
            raise ResponseError(
                f"File content response invalid despite a successful request. {e}"
            ) from e

        validate_registry_proof_response(
            input_skylink,
            served_skylink,
            response.headers.get("skynet-proof"),
        )

        return FileContentResponse(
            data=response.content,
            content_type=content_type,
            portal_url=portal_url,
            skylink=format_skylink(served_skylink),
        )
