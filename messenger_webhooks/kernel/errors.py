from __future__ import annotations

import re
from typing import Any


# Dot-separated lowercase tokens, e.g. "signature.invalid"
_ERROR_CODE_RE = re.compile(r"^[a-z][a-z0-9_]*(\.[a-z][a-z0-9_]*)*$")


class WebhookError(Exception):
    """Base typed error for the webhook service.

    - `code` is stable, so clients and tests can tell failure classes apart.
    - `message` is human-readable and ends up in the response `detail`.
    - `meta` is optional, safe-to-expose debugging context.
    """

    def __init__(
        self,
        *,
        code: str,
        message: str,
        status_code: int = 500,
        meta: dict[str, Any] | None = None,
    ) -> None:
        if not _ERROR_CODE_RE.fullmatch(code):
            raise ValueError(f"Invalid error code {code!r}: expected dot-separated lowercase tokens")
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = int(status_code)
        self.meta = dict(meta or {})

    def to_public_dict(self, *, request_id: str | None) -> dict[str, Any]:
        payload: dict[str, Any] = {"detail": self.message, "code": self.code}
        if request_id:
            payload["request_id"] = request_id
        if self.meta:
            payload["meta"] = self.meta
        return payload


class _RequestError(WebhookError):
    """A WebhookError whose status, code and message are fixed per subclass."""

    status_code_default = 400
    code_default = "request.invalid"
    message_default = "Invalid request"

    def __init__(
        self,
        *,
        message: str | None = None,
        code: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            code=code or self.code_default,
            message=message or self.message_default,
            status_code=self.status_code_default,
            meta=meta,
        )


class MissingSignatureError(_RequestError):
    status_code_default = 400
    code_default = "signature.missing"
    message_default = "Missing signature header"


class InvalidSignatureError(_RequestError):
    status_code_default = 403
    code_default = "signature.invalid"
    message_default = "Invalid signature"


class MalformedBodyError(_RequestError):
    status_code_default = 400
    code_default = "request.malformed_body"
    message_default = "Invalid webhook data"


class VerificationFailedError(_RequestError):
    status_code_default = 403
    code_default = "webhook.verification_failed"
    message_default = "Verification failed"


class NotFoundError(_RequestError):
    status_code_default = 404
    code_default = "resource.not_found"
    message_default = "Not found"
