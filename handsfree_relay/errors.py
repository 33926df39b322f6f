# Copyright (C) 2024 HandsfreeClaw Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Error taxonomy shared by the HTTP API and the relay.

Every error carries a machine-readable ``kind`` so clients can tell, for
example, a mistyped code (``invalid_code``) from one that needs resending
(``code_expired``). ``main`` maps these to JSON responses.
"""


class RelayError(Exception):
    """Base class for errors surfaced to clients."""

    kind = "server_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidInput(RelayError):
    """Malformed request body or parameters (400)."""

    kind = "invalid_input"
    status_code = 400


class InvalidCode(RelayError):
    """No unused verification code matches (400)."""

    kind = "invalid_code"
    status_code = 400

    def __init__(self, message: str = "Invalid code") -> None:
        super().__init__(message)


class CodeExpired(RelayError):
    """The matching verification code is past its expiry (400)."""

    kind = "code_expired"
    status_code = 400

    def __init__(self, message: str = "Code expired") -> None:
        super().__init__(message)


class Unauthorized(RelayError):
    """Missing, unknown or expired bearer credential (401)."""

    kind = "unauthorized"
    status_code = 401

    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


class NotFound(RelayError):
    """Resource absent or owned by someone else (404).

    Both cases produce the same response so ownership is never revealed.
    """

    kind = "not_found"
    status_code = 404

    def __init__(self, resource: str = "Resource") -> None:
        super().__init__(f"{resource} not found")


class DeliveryFailed(RelayError):
    """The notifier could not deliver a verification code (502)."""

    kind = "delivery_failed"
    status_code = 502

    def __init__(self, message: str = "Could not deliver verification code") -> None:
        super().__init__(message)


class AdmissionRejected(RelayError):
    """A relay connection attempt was refused. Closes the socket with ``close_code``.

    Only raised during WebSocket admission; never rendered as an HTTP response.
    """

    kind = "admission_rejected"

    def __init__(self, close_code: int, reason: str) -> None:
        self.close_code = close_code
        self.reason = reason
        super().__init__(reason)


class RelayDropped(RelayError):
    """A relay message was discarded. Logged only, never sent to a client."""

    kind = "relay_dropped"
