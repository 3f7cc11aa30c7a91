# Errors.py
# Error taxonomy shared by the host (registry + API) and the client side.


class NetworkError(Exception):
    """Base class for every error raised by the device network modules."""

    status_code = 400


class ValidationError(NetworkError):
    """A required field is missing or has an unsupported value."""


class InvalidOperation(NetworkError):
    """Attempt to remove or disable a permanent device."""


class UnknownDevice(NetworkError):
    status_code = 404


class ChannelError(NetworkError):
    """Malformed inbound payload or transport failure on the live channel."""


class CascadeBranchFailure(NetworkError):
    """A registration call inside a cascade failed; only that branch aborts."""

    def __init__(self, node_id: str, detail: str):
        super().__init__(f"{node_id}: {detail}")
        self.node_id = node_id
        self.detail = detail
