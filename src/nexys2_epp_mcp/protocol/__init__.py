"""Protocol layer: bridge constants, frame builders, errors, and the transaction engine."""

from .commands import Direction, Endpoint, VendorRequest
from .engine import Transport, read_register, write_register
from .errors import (
    TransactionError,
    TransportError,
    ProbeMismatch,
    CommandAckFailure,
    PayloadTransferShort,
    StatusMismatch,
    FinalizeAckFailure,
)
