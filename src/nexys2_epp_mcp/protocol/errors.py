"""Exceptions raised by the register transaction engine.

A transaction fails at the first deviation from the expected exchange.
Each error records where that happened:

- ``step``: the transaction phase, 1-8 (probe, capability exchange,
  re-probe, mode set, command dispatch, payload, status poll, finalize)
- ``transfer``: position of the failing USB transfer within the
  transaction, 1-19
- ``reason``: ``"transfer"`` (the USB transfer itself failed),
  ``"length"`` (wrong number of bytes moved), ``"content"`` (bytes
  differed from the expected response), ``"ack"`` or ``"echo"`` (status
  frame ack byte or count echo did not match the command)
"""

from __future__ import annotations


class TransportError(IOError):
    """A USB transfer failed at the transport level (timeout, stall, disconnect)."""


class TransactionError(Exception):
    """Base class for register transaction failures."""

    phase = "transaction"

    def __init__(self, step: int, transfer: int, reason: str, detail: str = "") -> None:
        self.step = step
        self.transfer = transfer
        self.reason = reason
        self.detail = detail
        message = f"{self.phase} failed at step {step} (transfer {transfer}): {reason}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class ProbeMismatch(TransactionError):
    """A probe, capability or mode-set exchange (steps 1-4) did not match."""

    phase = "handshake"


class CommandAckFailure(TransactionError):
    """The command frame was not accepted (step 5)."""

    phase = "command dispatch"


class PayloadTransferShort(TransactionError):
    """The payload transfer moved a different number of bytes than requested (step 6)."""

    phase = "payload transfer"


class StatusMismatch(TransactionError):
    """The status frame did not acknowledge the transfer (step 7)."""

    phase = "status poll"


class FinalizeAckFailure(TransactionError):
    """The finalize exchange was not acknowledged (step 8)."""

    phase = "finalize"
