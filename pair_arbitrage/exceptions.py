"""
Exception hierarchy for the pair arbitrage system.

Startup errors (configuration, token validation) abort the process. Every
other error type is cycle-local: the cycle controller catches it, logs it and
returns to idle.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Per-cycle error categories carried by ExecutionResult and cycle reports."""

    QUOTE_UNAVAILABLE = "quote_unavailable"
    SUBMISSION_ERROR = "submission_error"
    EXECUTION_REVERTED = "execution_reverted"
    EXECUTION_TIMEOUT = "execution_timeout"
    UNEXPECTED = "unexpected"


class PairArbitrageError(Exception):
    """Base exception for all pair arbitrage related errors."""

    kind: Optional[ErrorKind] = None

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(PairArbitrageError):
    """Raised when environment or file configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.key = key


class ValidationError(PairArbitrageError):
    """Raised when a token descriptor supplied at startup is invalid."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        descriptor: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.field = field
        self.descriptor = descriptor


class QuoteUnavailable(PairArbitrageError):
    """Raised when a venue's reserves cannot be read for this cycle."""

    kind = ErrorKind.QUOTE_UNAVAILABLE

    def __init__(
        self,
        message: str,
        venue: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.venue = venue


class SubmissionError(PairArbitrageError):
    """Raised when a transaction could not be built, signed or sent."""

    kind = ErrorKind.SUBMISSION_ERROR


class ExecutionReverted(PairArbitrageError):
    """Raised when the flash swap reverts. Funds are untouched."""

    kind = ErrorKind.EXECUTION_REVERTED

    def __init__(
        self,
        message: str,
        tx_hash: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.tx_hash = tx_hash


class ExecutionTimeout(PairArbitrageError):
    """
    Raised when no receipt is observed within the confirmation deadline.

    The outcome is unknown: the transaction may still be mined later, so it
    must be reconciled before another trade is submitted.
    """

    kind = ErrorKind.EXECUTION_TIMEOUT

    def __init__(
        self,
        message: str,
        tx_hash: Optional[str] = None,
        timeout_sec: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.tx_hash = tx_hash
        self.timeout_sec = timeout_sec
