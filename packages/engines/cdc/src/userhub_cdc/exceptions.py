"""CDC engine exceptions."""

from __future__ import annotations

from userhub_core.primitives.exceptions import HandlerError


class CdcError(HandlerError):
    """Base for change-data-capture errors."""


class DecodeError(CdcError):
    """Raised when a raw message is not a well-formed change envelope."""


class EmptyMessageError(DecodeError):
    """Raised for null or empty message values (log-compaction tombstones)."""


class ApplyError(CdcError):
    """Raised when a projector cannot apply a change event."""


class TransientApplyError(ApplyError):
    """The read store could not be reached; the same event may succeed later."""


class FormatApplyError(ApplyError):
    """The event carries values the projection cannot represent."""


class FatalSetupError(CdcError):
    """Raised when the consumer cannot connect or subscribe."""
