"""
Provider Errors - Exception types raised by the cluster provider.

Every failure against the live cluster tool surfaces as one of these,
carrying enough context (stage, cause) for the caller to decide whether
to retry or abort. A cluster that no longer exists is not an error:
read operations return ``None`` for it.
"""

import re
from typing import List, Optional, Sequence

# Matches ANSI colour/cursor escape sequences emitted by the k3d CLI.
_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences from CLI output."""
    return _ANSI_RE.sub("", text or "")


class ProviderError(Exception):
    """Base class for all provider errors."""


class ValidationError(ProviderError):
    """The spec was rejected before any external call was made."""

    def __init__(self, problems: Sequence[str]):
        self.problems: List[str] = list(problems)
        super().__init__("; ".join(self.problems) or "invalid spec")


class CommandError(ProviderError):
    """An external command exited non-zero, timed out or could not start."""

    def __init__(
        self,
        argv: Sequence[str],
        returncode: Optional[int],
        output: str = "",
        timed_out: bool = False,
    ):
        self.argv = list(argv)
        self.returncode = returncode
        self.output = strip_ansi(output).strip()
        self.timed_out = timed_out

        if timed_out:
            reason = "timed out"
        elif returncode is None:
            reason = "could not be started"
        else:
            reason = f"exited with code {returncode}"
        message = f"'{' '.join(self.argv[:3])}' {reason}"
        if self.output:
            message += f": {self.output}"
        super().__init__(message)


class ProvisionError(ProviderError):
    """Create, update or delete failed against the live cluster."""

    def __init__(self, stage: str, cause: object):
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage} failed: {cause}")


class DriftReadError(ProviderError):
    """Reading live state failed for a reason other than absence."""

    def __init__(self, cause: object):
        self.cause = cause
        super().__init__(f"read failed: {cause}")


class StateFileError(ProviderError):
    """The local state file could not be parsed."""

    def __init__(self, path: object, cause: object):
        self.path = path
        self.cause = cause
        super().__init__(f"state file {path} is corrupt: {cause}")
