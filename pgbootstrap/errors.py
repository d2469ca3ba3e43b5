"""Exceptions raised when the instance cannot be bootstrapped."""

from __future__ import annotations

from typing import Optional, Sequence


class BootstrapError(RuntimeError):
    """Raised when bootstrapping fails."""


class MissingBinariesError(BootstrapError):
    """Raised when the PostgreSQL executables cannot be found on the host."""

    def __init__(self, missing: Sequence[str], searched: Sequence[str]) -> None:
        self.missing = list(missing)
        self.searched = list(searched)
        where = ", ".join(self.searched) or "(nowhere)"
        super().__init__(
            f"PostgreSQL binaries not found: {', '.join(self.missing)} (searched {where})"
        )


class ServerStartError(BootstrapError):
    """Raised when the server never became ready."""

    def __init__(self, message: str, *, returncode: Optional[int] = None) -> None:
        self.returncode = returncode
        if returncode is not None:
            message = f"{message} (server exited with status {returncode})"
        super().__init__(message)


class ProvisioningError(BootstrapError):
    """Raised when the database, role or grants cannot be applied."""


__all__ = ["BootstrapError", "MissingBinariesError", "ProvisioningError", "ServerStartError"]
