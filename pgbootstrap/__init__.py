"""Bootstrap and provision a local PostgreSQL instance."""

from .binaries import PgBinaries, locate_binaries
from .config import BackoffPolicy, BootstrapConfig
from .errors import BootstrapError, MissingBinariesError, ProvisioningError, ServerStartError
from .orchestrator import BootstrapOrchestrator, BootstrapResult, State
from .provision import Provisioner
from .server import PostgresServer

__all__ = [
    "BackoffPolicy",
    "BootstrapConfig",
    "BootstrapError",
    "BootstrapOrchestrator",
    "BootstrapResult",
    "MissingBinariesError",
    "PgBinaries",
    "PostgresServer",
    "Provisioner",
    "ProvisioningError",
    "ServerStartError",
    "State",
    "locate_binaries",
]
