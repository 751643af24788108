"""repoteer: keep a whole manifest of repositories cloned, pulled and pushed."""

# Guard against deleted CWD (e.g. directory removed by another process).
# rich crashes on import if os.getcwd() fails, so recover before any imports.
import os

try:
    os.getcwd()
except (OSError, PermissionError):
    os.chdir(os.path.expanduser("~"))

from ._version import __version__
from .cli import app
from .driver import (
    DecodeError,
    InvocationResult,
    SpawnError,
    SubprocessDriver,
    VcsDriver,
    VcsError,
    VcsOp,
)
from .engine import (
    ErrorKind,
    HighLevelOp,
    OperationEngine,
    PhaseResult,
    PhaseStatus,
    RepoOutcome,
    UnstagedChanges,
)
from .formatters import OutputFormatter
from .inspector import RepoInspector
from .manifest import (
    Manifest,
    ManifestError,
    ManifestMissing,
    ManifestParse,
    RepoRecord,
    Service,
    load_manifest,
)
from .runner import BatchReport, BatchSummary, run_operations

__all__ = [
    # Version
    "__version__",
    # CLI
    "app",
    # Models
    "BatchReport",
    "BatchSummary",
    "ErrorKind",
    "HighLevelOp",
    "InvocationResult",
    "Manifest",
    "PhaseResult",
    "PhaseStatus",
    "RepoOutcome",
    "RepoRecord",
    "Service",
    "VcsOp",
    # Errors
    "DecodeError",
    "ManifestError",
    "ManifestMissing",
    "ManifestParse",
    "SpawnError",
    "UnstagedChanges",
    "VcsError",
    # Operations
    "OperationEngine",
    "RepoInspector",
    "SubprocessDriver",
    "VcsDriver",
    # Functions
    "load_manifest",
    "run_operations",
    # Formatters
    "OutputFormatter",
]
