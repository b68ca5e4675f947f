"""go_audit — structural analyzers for Go source trees."""

__all__ = [
    "__version__",
    "run_analyzer",
    "list_analyzers",
    "validate_instance",
    "AuditConfig",
    "load_config",
    "WalkSession",
]
__version__ = "0.1.0"

# Programmatic entrypoints, see go_audit.api.
from go_audit.api import list_analyzers, run_analyzer  # noqa: E402, F401
from go_audit.contracts.load import validate_instance  # noqa: E402, F401
from go_audit.core.config import AuditConfig, load_config  # noqa: E402, F401
from go_audit.core.walker import WalkSession  # noqa: E402, F401
