"""Cross-browser login checks run on Sauce Labs, with job status reporting."""

from .capabilities import Capability, MatrixEntry
from .config import HarnessConfig, load_config
from .credentials import Credentials, load_credentials
from .reporter import ResultReporter
from .runner import InstanceResult, TestInstance, expand, run_instance, run_matrix
from .session import RemoteSession, watch_session

__all__ = [
    "Capability",
    "Credentials",
    "HarnessConfig",
    "InstanceResult",
    "MatrixEntry",
    "RemoteSession",
    "ResultReporter",
    "TestInstance",
    "expand",
    "load_config",
    "load_credentials",
    "run_instance",
    "run_matrix",
    "watch_session",
]
