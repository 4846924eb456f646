from .config import AccessScope, LoggingConfig, RunConfig, load_config

from .errors import (
    ConfigError,
    DeadlineExceededError,
    ExecutionError,
    IdentityError,
    KetError,
    ProvisioningError,
    ResourceCreateError,
    ResourceDeleteError,
    RuleLoadError,
    RunCancelledError,
    StreamError,
    TestExecutionError,
    WorkloadExitError,
)

from .kube import ExecutionResult, WorkloadStatus

from .launcher import TestLauncher, launch

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("kubernetes-embedded-testing")

except PackageNotFoundError:
    __version__ = "v0.0.0"
