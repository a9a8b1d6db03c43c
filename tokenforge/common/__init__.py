"""公共模块"""

from .config import (
    LedgerConfig,
    ProvisioningConfig,
    Settings,
    StorageConfig,
    load_settings,
    load_yaml_config,
)
from .constants import LAMPORTS_PER_SOL, U64_MAX, FundingDefaults, TokenBounds
from .enums import ConfirmPrompt, Network, ProvisioningStep, StepAction
from .exceptions import (
    ConfigurationError,
    CorruptStateError,
    DataError,
    DataValidationError,
    FundingDeclinedError,
    IdentityError,
    InsufficientResourcesError,
    InvalidStateTransitionError,
    LedgerError,
    LedgerTimeoutError,
    NetworkError,
    ProvisioningError,
    RateLimitedError,
    RemoteRejectedError,
    StateLockedError,
    StateStoreError,
    StepFailedError,
    TokenForgeError,
    UnsupportedOnNetworkError,
)
from .logging import JSONFormatter, LoggerAdapter, get_logger, set_log_format
from .models import (
    NetworkTarget,
    ProvisioningParams,
    ProvisioningState,
    compute_issuance_quantity,
)
from .retry import retry_with_backoff
from .utils import format_sol, lamports_to_sol, utc_now, utc_stamp

__all__ = [
    # Config
    "LedgerConfig",
    "ProvisioningConfig",
    "Settings",
    "StorageConfig",
    "load_settings",
    "load_yaml_config",
    # Constants
    "LAMPORTS_PER_SOL",
    "U64_MAX",
    "FundingDefaults",
    "TokenBounds",
    # Enums
    "ConfirmPrompt",
    "Network",
    "ProvisioningStep",
    "StepAction",
    # Exceptions
    "ConfigurationError",
    "CorruptStateError",
    "DataError",
    "DataValidationError",
    "FundingDeclinedError",
    "IdentityError",
    "InsufficientResourcesError",
    "InvalidStateTransitionError",
    "LedgerError",
    "LedgerTimeoutError",
    "NetworkError",
    "ProvisioningError",
    "RateLimitedError",
    "RemoteRejectedError",
    "StateLockedError",
    "StateStoreError",
    "StepFailedError",
    "TokenForgeError",
    "UnsupportedOnNetworkError",
    # Logging
    "JSONFormatter",
    "LoggerAdapter",
    "get_logger",
    "set_log_format",
    # Models
    "NetworkTarget",
    "ProvisioningParams",
    "ProvisioningState",
    "compute_issuance_quantity",
    # Retry
    "retry_with_backoff",
    # Utils
    "format_sol",
    "lamports_to_sol",
    "utc_now",
    "utc_stamp",
]
