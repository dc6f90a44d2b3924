import os
from typing import Any

_TRUE, _FALSE = {"True", "true", "yes", "1"}, {"False", "false", "no", "0"}


def _getenv(name: str, *default: Any) -> Any:
    try:
        v = os.environ[name]
        if v in _TRUE:
            return True
        elif v in _FALSE:
            return False
        else:
            return v
    except KeyError:
        pass
    if default:
        return default[0]
    raise KeyError(name)


# ------------------------------------------------
# ---- Defaults and environment variables ----
# ------------------------------------------------

#: Image used when the descriptor does not set one
SPLUNK_DEFAULT_IMAGE = str(_getenv("SPLUNK_DEFAULT_IMAGE", "splunk/splunk"))

#: Prefix of every resource name managed by the operator
PRODUCT_PREFIX = str(_getenv("PRODUCT_PREFIX", "splunk"))

#: Seconds to wait before retrying a pass that hit a transient error
DEFAULT_REQUEUE_SECONDS = float(_getenv("DEFAULT_REQUEUE_SECONDS", 5))

#: Poll interval used when the app framework config omits one
APPS_REPO_POLL_INTERVAL_SECONDS = int(_getenv("APPS_REPO_POLL_INTERVAL_SECONDS", 3600))

#: Upper bound for the app framework poll interval
MAX_APPS_REPO_POLL_INTERVAL_SECONDS = int(
    _getenv("MAX_APPS_REPO_POLL_INTERVAL_SECONDS", 86400)
)

#: Timeout for listing a single app source in remote storage
REMOTE_LISTING_TIMEOUT_SECONDS = float(_getenv("REMOTE_LISTING_TIMEOUT_SECONDS", 30.0))

#: Number of versioned secrets kept per descriptor
VERSIONED_SECRET_HISTORY = int(_getenv("VERSIONED_SECRET_HISTORY", 3))

#: Interval of the periodic reconciliation timer
RECONCILE_TIMER_INTERVAL_SECONDS = float(
    _getenv("RECONCILE_TIMER_INTERVAL_SECONDS", 30.0)
)


class Settings:
    """Operator settings"""

    default_image: str = SPLUNK_DEFAULT_IMAGE
    product_prefix: str = PRODUCT_PREFIX
    default_requeue_seconds: float = DEFAULT_REQUEUE_SECONDS
    apps_repo_poll_interval_seconds: int = APPS_REPO_POLL_INTERVAL_SECONDS
    max_apps_repo_poll_interval_seconds: int = MAX_APPS_REPO_POLL_INTERVAL_SECONDS
    remote_listing_timeout_seconds: float = REMOTE_LISTING_TIMEOUT_SECONDS
    versioned_secret_history: int = VERSIONED_SECRET_HISTORY
    reconcile_timer_interval_seconds: float = RECONCILE_TIMER_INTERVAL_SECONDS

    def __init__(
        self,
        *args,
        default_image: str = None,
        product_prefix: str = None,
        default_requeue_seconds: float = None,
        apps_repo_poll_interval_seconds: int = None,
        max_apps_repo_poll_interval_seconds: int = None,
        remote_listing_timeout_seconds: float = None,
        versioned_secret_history: int = None,
        reconcile_timer_interval_seconds: float = None,
        **kwargs,
    ):
        if default_image is not None:
            self.default_image = default_image

        if product_prefix is not None:
            self.product_prefix = product_prefix

        if default_requeue_seconds is not None:
            self.default_requeue_seconds = default_requeue_seconds

        if apps_repo_poll_interval_seconds is not None:
            self.apps_repo_poll_interval_seconds = apps_repo_poll_interval_seconds

        if max_apps_repo_poll_interval_seconds is not None:
            self.max_apps_repo_poll_interval_seconds = (
                max_apps_repo_poll_interval_seconds
            )

        if remote_listing_timeout_seconds is not None:
            self.remote_listing_timeout_seconds = remote_listing_timeout_seconds

        if versioned_secret_history is not None:
            self.versioned_secret_history = versioned_secret_history

        if reconcile_timer_interval_seconds is not None:
            self.reconcile_timer_interval_seconds = reconcile_timer_interval_seconds
