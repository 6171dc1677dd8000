"""mwengine: asynchronous MediaWiki API client and bot framework.

Request orchestration with transparent ``badtoken`` / ``maxlag`` recovery,
continuation-based pagination, chunking of oversized multi-value queries,
and bounded-concurrency or throttled bulk processing.
"""

__version__ = "0.1.0"

from mwengine.bot import Bot, make_title, make_titles  # noqa: E402
from mwengine.bulk.scheduler import BatchResult, batch_operation, series_batch_operation  # noqa: E402
from mwengine.client.orchestrator import ApiClient  # noqa: E402
from mwengine.client.request_options import RequestOptions  # noqa: E402
from mwengine.config.settings import EngineSettings, get_settings  # noqa: E402
from mwengine.core.exceptions import (  # noqa: E402
    ApiConfigurationError,
    ApiError,
    InvalidResponseError,
    LoginError,
    MwEngineError,
    TokenError,
    TransportError,
    WorkerContractError,
)
from mwengine.core.logging_config import configure_logging  # noqa: E402
from mwengine.title import NamespaceTable, Title  # noqa: E402

__all__ = [
    "__version__",
    "ApiClient",
    "ApiConfigurationError",
    "ApiError",
    "BatchResult",
    "Bot",
    "EngineSettings",
    "InvalidResponseError",
    "LoginError",
    "MwEngineError",
    "NamespaceTable",
    "RequestOptions",
    "Title",
    "TokenError",
    "TransportError",
    "WorkerContractError",
    "batch_operation",
    "configure_logging",
    "get_settings",
    "make_title",
    "make_titles",
    "series_batch_operation",
]
