from .clients.auth import AccessToken, BearerTokenAuth, StaticTokenCredential
from .clients.envelope import Page, Response, ResponseEnvelope
from .clients.operation import OperationSpec, PagingSpec, StatusAction
from .clients.pager import AsyncPager, Pager
from .clients.service_client import ServiceClient
from .config.settings import ClientSettings, RetrySettings
from .helpers.cancellation import CancellationToken
from .helpers.retry import RetryConfig, RetryPolicy
from .version import __version__

__all__ = [
    "AccessToken",
    "AsyncPager",
    "BearerTokenAuth",
    "CancellationToken",
    "ClientSettings",
    "OperationSpec",
    "Page",
    "Pager",
    "PagingSpec",
    "Response",
    "ResponseEnvelope",
    "RetryConfig",
    "RetryPolicy",
    "RetrySettings",
    "ServiceClient",
    "StaticTokenCredential",
    "StatusAction",
    "__version__",
]
