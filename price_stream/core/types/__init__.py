from price_stream.core.types._common_types import (
    JSONRPC_VERSION,
    Address,
    ConnectionStatus,
    FeedType,
    MessageHandler,
    Remover,
    RpcMethod,
    StatusHandler,
    SubscribeParams,
    connection_status_format,
)
from price_stream.core.types._exception_types import (
    ErrorCategory,
    ErrorCode,
    ErrorDomain,
    ExceptionGroup,
    RuleKind,
)

__all__ = [
    # _common_types
    "JSONRPC_VERSION",
    "Address",
    "SubscribeParams",
    "RpcMethod",
    "ConnectionStatus",
    "connection_status_format",
    "FeedType",
    "MessageHandler",
    "StatusHandler",
    "Remover",
    # _exception_types
    "ErrorDomain",
    "ErrorCode",
    "ErrorCategory",
    "ExceptionGroup",
    "RuleKind",
]
