"""contextprune: dynamic pruning of stale tool outputs from LLM requests."""

__version__ = "0.1.0"

# Public API
from contextprune.config import Config, LoadedConfig, get_config, load_config
from contextprune.core import LiteLLMProvider, LLMProvider, Message, Role
from contextprune.formats import (
    PRUNED_CONTENT_MESSAGE,
    ApiFormat,
    FormatAdapter,
    ToolOutput,
    detect_format,
)
from contextprune.host import (
    LoggingNotifier,
    Notification,
    Notifier,
    SessionAccessor,
    SessionInfo,
)
from contextprune.plugin import ContextPruner
from contextprune.pruning import (
    HandlerResult,
    Janitor,
    PruneTool,
    PruneToolResult,
    PruningResult,
    RequestHandler,
)
from contextprune.state import IdRegistry, SessionState, StateStorage, StateStore
from contextprune.strategies import DeduplicationStrategy, run_strategies
from contextprune.transport import PruningTransport, RequestRewriter, RewriteResult

__all__ = [
    # Main entry point
    "ContextPruner",
    # Interception
    "PruningTransport",
    "RequestRewriter",
    "RewriteResult",
    # Config
    "Config",
    "LoadedConfig",
    "get_config",
    "load_config",
    # Host collaborators
    "LoggingNotifier",
    "Notification",
    "Notifier",
    "SessionAccessor",
    "SessionInfo",
    # Formats
    "PRUNED_CONTENT_MESSAGE",
    "ApiFormat",
    "FormatAdapter",
    "ToolOutput",
    "detect_format",
    # Pipeline
    "HandlerResult",
    "Janitor",
    "PruneTool",
    "PruneToolResult",
    "PruningResult",
    "RequestHandler",
    # State
    "IdRegistry",
    "SessionState",
    "StateStorage",
    "StateStore",
    # Strategies
    "DeduplicationStrategy",
    "run_strategies",
    # LLM
    "LLMProvider",
    "LiteLLMProvider",
    "Message",
    "Role",
]
