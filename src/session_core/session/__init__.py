from session_core.session.history import (
    ConversationHistory,
    get_conversation_history,
    reset_conversation_history,
)
from session_core.session.models import Message, Session, ToolCall, ToolResult
from session_core.session.persistence import (
    SessionLookup,
    SessionStore,
    format_session_summary,
    generate_session_id,
    restore_history,
)

__all__ = [
    "ConversationHistory",
    "Message",
    "Session",
    "SessionLookup",
    "SessionStore",
    "ToolCall",
    "ToolResult",
    "format_session_summary",
    "generate_session_id",
    "get_conversation_history",
    "reset_conversation_history",
    "restore_history",
]
