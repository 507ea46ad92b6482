"""
Specialized connection controllers.
"""

from .assist import AssistManager, AssistPrompt, ChatBubble, ContextProvider, ScreenContext
from .context_search import ContextSearchManager, SearchMethod
from .tags import TagClient, TagSource, TagUpdateManager

__all__ = [
    "AssistManager",
    "AssistPrompt",
    "ChatBubble",
    "ContextProvider",
    "ScreenContext",
    "ContextSearchManager",
    "SearchMethod",
    "TagClient",
    "TagSource",
    "TagUpdateManager",
]
