"""
External collaborators: Tavily search, Groq LLM and Telegram delivery.
"""

from signal_agent.clients.groq_client import GroqLLMClient
from signal_agent.clients.tavily_client import TavilySearchClient
from signal_agent.clients.telegram_client import TelegramBroadcaster, escape_markdown

__all__ = [
    'GroqLLMClient',
    'TavilySearchClient',
    'TelegramBroadcaster',
    'escape_markdown',
]
