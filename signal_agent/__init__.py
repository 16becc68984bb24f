"""
Crypto Signal Agent

LangGraph pipeline that filters technical indicators, gathers web evidence,
asks an LLM for a trading decision and formats a Telegram signal.
"""

__version__ = "0.1.0"
