"""
Telegram Broadcaster

Fan-out delivery of a formatted signal message to subscriber chat IDs with
python-telegram-bot. The pipeline only produces the message payload;
delivery is run by the caller (cron runner, scripts).

Per-user failures never abort the broadcast. Each one is classified as:
- forbidden     → telegram.error.Forbidden (user blocked the bot)
- rate_limit    → telegram.error.RetryAfter
- invalid_user  → BadRequest 'Chat not found'
- unknown       → anything else
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from telegram import Bot, helpers
from telegram.constants import ParseMode
from telegram.error import BadRequest, Forbidden, RetryAfter, TelegramError

from signal_agent.exceptions import DeliveryConfigurationError, DeliveryError
from signal_agent.utils.config import TELEGRAM_API_URL, TELEGRAM_BOT_TOKEN, TELEGRAM_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


def escape_markdown(text: str) -> str:
    """
    Escape Telegram MarkdownV2 special characters.

    Example:
        >>> escape_markdown('SOL-USD 1.5%')
        'SOL\\\\-USD 1\\\\.5%'
    """
    return helpers.escape_markdown(text or '', version=2)


def classify_delivery_error(error: Exception) -> str:
    if isinstance(error, Forbidden):
        return "forbidden"
    if isinstance(error, RetryAfter):
        return "rate_limit"
    if isinstance(error, BadRequest) and "chat not found" in str(error).lower():
        return "invalid_user"
    return "unknown"


class TelegramBroadcaster:
    """Sends one message to many chats concurrently."""

    def __init__(
        self,
        bot_token: Optional[str] = None,
        api_url: str = TELEGRAM_API_URL,
        timeout: float = TELEGRAM_TIMEOUT_SECONDS,
        bot: Optional[Bot] = None,
    ):
        self.bot_token = bot_token if bot_token is not None else TELEGRAM_BOT_TOKEN
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        self._bot = bot

    def create_bot(self) -> Bot:
        if self._bot is not None:
            return self._bot
        return Bot(token=self.bot_token, base_url=f"{self.api_url}/bot")

    async def send_to_user(
        self,
        bot: Bot,
        user_id: str,
        message: str,
        parse_mode: str = ParseMode.MARKDOWN,
        disable_notification: bool = False,
    ) -> Dict[str, Any]:
        """
        Send to one chat. Never raises for delivery failures.

        Returns:
            {'user_id', 'success', 'message_id', 'error', 'error_type'}
        """
        try:
            sent = await bot.send_message(
                chat_id=user_id,
                text=message,
                parse_mode=parse_mode,
                disable_notification=disable_notification,
                read_timeout=self.timeout,
                write_timeout=self.timeout,
                connect_timeout=self.timeout,
            )
        except TelegramError as e:
            error_type = classify_delivery_error(e)
            description = e.message or e.__class__.__name__
            if isinstance(e, RetryAfter):
                description = f"{description} (retry after {e.retry_after})"
            logger.error(f"Failed to send message to user {user_id}: {description} ({error_type})")
            return {
                'user_id': user_id,
                'success': False,
                'message_id': None,
                'error': description,
                'error_type': error_type,
            }

        logger.debug(f"Message sent to user {user_id} (message_id={sent.message_id})")
        return {
            'user_id': user_id,
            'success': True,
            'message_id': sent.message_id,
            'error': None,
            'error_type': None,
        }

    async def send_message(
        self,
        user_ids: Sequence[str],
        message: str,
        parse_mode: str = ParseMode.MARKDOWN,
        disable_notification: bool = False,
    ) -> Dict[str, Any]:
        """
        Broadcast a message to every user in parallel.

        Args:
            user_ids: Telegram chat IDs
            message: Formatted message text
            parse_mode: 'Markdown', 'MarkdownV2' or 'HTML'
            disable_notification: Send silently

        Returns:
            BroadcastResult dict: total_users, success_count, failure_count,
            failed_users, results

        Raises:
            DeliveryError: If user_ids is empty
            DeliveryConfigurationError: If no bot token is configured or
                Telegram rejects it
        """
        if not user_ids:
            raise DeliveryError("No user IDs provided")
        if not self.bot_token and self._bot is None:
            raise DeliveryConfigurationError("Telegram bot not available - bot token not configured")

        bot = self.create_bot()
        try:
            await bot.initialize()
        except TelegramError as e:
            logger.error(f"Failed to initialize Telegram bot: {e}")
            raise DeliveryConfigurationError(f"Invalid bot token: {e}") from e

        try:
            results: List[Dict[str, Any]] = await asyncio.gather(*[
                self.send_to_user(bot, str(user_id), message, parse_mode, disable_notification)
                for user_id in user_ids
            ])
        finally:
            await bot.shutdown()

        failed_users = [r['user_id'] for r in results if not r['success']]
        broadcast = {
            'total_users': len(user_ids),
            'success_count': len(results) - len(failed_users),
            'failure_count': len(failed_users),
            'failed_users': failed_users,
            'results': results,
        }

        logger.info(
            f"Broadcast complete: {broadcast['success_count']}/{broadcast['total_users']} delivered, "
            f"{broadcast['failure_count']} failed"
        )
        return broadcast
