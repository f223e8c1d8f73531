"""Telegram Bot API client on top of python-telegram-bot.

Every call is retried on network errors (3 attempts, 1s then 2s backoff,
30s per-attempt timeout). Bad requests and other API-level errors are not
retried and surface as :class:`TelegramAPIError`.

API documentation: https://core.telegram.org/bots/api
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, TypeVar

import telegram
from telegram import InlineKeyboardButton, InlineKeyboardMarkup, ReplyParameters
from telegram.error import BadRequest, NetworkError, TelegramError
from telegram.request import HTTPXRequest

from notebot.config import settings

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

RETRY_ATTEMPTS = 3
RETRY_BASE_DELAY = 1.0  # seconds
REQUEST_TIMEOUT = 30.0  # seconds

# Bot API limit on InlineKeyboardButton.callback_data, in bytes.
CALLBACK_DATA_MAX_BYTES = 64

T = TypeVar("T")


class TelegramConfigError(RuntimeError):
    """TELEGRAM_BOT_TOKEN is not configured."""


class TelegramAPIError(RuntimeError):
    """The Bot API rejected a request."""


def keyboard_button(text: str, callback_data: str) -> dict[str, str]:
    return {"text": text, "callback_data": callback_data}


def _markup(keyboard: list[list[dict[str, str]]]) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([
        [
            InlineKeyboardButton(text=btn["text"], callback_data=btn.get("callback_data"))
            for btn in row
        ]
        for row in keyboard
    ])


class TelegramClient:
    """Retrying wrapper around the ``telegram.Bot`` methods notebot uses.

    Args:
        token: Bot token (default from settings).
        bot: Prebuilt ``telegram.Bot``, e.g. a mock in tests.
        retry_base_delay: First backoff delay in seconds.
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        bot: telegram.Bot | None = None,
        retry_base_delay: float = RETRY_BASE_DELAY,
    ) -> None:
        self._token = token if token is not None else settings.telegram_bot_token
        self._bot = bot
        self._retry_base_delay = retry_base_delay

    @property
    def bot(self) -> telegram.Bot | None:
        """The underlying Bot, or None when no token is configured."""
        if self._bot is None and self._token:
            request = HTTPXRequest(
                connect_timeout=REQUEST_TIMEOUT,
                read_timeout=REQUEST_TIMEOUT,
                write_timeout=REQUEST_TIMEOUT,
            )
            self._bot = telegram.Bot(self._token, request=request)
        return self._bot

    def _require_bot(self) -> telegram.Bot:
        bot = self.bot
        if bot is None:
            raise TelegramConfigError("TELEGRAM_BOT_TOKEN environment variable not set")
        return bot

    async def close(self) -> None:
        if self._bot is not None:
            await self._bot.shutdown()
            self._bot = None

    async def _call(self, name: str, call: Callable[[], Awaitable[T]]) -> T:
        """Await *call*, retrying network failures with exponential backoff."""
        for attempt in range(1, RETRY_ATTEMPTS + 1):
            try:
                return await call()
            except BadRequest as exc:
                raise TelegramAPIError(f"Telegram {name} failed: {exc.message}") from exc
            except NetworkError as exc:
                if attempt == RETRY_ATTEMPTS:
                    raise
                delay = self._retry_base_delay * 2 ** (attempt - 1)
                logger.warning(
                    "Telegram %s attempt %d/%d failed (%s), retrying in %.1fs",
                    name,
                    attempt,
                    RETRY_ATTEMPTS,
                    exc,
                    delay,
                )
                await asyncio.sleep(delay)
            except TelegramError as exc:
                raise TelegramAPIError(f"Telegram {name} failed: {exc.message}") from exc
        raise AssertionError("unreachable")

    # -- API methods -----------------------------------------------------------

    async def send_message(
        self, chat_id: int, text: str, *, reply_to_message_id: int | None = None
    ) -> telegram.Message:
        bot = self._require_bot()
        kwargs: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if reply_to_message_id:
            kwargs["reply_parameters"] = ReplyParameters(message_id=reply_to_message_id)
        return await self._call("sendMessage", lambda: bot.send_message(**kwargs))

    async def send_message_with_keyboard(
        self, chat_id: int, text: str, keyboard: list[list[dict[str, str]]]
    ) -> telegram.Message:
        bot = self._require_bot()
        markup = _markup(keyboard)
        return await self._call(
            "sendMessage",
            lambda: bot.send_message(chat_id=chat_id, text=text, reply_markup=markup),
        )

    async def answer_callback_query(self, callback_query_id: str, text: str | None = None) -> None:
        bot = self._require_bot()
        await self._call(
            "answerCallbackQuery",
            lambda: bot.answer_callback_query(callback_query_id=callback_query_id, text=text),
        )

    async def edit_message_text(self, chat_id: int, message_id: int, text: str) -> None:
        bot = self._require_bot()
        await self._call(
            "editMessageText",
            lambda: bot.edit_message_text(text=text, chat_id=chat_id, message_id=message_id),
        )

    async def get_file(self, file_id: str) -> telegram.File:
        bot = self._require_bot()
        return await self._call("getFile", lambda: bot.get_file(file_id))

    async def download_file(self, file: telegram.File) -> bytes:
        content = await self._call("download", file.download_as_bytearray)
        return bytes(content)
