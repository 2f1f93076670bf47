# =============================================================================
# Telegram Channel
# =============================================================================
# Sends text alerts through the Telegram Bot API.
#
# One call = one POST to /bot<token>/sendMessage. A send only counts as
# delivered when Telegram answers with "ok": true; anything else (network
# error, timeout, HTTP error, ok=false, unreadable body) raises ChannelError.
#
# Uses httpx for async HTTP.
# =============================================================================

import logging

import httpx

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE_URL = "https://api.telegram.org"

# Characters with meaning in Telegram's legacy Markdown mode
MARKDOWN_SPECIAL_CHARS = ("\\", "_", "*", "`", "[")


def escape_markdown(text: str) -> str:
    """
    Escape text for Telegram's legacy Markdown parse mode.

    Example:
        >>> escape_markdown("win_big *now*")
        'win\\\\_big \\\\*now\\\\*'
    """
    for char in MARKDOWN_SPECIAL_CHARS:
        text = text.replace(char, f"\\{char}")
    return text


class TelegramChannel:
    """
    Async Telegram Bot API sender.

    Usage:
        >>> channel = TelegramChannel(bot_token, chat_id)
        >>> await channel.send("*Spam Detected*")
        >>> await channel.close()

    Attributes:
        chat_id: Chat that receives the messages.
    """

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the channel.

        Args:
            bot_token: Telegram bot token.
            chat_id: Destination chat ID.
            timeout: HTTP timeout in seconds.
            client: HTTP client to use. Creates one if None.

        Raises:
            ChannelError: If the token or chat ID is missing.
        """
        if not bot_token or not chat_id:
            raise ChannelError("Telegram bot token and chat ID are required")

        self.chat_id = chat_id
        self._client = client or httpx.AsyncClient(
            base_url=f"{TELEGRAM_API_BASE_URL}/bot{bot_token}",
            timeout=httpx.Timeout(timeout),
        )
        self._owns_client = client is None

    async def close(self) -> None:
        """Close the underlying HTTP client (if we created it)."""
        if self._owns_client:
            await self._client.aclose()

    async def send(self, text: str, parse_mode: str = "Markdown") -> None:
        """
        Send a message to the configured chat.

        Args:
            text: Message text.
            parse_mode: Telegram parse mode.

        Raises:
            ChannelError: If Telegram did not accept the message.
        """
        try:
            response = await self._client.post(
                "/sendMessage",
                json={
                    "chat_id": self.chat_id,
                    "text": text,
                    "parse_mode": parse_mode,
                    "disable_web_page_preview": True,
                },
            )
        except httpx.TimeoutException as e:
            raise ChannelError(f"Telegram request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ChannelError(f"Telegram request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise ChannelError(
                f"Unreadable Telegram response (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from e

        if not isinstance(data, dict) or not data.get("ok"):
            description = data.get("description") if isinstance(data, dict) else None
            raise ChannelError(
                f"Telegram API error: {description or 'unknown error'}",
                status_code=response.status_code,
            )

        logger.debug(f"Telegram message delivered to chat {self.chat_id}")


# =============================================================================
# Exceptions
# =============================================================================

class NotificationError(Exception):
    """Base exception for notification delivery."""
    pass


class ChannelError(NotificationError):
    """Raised when a channel fails to deliver a message."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
