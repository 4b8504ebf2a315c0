import asyncio
import logging

from telegram import Bot
from telegram.constants import ParseMode

from tech_job_ingest.formatter import JobFormatter
from tech_job_ingest.models import PersistedJob

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
INITIAL_BACKOFF = 2  # seconds


class TelegramNotifier:
    """
    Announces accepted jobs on a Telegram channel.

    Retries on transient errors (connection errors, timeouts, server errors)
    using exponential backoff.
    """

    def __init__(
        self,
        bot_token: str,
        channel_id: str,
        max_retries: int = MAX_RETRIES,
        initial_backoff: float = INITIAL_BACKOFF,
    ) -> None:
        self.bot = Bot(token=bot_token)
        self.channel_id = channel_id
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff

    @classmethod
    def from_config(cls) -> "TelegramNotifier | None":
        """A notifier for the configured channel, or None when Telegram is not configured."""
        from tech_job_ingest import config

        if not config.NOTIFICATIONS_ENABLED:
            logger.info("Telegram not configured, notifications disabled.")
            return None
        return cls(config.TELEGRAM_BOT_TOKEN, config.TELEGRAM_CHANNEL_ID)

    async def send_message(self, message: str) -> None:
        for attempt in range(1, self.max_retries + 1):
            try:
                await self.bot.send_message(
                    chat_id=self.channel_id,
                    text=message,
                    parse_mode=ParseMode.MARKDOWN_V2,
                )
                logger.info("Message sent successfully.")
                return
            except Exception as e:
                if attempt == self.max_retries:
                    logger.error(f"Failed to send message after {self.max_retries} attempts: {e}")
                    raise
                backoff = self.initial_backoff * (2 ** (attempt - 1))
                logger.warning(
                    f"Attempt {attempt}/{self.max_retries} failed: {e}. Retrying in {backoff}s..."
                )
                await asyncio.sleep(backoff)

    async def notify(self, job: PersistedJob) -> None:
        await self.send_message(JobFormatter.format_job(job))
