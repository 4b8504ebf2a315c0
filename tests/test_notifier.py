from unittest.mock import AsyncMock, patch

import pytest
from telegram.constants import ParseMode

from tech_job_ingest import config
from tech_job_ingest.models import PersistedJob
from tech_job_ingest.notifier import TelegramNotifier


@pytest.fixture
def mock_bot():
    with patch("tech_job_ingest.notifier.Bot") as mock_bot_class:
        mock_bot_instance = AsyncMock()
        mock_bot_class.return_value = mock_bot_instance
        yield mock_bot_class, mock_bot_instance


@pytest.mark.asyncio
async def test_send_message_success(mock_bot):
    """Test that send_message posts to the channel using MarkdownV2."""
    mock_bot_class, mock_bot_instance = mock_bot

    notifier = TelegramNotifier("token", "@channel")
    await notifier.send_message("Test job posting")

    mock_bot_class.assert_called_once_with(token="token")
    mock_bot_instance.send_message.assert_awaited_once_with(
        chat_id="@channel",
        text="Test job posting",
        parse_mode=ParseMode.MARKDOWN_V2,
    )


@pytest.mark.asyncio
async def test_send_message_failure_after_retries(mock_bot):
    """Test that send_message raises after all retries are exhausted."""
    _, mock_bot_instance = mock_bot
    mock_bot_instance.send_message.side_effect = Exception("Telegram API Error")

    notifier = TelegramNotifier("token", "@channel", max_retries=3, initial_backoff=0)
    with patch("tech_job_ingest.notifier.asyncio.sleep", new_callable=AsyncMock):
        with pytest.raises(Exception, match="Telegram API Error"):
            await notifier.send_message("Test job posting")

    assert mock_bot_instance.send_message.await_count == 3


@pytest.mark.asyncio
async def test_send_message_exponential_backoff(mock_bot):
    """Test that retry backoff doubles on every attempt."""
    _, mock_bot_instance = mock_bot
    mock_bot_instance.send_message.side_effect = [
        Exception("Timeout"),
        Exception("Timeout"),
        None,
    ]

    notifier = TelegramNotifier("token", "@channel", max_retries=3, initial_backoff=2)
    with patch("tech_job_ingest.notifier.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        await notifier.send_message("Test job posting")

    assert [call.args[0] for call in mock_sleep.await_args_list] == [2, 4]


@pytest.mark.asyncio
async def test_notify_sends_formatted_job(mock_bot, enriched_job):
    _, mock_bot_instance = mock_bot
    job = PersistedJob(**enriched_job.model_dump(exclude={"category"}), id=1, final_score=0.9, category="ENGINEERING")

    await TelegramNotifier("token", "@channel").notify(job)

    text = mock_bot_instance.send_message.await_args.kwargs["text"]
    assert "*Title:* Senior Software Engineer" in text


def test_from_config_uses_environment(mock_bot):
    notifier = TelegramNotifier.from_config()

    assert notifier is not None
    assert notifier.channel_id == "test_channel_id"


def test_from_config_disabled_without_token(mock_bot, monkeypatch):
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)

    with patch.object(config, "_cfg", config._Config()):
        assert TelegramNotifier.from_config() is None
