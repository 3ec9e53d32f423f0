"""Entry point — run the tgflow demo bot with long polling."""

import asyncio

from config import BASE_URL, BOT_TOKEN, REQUEST_TIMEOUT
from core.logger import TgflowLogger
from bot.engine import BotEngine
from bot.handlers import register_handlers
from sdk.client import TelegramClient

logger = TgflowLogger.get_logger()


def build_engine() -> BotEngine:
    """Build the demo engine from :mod:`config`.

    Raises:
        EnvironmentError: If ``BOT_TOKEN`` is not set.
    """
    if not BOT_TOKEN:
        raise EnvironmentError("BOT_TOKEN environment variable is not set or is empty.")
    engine = BotEngine.from_config(TelegramClient(BASE_URL, timeout=REQUEST_TIMEOUT))
    register_handlers(engine)
    return engine


def main() -> None:
    engine = build_engine()
    try:
        asyncio.run(engine.run())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
