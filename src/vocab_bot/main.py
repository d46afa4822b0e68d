import asyncio
import logging
from pathlib import Path

from telegram import Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes
)

from . import config
from .database.db_manager import DatabaseManager
from .handlers.review_handler import ReviewHandler
from .review.session import ReviewSession
from .utils.rate_limiter import RateLimiter
from .utils.vocabulary_loader import VocabularyLoader

logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, config.LOG_LEVEL, logging.INFO)
)
logger = logging.getLogger(__name__)


class VocabularyBot:
    """
    Spaced-repetition vocabulary bot.

    - SQLite storage behind an aiosqlite connection pool
    - Word lists loaded once at start-up and shared read-only
    - Per-user rate limiting in front of every handler
    - Concurrent update processing; each user's turns stay sequential
    """

    def __init__(self):
        self.token = config.TELEGRAM_BOT_TOKEN
        if not self.token:
            raise ValueError("TELEGRAM_BOT_TOKEN not found in environment variables")

        self.db_manager = DatabaseManager(
            db_path=config.DATABASE['path'],
            pool_size=config.DATABASE['pool_size'],
            cache_size=config.DATABASE['cache_size'],
        )
        self.vocabulary_loader = VocabularyLoader(Path(config.VOCABULARY_DIR), config.LANGUAGES)
        self.rate_limiter = RateLimiter(
            rate=config.RATE_LIMIT['requests_per_minute'],
            window=config.RATE_LIMIT['window'],
            burst=config.RATE_LIMIT['burst_capacity'],
            cleanup_interval=config.RATE_LIMIT['cleanup_interval'],
        )

        self.review_handler = None
        self.application = None

    async def initialize(self):
        await self.db_manager.connect()
        logger.info("Database pool connected and initialized")

        vocabulary = await self.vocabulary_loader.load()

        await self.rate_limiter.start()
        logger.info("Rate limiter started")

        session = ReviewSession(self.db_manager, self.db_manager, vocabulary)
        self.review_handler = ReviewHandler(session, self.db_manager, vocabulary.languages)

    async def shutdown(self):
        logger.info("Shutting down bot...")

        await self.rate_limiter.stop()
        await self.db_manager.close()
        logger.info("Cleanup completed")

    def rate_limited_handler(self, handler):
        """Wrapper to add rate limiting to handlers"""
        async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE):
            user_id = update.effective_user.id

            if not await self.rate_limiter.check_rate_limit(user_id):
                message = "⚠️ Rate limit exceeded. Please wait a moment."
                if update.callback_query:
                    await update.callback_query.answer(message)
                elif update.effective_message:
                    await update.effective_message.reply_text(message)
                return

            await handler(update, context)

        return wrapper

    async def error_handler(self, update: object, context: ContextTypes.DEFAULT_TYPE):
        logger.error("Exception while handling an update", exc_info=context.error)

        if isinstance(update, Update):
            await self.review_handler.notify_error(update)

    def setup_handlers(self):
        commands = {
            "start": self.review_handler.handle_start,
            "help": self.review_handler.handle_help,
            "language": self.review_handler.handle_language,
            "review": self.review_handler.handle_review,
            "view": self.review_handler.handle_view,
        }
        for name, callback in commands.items():
            self.application.add_handler(CommandHandler(name, self.rate_limited_handler(callback)))

        self.application.add_handler(
            CallbackQueryHandler(self.rate_limited_handler(self.review_handler.handle_callback))
        )

        self.application.add_error_handler(self.error_handler)

    async def run(self):
        await self.initialize()

        self.application = (
            Application.builder()
            .token(self.token)
            .concurrent_updates(config.TELEGRAM['concurrent_updates'])
            .pool_timeout(config.TELEGRAM['pool_timeout'])
            .connection_pool_size(config.TELEGRAM['connection_pool_size'])
            .build()
        )

        self.setup_handlers()

        await self.application.initialize()
        await self.application.start()

        logger.info("Bot started. Press Ctrl+C to stop.")
        logger.info(f"- Languages: {', '.join(self.review_handler.languages) or 'none'}")
        logger.info(f"- Database: {config.DATABASE['path']} (pool size {config.DATABASE['pool_size']})")
        logger.info(f"- Rate limit: {config.RATE_LIMIT['requests_per_minute']} requests/minute per user")

        await self.application.updater.start_polling(allowed_updates=Update.ALL_TYPES)

        try:
            while True:
                await asyncio.sleep(1)
        except (KeyboardInterrupt, asyncio.CancelledError):
            logger.info("Stopping bot...")
        finally:
            await self.application.updater.stop()
            await self.application.stop()
            await self.application.shutdown()
            await self.shutdown()


async def main():
    bot = VocabularyBot()
    await bot.run()


def run():
    if config.PERFORMANCE['use_uvloop']:
        import uvloop
        uvloop.install()
        logger.info("Using uvloop for better performance")

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == '__main__':
    run()
