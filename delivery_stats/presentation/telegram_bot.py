# delivery_stats/presentation/telegram_bot.py
import asyncio
import logging
from telegram.ext import Application, CommandHandler, CallbackQueryHandler

from ..infrastructure.telegram.bot_handlers import TelegramBotHandlers

logger = logging.getLogger(__name__)


class TelegramBotApplication:
    """Manages the Telegram dashboard bot setup and execution."""

    def __init__(self, token: str, handlers: TelegramBotHandlers):
        if not token:
            raise ValueError("Telegram bot token is required.")
        self.token = token
        self.handlers = handlers
        self.application = Application.builder().token(self.token).build()
        self._setup_handlers()

    def _setup_handlers(self) -> None:
        """Setup command and callback handlers."""
        self.application.add_handler(CommandHandler("start", self.handlers.start_handler))
        self.application.add_handler(CommandHandler("stats", self.handlers.stats_handler))
        self.application.add_handler(CommandHandler("users", self.handlers.users_handler))
        self.application.add_handler(CommandHandler("drivers", self.handlers.drivers_handler))
        self.application.add_handler(CommandHandler("refresh", self.handlers.refresh_handler))
        self.application.add_handler(CallbackQueryHandler(self.handlers.callback_handler))
        logger.info("Telegram bot handlers configured.")

    async def run(self) -> None:
        """Start the Telegram bot polling until cancelled."""
        logger.info("Starting Delivery Dashboard Telegram Bot...")
        try:
            await self.application.initialize()
            await self.application.start()
            await self.application.updater.start_polling()
            logger.info("Delivery Dashboard Telegram Bot started successfully.")
            while True:
                await asyncio.sleep(3600)
        finally:
            logger.info("Stopping Delivery Dashboard Telegram Bot...")
            if self.application.updater and self.application.updater.running:
                await self.application.updater.stop()
            if self.application.running:
                await self.application.stop()
            await self.application.shutdown()
            logger.info("Delivery Dashboard Telegram Bot stopped.")
