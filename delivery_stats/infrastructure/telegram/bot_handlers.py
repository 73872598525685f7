# delivery_stats/infrastructure/telegram/bot_handlers.py
import logging
from typing import List, Set

from telegram import Update, InlineKeyboardButton, InlineKeyboardMarkup
from telegram.error import BadRequest
from telegram.helpers import escape_markdown
from telegram.ext import ContextTypes

from ...domain.exceptions import CacheComputeError
from ...domain.interfaces import IDashboardStatisticsService
from ...domain.models import DriverRoster, KeyClass, StatisticsSnapshot

logger = logging.getLogger(__name__)

# Telegram caps a message at 4096 characters
MAX_ROSTER_LINES = 50


def format_order_statistics(stats: StatisticsSnapshot) -> str:
    return (
        f"📦 **Orders** (as of {stats.computed_at:%H:%M:%S})\n\n"
        f"**Total:** {stats['total_orders']:,}\n"
        f"⏳ **Pending:** {stats['pending_orders']:,}\n"
        f"🚚 **In Progress:** {stats['in_progress_orders']:,}\n"
        f"✅ **Delivered:** {stats['delivered_orders']:,}\n"
        f"❌ **Cancelled:** {stats['cancelled_orders']:,}\n"
        f"❔ **Other:** {stats['other_orders']:,}\n\n"
        f"📅 **Today:** {stats['today_orders']:,}\n"
        f"🗓 **This Week:** {stats['week_orders']:,}\n"
        f"📆 **This Month:** {stats['month_orders']:,}\n"
        f"✅ **Delivered Today:** {stats['delivered_today_orders']:,}\n"
        f"❌ **Cancelled Today:** {stats['cancelled_today_orders']:,}"
    )


def format_user_statistics(stats: StatisticsSnapshot) -> str:
    return (
        f"👥 **Users** (as of {stats.computed_at:%H:%M:%S})\n\n"
        f"**Customers:** {stats['total_customers']:,} "
        f"({stats['active_customers']:,} active, {stats['new_customers_today']:,} new today)\n"
        f"**Drivers:** {stats['total_drivers']:,} "
        f"({stats['active_drivers']:,} active, {stats['new_drivers_today']:,} new today)"
    )


def format_driver_roster(roster: DriverRoster) -> str:
    if not len(roster):
        return "🚗 No drivers registered."
    lines = [f"🚗 **Drivers** ({len(roster)}{'+' if roster.truncated else ''})\n"]
    for driver in roster.drivers[:MAX_ROSTER_LINES]:
        lines.append(
            f"`{driver.username}` {escape_markdown(driver.full_name or '')} "
            f"#{escape_markdown(driver.serial_number or '-')} ⭐ {driver.points:,}"
        )
    if len(roster) > MAX_ROSTER_LINES:
        lines.append(f"\n… and {len(roster) - MAX_ROSTER_LINES} more")
    return "\n".join(lines)


class TelegramBotHandlers:
    """Telegram command and callback handlers over the dashboard statistics service."""

    def __init__(
            self,
            statistics_service: IDashboardStatisticsService,
            admin_user_ids: List[int]
    ):
        self._statistics_service = statistics_service
        self._admin_user_ids: Set[int] = set(admin_user_ids)

    def _is_admin(self, user_id: int) -> bool:
        """Check if user is admin."""
        return user_id in self._admin_user_ids

    async def _reject_non_admin(self, update: Update) -> bool:
        if update.effective_user and self._is_admin(update.effective_user.id):
            return False
        if update.message:
            await update.message.reply_text("❌ Access denied.")
        return True

    @staticmethod
    def _refresh_keyboard(key_class: KeyClass) -> InlineKeyboardMarkup:
        return InlineKeyboardMarkup([[InlineKeyboardButton("🔄 Refresh", callback_data=f"refresh_{key_class.value}")]])

    async def _render(self, key_class: KeyClass) -> str:
        if key_class is KeyClass.ORDER_STATS:
            return format_order_statistics(await self._statistics_service.get_order_statistics())
        if key_class is KeyClass.USER_STATS:
            return format_user_statistics(await self._statistics_service.get_user_statistics())
        return format_driver_roster(await self._statistics_service.get_driver_roster())

    async def _reply(self, update: Update, key_class: KeyClass, text_factory) -> None:
        try:
            message = await text_factory()
        except CacheComputeError as e:
            logger.error(f"Statistics unavailable for {key_class.value}: {e}")
            message = "⚠️ Statistics are temporarily unavailable. Please try again shortly."
        if update.message:
            await update.message.reply_text(
                message, parse_mode='Markdown', reply_markup=self._refresh_keyboard(key_class)
            )

    async def start_handler(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if await self._reject_non_admin(update):
            return
        keyboard = [
            [InlineKeyboardButton("📦 Orders", callback_data=f"show_{KeyClass.ORDER_STATS.value}")],
            [InlineKeyboardButton("👥 Users", callback_data=f"show_{KeyClass.USER_STATS.value}")],
            [InlineKeyboardButton("🚗 Drivers", callback_data=f"show_{KeyClass.DRIVER_ROSTER.value}")],
        ]
        await update.message.reply_text(
            "📊 **Delivery Dashboard**\n\n"
            "**Available Commands:**\n"
            "• `/stats` - Order statistics\n"
            "• `/users` - Customer and driver counts\n"
            "• `/drivers [limit]` - Driver roster\n"
            "• `/refresh [order_stats|user_stats|driver_roster]` - Recompute now\n\n"
            "Choose an option below:",
            parse_mode='Markdown', reply_markup=InlineKeyboardMarkup(keyboard)
        )

    async def stats_handler(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if await self._reject_non_admin(update):
            return
        await self._reply(update, KeyClass.ORDER_STATS, lambda: self._render(KeyClass.ORDER_STATS))

    async def users_handler(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if await self._reject_non_admin(update):
            return
        await self._reply(update, KeyClass.USER_STATS, lambda: self._render(KeyClass.USER_STATS))

    async def drivers_handler(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if await self._reject_non_admin(update):
            return
        limit = None
        if context.args:
            try:
                limit = int(context.args[0])
                if limit <= 0:
                    raise ValueError(limit)
            except ValueError:
                await update.message.reply_text("❌ **Usage:** `/drivers [limit]`", parse_mode='Markdown')
                return

        async def render() -> str:
            return format_driver_roster(await self._statistics_service.get_driver_roster(limit))

        await self._reply(update, KeyClass.DRIVER_ROSTER, render)

    async def refresh_handler(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if await self._reject_non_admin(update):
            return
        if not context.args:
            self._statistics_service.invalidate_all()
            await update.message.reply_text("🔄 All statistics will be recomputed on next request.")
            return
        try:
            self._statistics_service.invalidate(context.args[0])
        except ValueError as ve:
            await update.message.reply_text(f"❌ {ve}")
            return
        await update.message.reply_text(f"🔄 `{context.args[0]}` will be recomputed on next request.",
                                        parse_mode='Markdown')

    async def callback_handler(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        query = update.callback_query
        if not query or not query.from_user or not self._is_admin(query.from_user.id):
            if query: await query.answer("❌ Access denied.", show_alert=True)
            return

        data = query.data or ""
        action, _, key_name = data.partition("_")
        try:
            key_class = KeyClass(key_name)
        except ValueError:
            logger.warning(f"Unhandled callback data structure: {data}")
            await query.answer("❓ Unknown action.")
            return

        try:
            if action == "refresh":
                self._statistics_service.invalidate(key_class)
            message = await self._render(key_class)
            await query.edit_message_text(
                message, parse_mode='Markdown', reply_markup=self._refresh_keyboard(key_class)
            )
            await query.answer()
        except CacheComputeError as e:
            logger.error(f"Statistics unavailable for {key_class.value}: {e}")
            await query.answer("⚠️ Statistics are temporarily unavailable.", show_alert=True)
        except BadRequest as e:
            if "Message is not modified" in str(e):
                logger.debug(f"Callback {data}: Message not modified. Silently answering.")
                await query.answer()
            else:
                logger.error(f"BadRequest during callback {data}: {e}", exc_info=True)
                await query.answer("⚠️ Telegram API Error.", show_alert=True)
