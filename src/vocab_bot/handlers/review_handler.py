import html
import json
import logging
from dataclasses import asdict
from typing import List, Optional, Tuple

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.constants import ParseMode
from telegram.error import BadRequest
from telegram.ext import ContextTypes

from ..database.db_manager import DatabaseManager
from ..review.errors import MalformedEventError
from ..review.events import SetLanguage, decode_callback, encode_language_token
from ..review.session import Notice, NoticeKind, ReviewSession, TurnOutcome

logger = logging.getLogger(__name__)

NOTICE_TEXT = {
    NoticeKind.NO_LANGUAGE: "Please select a language using the /language command.",
    NoticeKind.NONE_DUE: "No items available for review at this time.",
    NoticeKind.INSUFFICIENT_VOCABULARY: (
        "Review is currently unavailable: there are not enough words to build a quiz."
    ),
    NoticeKind.UNKNOWN_LANGUAGE: "Sorry, {language} is not available. Use /language to pick another one.",
    NoticeKind.TURN_ABORTED: "That answer could not be scored. Send /review to continue.",
}


def render_progress(progress) -> str:
    return "".join("✅" if ok else "❌" for ok in progress)


def render_outcome(outcome: TurnOutcome) -> Tuple[str, Optional[InlineKeyboardMarkup]]:
    """Text and keyboard for a prompt or notice"""
    if isinstance(outcome, Notice):
        return NOTICE_TEXT[outcome.kind].format(language=outcome.language), None

    text = (
        f"(#{outcome.item_id}) Progress: {render_progress(outcome.progress)}\n\n"
        f"Which of the following is the correct translation for \"{outcome.original_text}\"?"
    )

    # Two buttons per row
    buttons = [InlineKeyboardButton(option.text, callback_data=option.token) for option in outcome.options]
    rows: List[List[InlineKeyboardButton]] = [buttons[i:i + 2] for i in range(0, len(buttons), 2)]
    return text, InlineKeyboardMarkup(rows)


class ReviewHandler:
    def __init__(self, session: ReviewSession, db_manager: DatabaseManager, languages: List[str]):
        self.session = session
        self.db = db_manager
        self.languages = languages

    async def handle_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await update.message.reply_text(
            "Welcome to the language learning bot! Type /help for a list of available commands."
        )
        logger.info(f"User {update.effective_user.id} started the bot")

    async def handle_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await update.message.reply_text(
            "Commands:\n"
            "/language - choose the language you want to learn\n"
            "/review - review words and phrases in a spaced repetition system\n"
            "/view <id> - show the stored schedule of a word"
        )

    async def handle_language(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        keyboard = [
            [InlineKeyboardButton(language, callback_data=encode_language_token(language))]
            for language in self.languages
        ]
        await update.message.reply_text(
            "Please select the language you want to learn:",
            reply_markup=InlineKeyboardMarkup(keyboard)
        )

    async def handle_review(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        outcome = await self.session.start_turn(update.effective_user.id)
        text, markup = render_outcome(outcome)
        await update.message.reply_text(text, reply_markup=markup)

    async def handle_view(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        user_id = update.effective_user.id

        if not context.args or not context.args[0].lstrip('-').isdigit():
            await update.message.reply_text("Usage: /view <id>")
            return

        user = await self.db.get_user(user_id, progress_limit=0)
        if user is None or not user.language:
            await update.message.reply_text(NOTICE_TEXT[NoticeKind.NO_LANGUAGE])
            return

        item = await self.db.find_by_id(int(context.args[0]), user_id, user.language)
        if item is None:
            await update.message.reply_text(f"No {user.language} word with id {context.args[0]}.")
            return

        dump = json.dumps(asdict(item), indent=2, ensure_ascii=False)
        await update.message.reply_text(
            f"<b>storage version</b>\n<pre>{html.escape(dump)}</pre>",
            parse_mode=ParseMode.HTML
        )

    async def handle_callback(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        query = update.callback_query
        user_id = update.effective_user.id

        try:
            event = decode_callback(user_id, query.data)
        except MalformedEventError as e:
            logger.warning(f"Rejected callback from user {user_id}: {e}")
            await query.answer("This button is no longer valid.")
            return

        if isinstance(event, SetLanguage):
            await query.answer(f"Language set to {event.language}")
        else:
            await query.answer()

        outcome = await self.session.handle(event)
        await self._show(update, context, outcome)

    async def _show(self, update: Update, context: ContextTypes.DEFAULT_TYPE, outcome: TurnOutcome):
        """Replace the tapped message with the outcome, or send a fresh one"""
        text, markup = render_outcome(outcome)
        query = update.callback_query

        try:
            await query.edit_message_text(text, reply_markup=markup)
            return
        except BadRequest as e:
            logger.info(f"Could not edit message for user {update.effective_user.id}: {e}")

        if query.message is not None:
            try:
                await context.bot.delete_message(
                    chat_id=update.effective_chat.id, message_id=query.message.message_id
                )
            except BadRequest as e:
                logger.info(f"Could not delete stale message: {e}")

        await context.bot.send_message(chat_id=update.effective_chat.id, text=text, reply_markup=markup)

    async def notify_error(self, update: Optional[Update]):
        if update and update.effective_message:
            await update.effective_message.reply_text(
                "An error occurred while processing your request. Please try again."
            )
