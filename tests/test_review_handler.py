import asyncio
from types import SimpleNamespace

from telegram.error import BadRequest

from vocab_bot.handlers.review_handler import NOTICE_TEXT, ReviewHandler, render_outcome, render_progress
from vocab_bot.review.events import AnswerSubmitted, SetLanguage, encode_answer_token
from vocab_bot.review.session import Notice, NoticeKind, Option, Prompt

CHAT = 42
USER = 555


class FakeSession:
    def __init__(self, outcome):
        self.outcome = outcome
        self.events = []

    async def handle(self, event):
        self.events.append(event)
        return self.outcome


class FakeQuery:
    def __init__(self, data, edit_error=None, message_id=7):
        self.data = data
        self.message = SimpleNamespace(message_id=message_id) if message_id is not None else None
        self.edit_error = edit_error
        self.answers = []
        self.edits = []

    async def answer(self, text=None):
        self.answers.append(text)

    async def edit_message_text(self, text, reply_markup=None):
        if self.edit_error is not None:
            raise self.edit_error
        self.edits.append((text, reply_markup))


class FakeBot:
    def __init__(self, delete_error=None):
        self.delete_error = delete_error
        self.deleted = []
        self.sent = []

    async def delete_message(self, chat_id, message_id):
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append((chat_id, message_id))

    async def send_message(self, chat_id, text, reply_markup=None):
        self.sent.append((chat_id, text, reply_markup))


def tap(handler, query, bot):
    update = SimpleNamespace(
        callback_query=query,
        effective_user=SimpleNamespace(id=USER),
        effective_chat=SimpleNamespace(id=CHAT),
    )
    context = SimpleNamespace(bot=bot)
    asyncio.run(handler.handle_callback(update, context))


NONE_DUE = Notice(NoticeKind.NONE_DUE, language="spanish")


class TestRenderOutcome:
    def test_prompt_uses_two_column_keyboard(self):
        prompt = Prompt(
            item_id=3,
            language="spanish",
            original_text="que",
            options=tuple(Option(text=t, token=f"review:{i}") for i, t in enumerate(["in", "that", "of", "and"])),
            progress=(True, False),
        )

        text, markup = render_outcome(prompt)

        assert "✅❌" in text
        assert '"que"' in text
        assert [[b.text for b in row] for row in markup.inline_keyboard] == [["in", "that"], ["of", "and"]]
        assert markup.inline_keyboard[1][0].callback_data == "review:2"

    def test_short_prompt_keeps_all_options(self):
        prompt = Prompt(3, "spanish", "que", (Option("that", "a"), Option("of", "b")))

        _, markup = render_outcome(prompt)

        assert len(markup.inline_keyboard) == 1

    def test_notice_has_no_keyboard(self):
        text, markup = render_outcome(Notice(NoticeKind.UNKNOWN_LANGUAGE, language="klingon"))

        assert "klingon" in text
        assert markup is None

    def test_progress_marks(self):
        assert render_progress([True, True, False]) == "✅✅❌"


class TestHandleCallback:
    def test_answer_is_edited_in_place(self):
        session = FakeSession(NONE_DUE)
        handler = ReviewHandler(session, db_manager=None, languages=["spanish"])
        query = FakeQuery(encode_answer_token(1, "spanish", 3, 0))
        bot = FakeBot()

        tap(handler, query, bot)

        assert session.events == [AnswerSubmitted(USER, item_id=1, language="spanish", chosen_item_id=3)]
        assert query.answers == [None]
        assert query.edits == [(NOTICE_TEXT[NoticeKind.NONE_DUE], None)]
        assert bot.deleted == []
        assert bot.sent == []

    def test_language_tap_is_acknowledged(self):
        session = FakeSession(NONE_DUE)
        handler = ReviewHandler(session, db_manager=None, languages=["spanish"])
        query = FakeQuery("language:Spanish")

        tap(handler, query, FakeBot())

        assert session.events == [SetLanguage(USER, "spanish")]
        assert query.answers == ["Language set to spanish"]

    def test_failed_edit_deletes_and_resends(self):
        session = FakeSession(NONE_DUE)
        handler = ReviewHandler(session, db_manager=None, languages=["spanish"])
        query = FakeQuery(encode_answer_token(1, "spanish", 1, 0), edit_error=BadRequest("Message can't be edited"))
        bot = FakeBot()

        tap(handler, query, bot)

        assert bot.deleted == [(CHAT, 7)]
        assert bot.sent == [(CHAT, NOTICE_TEXT[NoticeKind.NONE_DUE], None)]

    def test_resend_happens_even_when_delete_fails(self):
        prompt = Prompt(2, "spanish", "la", (Option("the", "review:2:2:0:spanish"), Option("of", "review:2:1:0:spanish")))
        handler = ReviewHandler(FakeSession(prompt), db_manager=None, languages=["spanish"])
        query = FakeQuery(
            encode_answer_token(1, "spanish", 1, 0),
            edit_error=BadRequest("Message is not modified"),
        )
        bot = FakeBot(delete_error=BadRequest("Message to delete not found"))

        tap(handler, query, bot)

        assert bot.deleted == []
        [(chat_id, text, markup)] = bot.sent
        assert chat_id == CHAT
        assert '"la"' in text
        assert [b.callback_data for b in markup.inline_keyboard[0]] == ["review:2:2:0:spanish", "review:2:1:0:spanish"]

    def test_inaccessible_message_is_not_deleted(self):
        handler = ReviewHandler(FakeSession(NONE_DUE), db_manager=None, languages=["spanish"])
        query = FakeQuery(encode_answer_token(1, "spanish", 1, 0), edit_error=BadRequest("gone"), message_id=None)
        bot = FakeBot()

        tap(handler, query, bot)

        assert bot.deleted == []
        assert len(bot.sent) == 1

    def test_malformed_callback_never_reaches_the_session(self):
        session = FakeSession(NONE_DUE)
        handler = ReviewHandler(session, db_manager=None, languages=["spanish"])
        for data in ["review:[1,\"spanish\",\"de\",\"of\"]", "review:1:2", "bogus", ""]:
            query = FakeQuery(data)
            bot = FakeBot()

            tap(handler, query, bot)

            assert query.answers == ["This button is no longer valid."]
            assert query.edits == []
            assert bot.sent == []
        assert session.events == []
