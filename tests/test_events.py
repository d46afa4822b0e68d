import pytest

from vocab_bot.review.errors import MalformedEventError
from vocab_bot.review.events import (
    MAX_CALLBACK_BYTES,
    AnswerSubmitted,
    SetLanguage,
    decode_callback,
    encode_answer_token,
    encode_language_token,
)


class TestDecodeCallback:
    def test_answer_token(self):
        token = encode_answer_token(12, "spanish", 7, 1_700_086_400_000)

        event = decode_callback(3, token)

        assert event == AnswerSubmitted(
            user_telegram_id=3, item_id=12, language="spanish", chosen_item_id=7, schedule_version=1_700_086_400_000
        )

    @pytest.mark.parametrize("language", ["spanish", "german", "french", "italian", "russian", "portuguese"])
    def test_worst_case_answer_token_fits_telegram_limit(self, language):
        # 10-digit ids and a 13-digit epoch-ms version; no answer text travels in the token
        token = encode_answer_token(2_147_483_647, language, 2_147_483_646, 9_999_999_999_999)

        assert len(token.encode("utf-8")) <= MAX_CALLBACK_BYTES

    def test_token_does_not_depend_on_word_script(self):
        short = encode_answer_token(12, "russian", 13, 0)

        assert "здравствуйте" not in short
        assert len(short.encode("utf-8")) < 32

    def test_oversized_token_is_refused(self):
        with pytest.raises(MalformedEventError):
            encode_answer_token(1, "x" * 60, 2, 0)

    def test_language_token(self):
        assert decode_callback(3, encode_language_token("German")) == SetLanguage(3, "german")

    @pytest.mark.parametrize("data", [
        "review:1:2:0",
        "review:1:2:0:",
        "review:x:2:0:spanish",
        "review:1:-2:0:spanish",
        "review:1:2:²:spanish",
        "review:[1,\"spanish\",\"a\",\"b\"]",
        "language:",
        "spanish",
        "",
    ])
    def test_malformed_payloads_are_rejected(self, data):
        with pytest.raises(MalformedEventError):
            decode_callback(3, data)

    def test_non_string_payload(self):
        with pytest.raises(MalformedEventError):
            decode_callback(3, None)
