class ReviewError(Exception):
    """Base class for failures inside a review turn."""


class InsufficientVocabularyError(ReviewError):
    def __init__(self, item_id: int, language: str):
        super().__init__(f"No distractors available for item {item_id} ({language})")
        self.item_id = item_id
        self.language = language


class ItemNotFoundError(ReviewError):
    def __init__(self, item_id: int, user_telegram_id: int, language: str):
        super().__init__(f"Item {item_id} not found for user {user_telegram_id} ({language})")
        self.item_id = item_id
        self.user_telegram_id = user_telegram_id
        self.language = language


class MalformedEventError(ReviewError):
    pass


class UnknownLanguageError(ReviewError):
    def __init__(self, language: str):
        super().__init__(f"Unknown language: {language!r}")
        self.language = language
