import asyncio
import csv
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Tuple

from ..database.models import VocabularyEntry
from ..review.errors import UnknownLanguageError

logger = logging.getLogger(__name__)


class Vocabulary:
    """
    Read-only table of seed word lists, one tuple of entries per language.
    Built once at start-up and shared by every session.
    """

    def __init__(self, lists: Mapping[str, Iterable[VocabularyEntry]]):
        self._lists: Mapping[str, Tuple[VocabularyEntry, ...]] = MappingProxyType(
            {language: tuple(entries) for language, entries in lists.items()}
        )

    @property
    def languages(self) -> List[str]:
        return list(self._lists)

    def __contains__(self, language: object) -> bool:
        return language in self._lists

    def entries(self, language: str) -> Tuple[VocabularyEntry, ...]:
        try:
            return self._lists[language]
        except KeyError:
            raise UnknownLanguageError(language) from None


class VocabularyLoader:
    """Loads `<language>_frequency_list.csv` files (columns: id, original, target)."""

    FILENAME_TEMPLATE = "{language}_frequency_list.csv"

    def __init__(self, vocabulary_dir: Path, languages: Iterable[str]):
        self.vocabulary_dir = Path(vocabulary_dir)
        self.languages = list(languages)

    async def load(self) -> Vocabulary:
        # File I/O runs in the default executor so start-up doesn't block the loop
        loop = asyncio.get_running_loop()
        lists = {}
        for language in self.languages:
            lists[language] = await loop.run_in_executor(None, self._load_language_sync, language)
        vocabulary = Vocabulary(lists)
        logger.info(
            "Vocabulary loaded: " + ", ".join(f"{lang}={len(vocabulary.entries(lang))}" for lang in vocabulary.languages)
        )
        return vocabulary

    def _load_language_sync(self, language: str) -> List[VocabularyEntry]:
        file_path = self.vocabulary_dir / self.FILENAME_TEMPLATE.format(language=language)
        if not file_path.exists():
            logger.warning(f"No vocabulary file for {language}: {file_path}")
            return []

        with open(file_path, 'r', encoding='utf-8', newline='') as f:
            return parse_frequency_list(csv.DictReader(f), source=str(file_path))


def parse_frequency_list(rows: Iterable[Dict[str, str]], source: str = '<rows>') -> List[VocabularyEntry]:
    entries = []
    seen_ids = set()
    for line_number, row in enumerate(rows, start=2):
        try:
            entry_id = int((row.get('id') or '').strip())
        except ValueError:
            logger.warning(f"{source}:{line_number}: skipping row with invalid id {row.get('id')!r}")
            continue

        original = (row.get('original') or '').strip()
        target = (row.get('target') or '').strip()
        if not original or not target:
            logger.warning(f"{source}:{line_number}: skipping row {entry_id} without original/target")
            continue
        if entry_id in seen_ids:
            logger.warning(f"{source}:{line_number}: duplicate id {entry_id}, keeping the first")
            continue

        seen_ids.add(entry_id)
        entries.append(VocabularyEntry(id=entry_id, original=original, target=target))

    return entries
