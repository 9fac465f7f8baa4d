"""Word bank - the candidate list daily puzzles are drawn from"""
import logging
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Tuple

from app.core.config import settings

logger = logging.getLogger(__name__)

WORD_LENGTH = 5

# Used when the word list file is missing or yields nothing usable
FALLBACK_WORDS = (
    "ABORD", "ACCES", "ACHAT", "ACIDE", "ACIER", "ACTIF", "ADIEU", "AGENT",
    "AIDER", "AIMER", "AINSI", "ALBUM", "ALLER", "ALLIE", "ALORS", "AMANT",
    "AMOUR", "ANGLE", "ANNEE", "APPEL", "APPUI", "APRES", "ARABE", "ARBRE",
    "ARMEE", "ARMER", "ARRET", "ASILE", "ASSEZ", "ATOUT", "AUCUN", "AUSSI",
    "AUTRE", "AVANT", "AVION", "AVOIR", "AVRIL", "BALLE", "BANAL", "BANDE",
    "BARRE", "BASER", "BATIR", "BATON", "BELGE", "BETON", "BIAIS", "BIERE",
)


def normalize_word(token: str) -> str:
    """Uppercase a token; returns "" when it is not a 5-letter word"""
    word = token.strip().upper()
    if len(word) != WORD_LENGTH or not word.isalpha():
        return ""
    return word


def filter_words(tokens: Iterable[str]) -> Tuple[str, ...]:
    """Keep 5-letter alphabetic tokens, uppercased, first occurrence wins"""
    seen = set()
    words = []
    for token in tokens:
        word = normalize_word(token)
        if word and word not in seen:
            seen.add(word)
            words.append(word)
    return tuple(words)


def load_words(path: Path) -> Tuple[str, ...]:
    """Load the word list at path, falling back to the built-in list"""
    try:
        content = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        logger.error(f"Could not read word list {path}: {e}; using fallback words")
        return FALLBACK_WORDS

    words = filter_words(content.splitlines())
    if not words:
        logger.warning(f"Word list {path} has no usable 5-letter words; using fallback words")
        return FALLBACK_WORDS

    logger.info(f"Loaded {len(words)} words from {path}")
    return words


@lru_cache(maxsize=1)
def get_word_bank() -> Tuple[str, ...]:
    """Process-wide word bank, loaded on first use"""
    return load_words(settings.WORD_LIST_PATH)
