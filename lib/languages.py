"""Per-language choice labels, alphabets and user-facing messages."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ChoiceLabelConfig:
    """Labels used for inline multiple-choice options in one language."""
    display_name: str
    labels: tuple[str, ...]
    alphabet: str

    def label_for(self, index: int) -> str:
        """Label for the option at a 0-based index, continuing the alphabet past four."""
        if index < len(self.labels):
            return self.labels[index]
        letters = self.alphabet
        return f"{letters[index % len(letters)]})"


LATIN_ALPHABET = "abcdefghijklmnopqrstuvwxyz"

DEFAULT_CHOICE_LABEL_CONFIG = ChoiceLabelConfig(
    display_name="English",
    labels=("a)", "b)", "c)", "d)"),
    alphabet=LATIN_ALPHABET,
)

CHOICE_LABELS_BY_LANGUAGE = {
    "english": DEFAULT_CHOICE_LABEL_CONFIG,
    "georgian": ChoiceLabelConfig(
        display_name="Georgian",
        labels=("ა)", "ბ)", "გ)", "დ)"),
        alphabet="აბგდევზთიკლმნოპჟრსტუფქღყშჩცძწჭხჯჰ",
    ),
    "portuguese": ChoiceLabelConfig(
        display_name="Portuguese",
        labels=("a)", "b)", "c)", "d)"),
        alphabet=LATIN_ALPHABET,
    ),
    "ukrainian": ChoiceLabelConfig(
        display_name="Ukrainian",
        labels=("а)", "б)", "в)", "г)"),
        alphabet="абвгґдеєжзиіїйклмнопрстуфхцчшщьюя",
    ),
    "arabic": ChoiceLabelConfig(
        display_name="Arabic",
        labels=("أ)", "ب)", "ج)", "د)"),
        alphabet="أبجدهوزحطيكلمنسعفصقرشتثخذضظغ",
    ),
}


def normalize_language(language: Optional[str]) -> str:
    if not isinstance(language, str):
        return ""
    return language.strip().lower()


def resolve_choice_labels(language: Optional[str]) -> ChoiceLabelConfig:
    """Choice labels for a language name, English when unknown."""
    return CHOICE_LABELS_BY_LANGUAGE.get(normalize_language(language), DEFAULT_CHOICE_LABEL_CONFIG)


BUSY_MESSAGES = {
    "english": "The generator is busy right now. Please try again in about a minute.",
    "georgian": "გენერატორი ამჟამად დატვირთულია. გთხოვთ, სცადოთ დაახლოებით ერთ წუთში.",
    "portuguese": "O gerador está ocupado no momento. Tente novamente em cerca de um minuto.",
    "ukrainian": "Генератор зараз перевантажений. Спробуйте ще раз приблизно за хвилину.",
    "arabic": "المولّد مشغول حاليًا. يرجى المحاولة مرة أخرى بعد دقيقة تقريبًا.",
}


def busy_message(language: Optional[str]) -> str:
    """Localized "busy, try again in about a minute" text."""
    return BUSY_MESSAGES.get(normalize_language(language), BUSY_MESSAGES["english"])
