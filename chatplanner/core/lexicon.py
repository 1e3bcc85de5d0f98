from __future__ import annotations


MONTH_STEMS: dict[str, int] = {
    "январ": 1,
    "феврал": 2,
    "март": 3,
    "апрел": 4,
    "ма": 5,
    "июн": 6,
    "июл": 7,
    "август": 8,
    "сентябр": 9,
    "октябр": 10,
    "ноябр": 11,
    "декабр": 12,
}

MONTH_WORD_PATTERN = (
    r"(?:январ[яе]|феврал[яе]|март[а]?|апрел[яе]|ма[йя]|июн[яе]|июл[яе]|"
    r"август[а]?|сентябр[яе]|октябр[яе]|ноябр[яе]|декабр[яе])"
)

CARDINAL_WORDS: dict[str, int] = {
    "ноль": 0,
    "один": 1,
    "одна": 1,
    "два": 2,
    "две": 2,
    "три": 3,
    "четыре": 4,
    "пять": 5,
    "шесть": 6,
    "семь": 7,
    "восемь": 8,
    "девять": 9,
    "десять": 10,
    "одиннадцать": 11,
    "двенадцать": 12,
    "тринадцать": 13,
    "четырнадцать": 14,
    "пятнадцать": 15,
    "шестнадцать": 16,
    "семнадцать": 17,
    "восемнадцать": 18,
    "девятнадцать": 19,
    "двадцать": 20,
    "тридцать": 30,
    "сорок": 40,
    "пятьдесят": 50,
    "шестьдесят": 60,
    "семьдесят": 70,
    "восемьдесят": 80,
    "девяносто": 90,
}

# genitive ("первого марта") and neuter ("первое марта") forms
ORDINAL_WORDS: dict[str, int] = {
    "первого": 1,
    "первое": 1,
    "второго": 2,
    "второе": 2,
    "третьего": 3,
    "третье": 3,
    "четвертого": 4,
    "четвертое": 4,
    "пятого": 5,
    "пятое": 5,
    "шестого": 6,
    "шестое": 6,
    "седьмого": 7,
    "седьмое": 7,
    "восьмого": 8,
    "восьмое": 8,
    "девятого": 9,
    "девятое": 9,
    "десятого": 10,
    "десятое": 10,
    "одиннадцатого": 11,
    "одиннадцатое": 11,
    "двенадцатого": 12,
    "двенадцатое": 12,
    "тринадцатого": 13,
    "тринадцатое": 13,
    "четырнадцатого": 14,
    "четырнадцатое": 14,
    "пятнадцатого": 15,
    "пятнадцатое": 15,
    "шестнадцатого": 16,
    "шестнадцатое": 16,
    "семнадцатого": 17,
    "семнадцатое": 17,
    "восемнадцатого": 18,
    "восемнадцатое": 18,
    "девятнадцатого": 19,
    "девятнадцатое": 19,
    "двадцатого": 20,
    "двадцатое": 20,
    "тридцатого": 30,
    "тридцатое": 30,
}

SCALE_WORDS: dict[str, int] = {
    "сто": 100,
    "тысяча": 1000,
    "тысячи": 1000,
    "тысяч": 1000,
}

NUMBER_WORDS: dict[str, int] = {**CARDINAL_WORDS, **ORDINAL_WORDS, **SCALE_WORDS}


def resolve_month(word: str | None) -> int | None:
    if not word:
        return None
    key = word.strip().lower()
    for stem, month in MONTH_STEMS.items():
        if key.startswith(stem):
            return month
    return None
