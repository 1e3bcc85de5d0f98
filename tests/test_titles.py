from chatplanner.core.titles import (
    TITLE_MAX_LEN,
    cleanup_title,
    cut_at_temporal_tail,
    extract_title,
    strip_create_command_phrases,
)


def test_extract_title_drops_command_and_temporal_parts() -> None:
    assert extract_title("Создай встречу завтра в 15:00 с Иваном на 30 минут") == "с Иваном"
    assert extract_title("Созвон с командой завтра в 10:00") == "Созвон с командой"
    assert extract_title("создай событие 21 февраля в 14:30 Ретро") == "Ретро"


def test_extract_title_falls_back_when_nothing_is_left() -> None:
    assert extract_title("   ", "Встреча") == "Встреча"
    assert extract_title("завтра в 10:00", "Встреча") == "Встреча"
    assert extract_title("создай событие") is None


def test_extract_title_is_capped() -> None:
    long_name = "Ретро " + "я" * 300

    title = extract_title("создай событие 21 февраля в 14:30 " + long_name)

    assert len(title) == TITLE_MAX_LEN
    assert title == long_name[:TITLE_MAX_LEN]


def test_extract_title_keeps_month_phrase_without_numbers() -> None:
    assert extract_title("Отчёт до конца марта") == "Отчёт до конца марта"


def test_strip_create_command_phrases() -> None:
    assert strip_create_command_phrases("Создай встречу Планёрка") == "Планёрка"
    assert strip_create_command_phrases("добавь мне задачу купить хлеб") == "купить хлеб"
    assert strip_create_command_phrases("сделать отчёт") == "сделать отчёт"
    assert strip_create_command_phrases(None) == ""


def test_cut_at_temporal_tail() -> None:
    assert cut_at_temporal_tail("Ретро команды длительность час") == "Ретро команды"
    assert cut_at_temporal_tail("Ретро") == "Ретро"


def test_cleanup_title() -> None:
    assert cleanup_title("  Купить   хлеб \n", "Задача") == "Купить хлеб"
    assert cleanup_title("", "Задача") == "Задача"
    assert len(cleanup_title("я" * 500, "Задача")) == TITLE_MAX_LEN
