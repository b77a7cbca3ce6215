"""Коды выхода CLI."""

EXIT_SUCCESS = 0
EXIT_FAILURE = 1  # неповторяемая ошибка API, конфигурации или отмена
EXIT_RETRY_LATER = 2  # повторы исчерпаны на временной ошибке или 429
