"""Таксономия кодов ошибок для логов и контрактов.

Используются в CLI и клиенте: при обработке ошибок писать error_code в лог (поле error_code).
"""

CONFIG_ERROR = "CONFIG_ERROR"
CANCELLED = "CANCELLED"  # операция отменена вызывающим кодом (cancel_event)

# WordPress REST API (wpapi)
WP_AUTH_ERROR = "WP_AUTH_ERROR"  # 401/403 при обращении к WP REST API
WP_RATE_LIMIT = "WP_RATE_LIMIT"  # 429 или превышение лимита запросов
WP_NETWORK_ERROR = "WP_NETWORK_ERROR"  # таймаут, 502, соединение отклонено, ошибка TLS
WP_DATA_FORMAT_ERROR = "WP_DATA_FORMAT_ERROR"  # неожиданная структура ответа или невалидный JSON
WP_NOT_FOUND = "WP_NOT_FOUND"  # 404/410
WP_ITEM_EXISTS = "WP_ITEM_EXISTS"  # 500 term_exists
WP_REQUEST_ERROR = "WP_REQUEST_ERROR"  # прочие неповторяемые ответы (400, 405, 415, 5xx...)
