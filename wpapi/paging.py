"""Обход коллекций WP REST API по страницам.

Пагинация по X-WP-TotalPages; если заголовка нет, остановка на неполной странице.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, List, Mapping, Optional

from .client import WPApiClient

logger = logging.getLogger("wpapi.paging")


def _total_pages(client: WPApiClient) -> Optional[int]:
    """Число страниц из ответа. Невалидные значения не роняют обход: None или >= 1."""
    pages = client.total_pages
    if pages is None:
        return None
    return max(1, pages)


def iter_pages(
    client: WPApiClient,
    path: str,
    per_page: int = 100,
    context: str = "view",
    params: Optional[Mapping[str, Any]] = None,
    max_pages: Optional[int] = None,
    run_id: Optional[str] = None,
) -> Iterator[List[Any]]:
    """Отдавать списки элементов постранично, начиная с page=1."""
    page = 1
    while True:
        data = client.fetch(
            path,
            context=context,
            page=page,
            page_length=per_page,
            params=params,
            run_id=run_id,
        ).as_array()
        if not isinstance(data, list):
            logger.warning(
                "WP API %s вернул не список (type=%s), завершаем пагинацию",
                path,
                type(data).__name__,
                extra={"site_id": client.site_id, "run_id": run_id},
            )
            break
        yield data
        total_pages = _total_pages(client)
        if total_pages is not None and page >= total_pages:
            break
        if total_pages is None and len(data) < per_page:
            break
        if not data:
            break
        if max_pages is not None and page >= max_pages:
            break
        page += 1


def fetch_all(
    client: WPApiClient,
    path: str,
    per_page: int = 100,
    context: str = "view",
    params: Optional[Mapping[str, Any]] = None,
    max_pages: Optional[int] = None,
    run_id: Optional[str] = None,
) -> List[Any]:
    """Все элементы коллекции одним списком."""
    result: List[Any] = []
    for items in iter_pages(client, path, per_page, context, params, max_pages, run_id):
        result.extend(items)
    return result
