from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from dataclasses import dataclass, replace
from typing import Any, Union

from .errors import ConfigurationError, DecodeError
from .types import Request, Response, ResultInfo

DEFAULT_PER_PAGE = 50
ITEMS_KEY = "result"
INFO_KEY = "result_info"

SyncExecuteFn = Callable[[Request, str], Response]
AsyncExecuteFn = Callable[[Request, str], Awaitable[Response]]


@dataclass(frozen=True)
class Page:
    number: int
    items: list[Any]
    info: Union[ResultInfo, None]

    def is_last(self, per_page: int) -> bool:
        # a list response without result_info is a single page
        return self.info is None or self.info.is_last_page(per_page)


def decode_page(
    operation: str,
    response: Response,
    number: int,
    items_key: str = ITEMS_KEY,
    info_key: str = INFO_KEY,
) -> Page:
    """Split one list response into its items and its ResultInfo."""
    try:
        payload = response.json()
    except ValueError as e:
        raise DecodeError(
            f"error unmarshalling the JSON response: {e}", operation=operation, body=response.body
        ) from e
    if not isinstance(payload, dict):
        raise DecodeError("expected a JSON object", operation=operation, body=response.body)

    items = payload.get(items_key)
    if items is None:
        items = []
    if not isinstance(items, list):
        raise DecodeError(f"{items_key!r} is not a list", operation=operation, body=response.body)

    raw_info = payload.get(info_key)
    if raw_info is None:
        return Page(number, items, None)
    if not isinstance(raw_info, dict):
        raise DecodeError(f"{info_key!r} is not an object", operation=operation, body=response.body)
    try:
        info = ResultInfo.from_dict(raw_info)
    except (TypeError, ValueError) as e:
        raise DecodeError(
            f"malformed {info_key!r}: {e}", operation=operation, body=response.body
        ) from e
    # fill what the server left out from what we know about this page
    info = replace(
        info,
        page=info.page or number,
        count=info.count if "count" in raw_info else len(items),
    )
    return Page(number, items, info)


def _check_per_page(per_page: int) -> None:
    if per_page < 1:
        raise ConfigurationError("per_page must be >= 1")


def iter_pages(
    execute: SyncExecuteFn,
    request: Request,
    per_page: int = DEFAULT_PER_PAGE,
    operation: Union[str, None] = None,
    items_key: str = ITEMS_KEY,
    info_key: str = INFO_KEY,
) -> Iterator[Page]:
    """Yield pages 1, 2, ... of a list endpoint until the last one.

    Each page goes through `execute(request, operation)`, so transient failures
    are retried there; any error it raises ends the iteration.
    """
    _check_per_page(per_page)
    operation = operation or request.describe()
    number = 1
    while True:
        page_op = f"{operation} page={number}"
        response = execute(request.with_params(page=number, per_page=per_page), page_op)
        page = decode_page(page_op, response, number, items_key, info_key)
        yield page
        if page.is_last(per_page):
            return
        number += 1


async def aiter_pages(
    execute: AsyncExecuteFn,
    request: Request,
    per_page: int = DEFAULT_PER_PAGE,
    operation: Union[str, None] = None,
    items_key: str = ITEMS_KEY,
    info_key: str = INFO_KEY,
) -> AsyncIterator[Page]:
    _check_per_page(per_page)
    operation = operation or request.describe()
    number = 1
    while True:
        page_op = f"{operation} page={number}"
        response = await execute(request.with_params(page=number, per_page=per_page), page_op)
        page = decode_page(page_op, response, number, items_key, info_key)
        yield page
        if page.is_last(per_page):
            return
        number += 1

