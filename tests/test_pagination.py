import json
from unittest.mock import MagicMock

import pytest

from turnspit import ClientError, ConfigurationError, DecodeError, Request, Response
from turnspit.pagination import aiter_pages, decode_page, iter_pages


def _page(items, **info):
    body = {"success": True, "errors": [], "messages": [], "result": items}
    if info:
        body["result_info"] = info
    return Response(200, json.dumps(body).encode())


def _pager(responses):
    # stands in for execute(request, operation); records each call
    return MagicMock(side_effect=list(responses))


def test_collects_two_pages_in_two_requests():
    first = _page(list(range(50)), page=1, per_page=50, total_pages=2, count=50, total_count=60)
    second = _page(list(range(50, 60)), page=2, per_page=50, total_pages=2, count=10)
    execute = _pager([first, second])

    items = [i for page in iter_pages(execute, Request("GET", "/zones")) for i in page.items]

    assert items == list(range(60))
    assert execute.call_count == 2  # noqa: PLR2004
    params = [call.args[0].params for call in execute.call_args_list]
    assert params == [{"page": 1, "per_page": 50}, {"page": 2, "per_page": 50}]
    ops = [call.args[1] for call in execute.call_args_list]
    assert ops == ["GET /zones page=1", "GET /zones page=2"]


def test_short_page_ends_iteration_without_total_pages():
    execute = _pager([_page(["a", "b"], page=1), _page(["c"], page=2)])
    pages = list(iter_pages(execute, Request("GET", "/zones"), per_page=2))
    assert [p.items for p in pages] == [["a", "b"], ["c"]]
    assert pages[1].info.count == 1


def test_response_without_result_info_is_a_single_page():
    execute = _pager([_page([{"id": 1}])])
    pages = list(iter_pages(execute, Request("GET", "/user/tokens")))
    assert len(pages) == 1
    assert pages[0].info is None


def test_keeps_existing_params():
    execute = _pager([_page([], page=1, total_pages=1)])
    list(iter_pages(execute, Request("GET", "/zones", params={"name": "example.com"})))
    assert execute.call_args.args[0].params == {
        "name": "example.com",
        "page": 1,
        "per_page": 50,
    }


def test_pages_are_fetched_lazily():
    execute = _pager([_page([1], page=1, total_pages=3), _page([2], page=2, total_pages=3)])
    it = iter_pages(execute, Request("GET", "/zones"))
    assert execute.call_count == 0
    next(it)
    assert execute.call_count == 1


def test_error_on_a_later_page_aborts():
    err = ClientError(
        "HTTP status 404: content 'gone'",
        status_code=404,
        body=b"gone",
        headers={},
        operation="GET /zones page=2",
    )
    execute = _pager([_page([1], page=1, total_pages=3), err])
    seen = []
    with pytest.raises(ClientError):
        for page in iter_pages(execute, Request("GET", "/zones")):
            seen.extend(page.items)
    assert seen == [1]
    assert execute.call_count == 2  # noqa: PLR2004


@pytest.mark.parametrize(
    "body",
    [
        b"not json",
        b"[1, 2]",
        b'{"result": {"id": 1}, "result_info": {"page": 1}}',
        b'{"result": [], "result_info": [1]}',
        b'{"result": [], "result_info": {"page": "one"}}',
    ],
)
def test_undecodable_pages(body):
    with pytest.raises(DecodeError) as ei:
        decode_page("GET /zones page=1", Response(200, body), 1)
    assert ei.value.operation == "GET /zones page=1"
    assert ei.value.body == body


def test_null_result_is_empty_and_page_number_filled_in():
    page = decode_page("op", Response(200, b'{"result": null, "result_info": {}}'), 4)
    assert page.items == []
    assert page.info.page == 4  # noqa: PLR2004
    assert page.is_last(50)


def test_per_page_must_be_positive():
    with pytest.raises(ConfigurationError):
        next(iter_pages(MagicMock(), Request("GET", "/zones"), per_page=0))


@pytest.mark.asyncio
async def test_async_pages():
    responses = iter(
        [
            _page(list(range(50)), page=1, per_page=50, total_pages=2),
            _page(list(range(50, 60)), page=2, per_page=50, total_pages=2),
        ]
    )
    calls = []

    async def execute(request, operation):
        calls.append((request.params, operation))
        return next(responses)

    items = []
    async for page in aiter_pages(execute, Request("GET", "/zones"), operation="list zones"):
        items.extend(page.items)
    assert items == list(range(60))
    assert calls == [
        ({"page": 1, "per_page": 50}, "list zones page=1"),
        ({"page": 2, "per_page": 50}, "list zones page=2"),
    ]
