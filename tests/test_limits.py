import json

import httpx
import pytest

from swift_obst import DecodingError, LimitsClient, ServiceConfig, TransportError, limits

from .conftest import IDENTITY_ENDPOINT

FIRST_LIMIT = {
    "id": "25a04c7a065c430590881c646cdcdd58",
    "service_id": "9408080f1970482aa0e38bc2d4ea34b7",
    "project_id": "3a705b9f56bb439381b43c4fe59dccce",
    "region_id": "RegionOne",
    "resource_name": "snapshot",
    "resource_limit": 5,
    "description": "Number of snapshots for project 3a705b9f56bb439381b43c4fe59dccce",
    "links": {"self": "http://localhost:5000/v3/limits/25a04c7a065c430590881c646cdcdd58"},
}

SECOND_LIMIT = {
    "id": "3229b3849f584faea483d6851f7aab05",
    "service_id": "9408080f1970482aa0e38bc2d4ea34b7",
    "domain_id": "everywhere",
    "resource_name": "volume",
    "resource_limit": 10,
    "description": None,
    "links": {"self": "http://localhost:5000/v3/limits/3229b3849f584faea483d6851f7aab05"},
}


def paged_handler(request):
    assert request.method == "GET"
    assert request.url.path == "/v3/limits"
    if request.url.params.get("page") == "2":
        return httpx.Response(200, json={"limits": [SECOND_LIMIT], "links": {"next": None}})
    return httpx.Response(
        200,
        json={
            "limits": [FIRST_LIMIT],
            "links": {"next": IDENTITY_ENDPOINT + "limits?page=2", "previous": None},
        },
    )


def test_list_follows_next_links(make_client):
    client = make_client(paged_handler, endpoint=IDENTITY_ENDPOINT)

    pages = list(limits.list_limits(client))

    assert len(pages) == 2
    collected = [limit for page in pages for limit in limits.extract_limits(page)]
    assert [limit.resource_name for limit in collected] == ["snapshot", "volume"]
    assert collected[0] == limits.Limit.from_dict(FIRST_LIMIT)
    assert collected[1].description == ""
    assert collected[1].domain_id == "everywhere"


def test_list_filters(make_client):
    def handler(request):
        assert request.url.params["service_id"] == "svc"
        assert request.url.params["resource_name"] == "snapshot"
        assert "project_id" not in request.url.params
        return httpx.Response(200, json={"limits": [], "links": {}})

    client = make_client(handler, endpoint=IDENTITY_ENDPOINT)

    pager = limits.list_limits(client, limits.ListOpts(service_id="svc", resource_name="snapshot"))

    assert pager.all_pages() == []
    assert len(client.recorder.requests) == 1


def test_get_limit(make_client):
    def handler(request):
        assert request.url.path == "/v3/limits/25a04c7a065c430590881c646cdcdd58"
        return httpx.Response(200, json={"limit": FIRST_LIMIT})

    client = make_client(handler, endpoint=IDENTITY_ENDPOINT)

    limit = limits.get_limit(client, FIRST_LIMIT["id"])

    assert limit.resource_limit == 5
    assert limit.region_id == "RegionOne"


def test_create_limits(make_client):
    def handler(request):
        assert request.method == "POST"
        body = json.loads(request.content)
        assert body == {
            "limits": [
                {
                    "service_id": "9408080f1970482aa0e38bc2d4ea34b7",
                    "project_id": "3a705b9f56bb439381b43c4fe59dccce",
                    "region_id": "RegionOne",
                    "resource_name": "snapshot",
                    "resource_limit": 5,
                }
            ]
        }
        return httpx.Response(201, json={"limits": [FIRST_LIMIT]})

    client = make_client(handler, endpoint=IDENTITY_ENDPOINT)

    created = limits.create_limits(
        client,
        [
            limits.CreateOpts(
                service_id="9408080f1970482aa0e38bc2d4ea34b7",
                project_id="3a705b9f56bb439381b43c4fe59dccce",
                region_id="RegionOne",
                resource_name="snapshot",
                resource_limit=5,
            )
        ],
    )

    assert [limit.id for limit in created] == [FIRST_LIMIT["id"]]


def test_update_limit_sends_only_set_fields(make_client):
    def handler(request):
        assert request.method == "PATCH"
        assert json.loads(request.content) == {"limit": {"resource_limit": 0}}
        return httpx.Response(200, json={"limit": dict(FIRST_LIMIT, resource_limit=0)})

    client = make_client(handler, endpoint=IDENTITY_ENDPOINT)

    limit = limits.update_limit(client, FIRST_LIMIT["id"], limits.UpdateOpts(resource_limit=0))

    assert limit.resource_limit == 0


def test_delete_limit(make_client):
    client = make_client(lambda request: httpx.Response(204), endpoint=IDENTITY_ENDPOINT)

    assert limits.delete_limit(client, FIRST_LIMIT["id"]) is None
    assert client.recorder.requests[0].method == "DELETE"


def test_delete_limit_unexpected_status(make_client):
    client = make_client(lambda request: httpx.Response(404), endpoint=IDENTITY_ENDPOINT)

    with pytest.raises(TransportError) as excinfo:
        limits.delete_limit(client, "missing")
    assert excinfo.value.code == "404"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"limits": []}),
        httpx.Response(200, json={"limit": "nope"}),
    ],
)
def test_get_limit_decoding_errors(make_client, response):
    client = make_client(lambda request: response, endpoint=IDENTITY_ENDPOINT)

    with pytest.raises(DecodingError):
        limits.get_limit(client, "x")


def test_limits_client_methods():
    def handler(request):
        if request.method == "DELETE":
            return httpx.Response(204)
        if request.url.path.endswith(FIRST_LIMIT["id"]):
            return httpx.Response(200, json={"limit": FIRST_LIMIT})
        return paged_handler(request)

    config = ServiceConfig(endpoint=IDENTITY_ENDPOINT, token="t")
    with LimitsClient(config, transport=httpx.MockTransport(handler)) as client:
        assert [limit.id for limit in client.list_all()] == [FIRST_LIMIT["id"], SECOND_LIMIT["id"]]
        assert client.get(FIRST_LIMIT["id"]).resource_limit == 5
        client.delete(SECOND_LIMIT["id"])
        assert repr(client) == f"LimitsClient(endpoint={IDENTITY_ENDPOINT!r})"
