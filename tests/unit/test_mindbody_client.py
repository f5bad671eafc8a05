"""Tests for the MINDBODY client."""
import pytest
import requests

from membersync.core.mindbody import MindbodyAPIError, MindbodyClient, MindbodyTokenHolder
from membersync.core.tokens import TokenRefreshError


@pytest.fixture()
def tokens(monkeypatch, stub_response):
    issued = []

    def fake_post(url, **kwargs):
        issued.append((url, kwargs))
        return stub_response({"AccessToken": "mb-token", "TokenType": "Bearer"})

    monkeypatch.setattr(requests, "post", fake_post)
    holder = MindbodyTokenHolder("Siteowner", "pw", "mb-key", "-99", base_url="https://mb.test/v6")
    holder.issued = issued
    return holder


def test_first_request_issues_token(tokens, monkeypatch, stub_response):
    calls = []

    def fake_request(method, url, **kwargs):
        calls.append((method, url, kwargs))
        return stub_response({"Clients": [], "PaginationResponse": {"PageSize": 0, "TotalResults": 0}})

    monkeypatch.setattr(requests, "request", fake_request)

    assert MindbodyClient(tokens).list_clients() == []

    url, kwargs = tokens.issued[0]
    assert url == "https://mb.test/v6/usertoken/issue"
    assert kwargs["json"] == {"Username": "Siteowner", "Password": "pw"}
    headers = calls[0][2]["headers"]
    assert headers["Authorization"] == "mb-token"
    assert headers["Api-Key"] == "mb-key"
    assert headers["SiteId"] == "-99"


def test_list_clients_paginates(tokens, monkeypatch, stub_response):
    pages = [
        {"Clients": [{"Id": "a1"}, {"Id": "a2"}], "PaginationResponse": {"PageSize": 2, "TotalResults": 3}},
        {"Clients": [{"Id": "a3"}], "PaginationResponse": {"PageSize": 2, "TotalResults": 3}},
    ]
    offsets = []

    def fake_request(method, url, **kwargs):
        offsets.append(kwargs["params"]["offset"])
        return stub_response(pages.pop(0))

    monkeypatch.setattr(requests, "request", fake_request)

    clients = MindbodyClient(tokens, page_size=2).list_clients()

    assert [c["Id"] for c in clients] == ["a1", "a2", "a3"]
    assert offsets == [0, 2]


def test_page_size_capped_at_200(tokens):
    assert MindbodyClient(tokens, page_size=500).page_size == 200


def test_list_clients_honours_limit(tokens, monkeypatch, stub_response):
    page = {"Clients": [{"Id": f"a{i}"} for i in range(5)], "PaginationResponse": {"PageSize": 5, "TotalResults": 50}}
    monkeypatch.setattr(requests, "request", lambda method, url, **kw: stub_response(page))

    assert len(MindbodyClient(tokens, page_size=5).list_clients(limit=3)) == 3


def test_add_arrival(tokens, monkeypatch, stub_response):
    calls = []

    def fake_request(method, url, **kwargs):
        calls.append((method, url, kwargs))
        return stub_response({"ArrivalAdded": True})

    monkeypatch.setattr(requests, "request", fake_request)

    assert MindbodyClient(tokens).add_arrival("abc", 3) == {"ArrivalAdded": True}
    assert calls[0][0:2] == ("POST", "https://mb.test/v6/client/addarrival")
    assert calls[0][2]["json"] == {"ClientId": "abc", "LocationId": 3}


def test_error_response_raises(tokens, monkeypatch, stub_response):
    body = {"Error": {"Code": "InvalidClient", "Message": "Client not found"}}
    monkeypatch.setattr(requests, "request", lambda method, url, **kw: stub_response(body, 400))

    with pytest.raises(MindbodyAPIError, match="InvalidClient: Client not found"):
        MindbodyClient(tokens).add_arrival("abc", 3)


def test_token_issue_failure(monkeypatch, stub_response):
    monkeypatch.setattr(requests, "post", lambda url, **kw: stub_response({"Error": {}}, 401))
    holder = MindbodyTokenHolder("Siteowner", "bad", "mb-key", "-99")

    with pytest.raises(TokenRefreshError):
        MindbodyClient(holder).list_clients()
