from __future__ import annotations

from memory_wrapper.models.oauth_client import CLIENT_ID_PREFIX
from memory_wrapper.repos.oauth_client_repo import InMemoryOAuthClientRepo


def test_register_generates_credentials() -> None:
    repo = InMemoryOAuthClientRepo()
    client = repo.register(client_name="Test", redirect_uris=["http://a/cb"])
    assert client.client_id.startswith(CLIENT_ID_PREFIX)
    assert len(client.client_secret) == 32
    assert client.redirect_uris == ("http://a/cb",)
    assert client.grant_types == ("authorization_code",)
    assert client.token_endpoint_auth_method == "client_secret_basic"
    assert len(repo) == 1


def test_client_ids_are_unique() -> None:
    repo = InMemoryOAuthClientRepo()
    ids = {repo.register(client_name=f"c{i}").client_id for i in range(50)}
    assert len(ids) == 50


def test_describe_never_contains_the_secret() -> None:
    repo = InMemoryOAuthClientRepo()
    client = repo.register(client_name="Test", redirect_uris=["http://a/cb"])
    info = repo.describe(client.client_id)
    assert info is not None
    assert "client_secret" not in info
    assert client.client_secret not in repr(info)
    assert info["redirect_uris"] == ["http://a/cb"]


def test_describe_unknown_is_none() -> None:
    assert InMemoryOAuthClientRepo().describe("mcp_client_nope") is None


def test_authenticate() -> None:
    repo = InMemoryOAuthClientRepo()
    client = repo.register(client_name="Test")
    assert repo.authenticate(client.client_id, client.client_secret) == client
    assert repo.authenticate(client.client_id, "wrong") is None
    assert repo.authenticate("mcp_client_nope", client.client_secret) is None
