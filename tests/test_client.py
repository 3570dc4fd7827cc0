import pytest

import shardis


def test_set_get(client, server):
    assert client.set("foo", {"bar": [1, 2]})
    assert client.get("foo") == {"bar": [1, 2]}
    assert client.get("missing") is None

    node = client.get_connection_by_key_name("foo")
    assert b"test:foo" in server.data[node]


def test_set_with_expire_is_one_command(client, server):
    client.set("foo", "bar", expire=10)
    assert server.verbs == [b"SETEX"]
    assert client.get_lifetime("foo") == 10


def test_set_with_zero_expire_never_expires(client, server):
    assert client.set("foo", "bar", expire=0)
    assert server.verbs == [b"SET"]
    assert client.get("foo") == "bar"
    assert client.get_lifetime("foo") is None


def test_delete_exists(client):
    client.set("to_be_deleted", "xxxx")
    assert client.exists("to_be_deleted")
    assert client.delete("to_be_deleted")
    assert not client.exists("to_be_deleted")
    assert not client.delete("to_be_deleted")


def test_get_type(client):
    client.set("string", "x")
    client.set_to_hash("hash", "field", "x")
    assert client.get_type("string") == "string"
    assert client.get_type("hash") == "hash"
    assert client.get_type("missing") == "none"


def test_expire(client, server):
    assert not client.expire("missing", 10)
    client.set("foo", "bar")
    assert client.get_lifetime("foo") is None
    assert client.expire("foo", 10)
    assert client.get_lifetime("foo") == 10
    assert server.requests[-2].args == [b"EXPIRE", b"test:foo", b"10"]


def test_keys_are_spread_over_servers(client, server):
    for i in range(100):
        client.set("key%d" % i, i)

    assert len(server.data) == 3
    for node, keys in server.data.items():
        for key in keys:
            name = key.decode()[len("test:"):]
            assert client.get_connection_by_key_name(name) == node


def test_on(client, server):
    pinned = client.on("S2")
    for i in range(10):
        pinned.set("key%d" % i, i)
    assert {node.alias for node in server.data} == {"S2"}
    assert pinned.get("key3") == 3

    # The original client keeps hashing.
    assert client.get_connection_by_key_name("key3") == client._router.resolve(
        "test:key3"
    )

    with pytest.raises(shardis.UnknownConnection):
        client.on("S4")


def test_hash_operations(client):
    assert client.set_to_hash("h", {"a": "x", "b": 1})
    assert client.get_from_hash("h", "a") == "x"
    assert client.get_from_hash("h", ["a", "b", "c"]) == {"a": "x", "b": 1, "c": None}
    assert client.increment_in_hash("h", "b", 2) == 3
    assert client.exists_in_hash("h", "a")
    assert client.get_hash_fields("h") == ["a", "b"]
    assert client.get_hash_values("h") == ["x", 3]
    assert client.get_hash("h") == {"a": "x", "b": 3}
    assert client.get_hash_length("h") == 2
    assert client.delete_from_hash("h", "a")
    assert not client.delete_from_hash("h", "a")
    assert client.get_hash("missing") == {}


def test_set_to_hash_overwrite(client):
    assert client.set_to_hash("h", "a", "x")
    assert client.set_to_hash("h", "a", "y")
    assert not client.set_to_hash("h", "a", "z", overwrite=False)
    assert client.get_from_hash("h", "a") == "y"
    assert client.set_to_hash("h", "b", "z", overwrite=False)


def test_transport_error_propagates(client, server):
    server.fail_on = b"GET"
    with pytest.raises(shardis.TransportError):
        client.get("foo")


def test_response_error_propagates(client):
    client.set_to_hash("h", "name", "alice")
    with pytest.raises(shardis.ResponseError):
        client.increment_in_hash("h", "name")


def test_decode_error_propagates(client, server):
    node = client.get_connection_by_key_name("foo")
    server.data[node][b"test:foo"] = b"{broken"
    with pytest.raises(shardis.DecodeError):
        client.get("foo")


def test_custom_serializer(server, servers):
    client = shardis.Shardis(
        servers,
        serializer=shardis.NumericSerializer(shardis.PickleSerializer()),
        transport=server,
    )
    client.set("foo", {"a", "b"})
    assert client.get("foo") == {"a", "b"}


def test_invalid_server_version(server):
    with pytest.raises(shardis.InvalidArgument):
        shardis.Shardis(server_version="latest", transport=server)


def test_server_version_equivalence(server, servers):
    client = shardis.Shardis(servers, server_version="2", transport=server)
    assert client.set("foo", "bar", expire=10)


def test_socket_timeout_reaches_transport():
    client = shardis.Shardis(socket_timeout=2.5)
    assert client._transport._socket_timeout == 2.5
