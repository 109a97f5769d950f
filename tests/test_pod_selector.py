import pytest

from goldpinger.pod_selector import Rendezvous, select_pods, xxhash64

NODES = [f"goldpinger-{i}" for i in range(8)]


def test_xxhash64_known_vectors():
    assert xxhash64("") == 0xEF46DB3751D8E999
    assert xxhash64(b"abc") == 0x44BC2CF5AD770999


def test_xxhash64_str_and_bytes_agree_and_seed_matters():
    text = "a longer input that spans more than one thirty-two byte stripe"
    assert xxhash64(text) == xxhash64(text.encode("utf-8"))
    assert xxhash64(text, 1) != xxhash64(text, 0)
    assert 0 <= xxhash64(text) < 2**64


def test_lookup_returns_member_deterministically():
    ring = Rendezvous(NODES)
    winner = ring.lookup("some-key")
    assert winner in NODES
    assert Rendezvous(reversed(NODES)).lookup("some-key") == winner


def test_lookup_on_empty_ring():
    ring = Rendezvous()
    assert ring.lookup("k") is None
    assert ring.lookup_n("k", 3) == []


def test_lookup_n_ranks_distinct_nodes():
    ring = Rendezvous(NODES)
    picked = ring.lookup_n("key", 3)
    assert len(picked) == 3
    assert len(set(picked)) == 3
    assert picked[0] == ring.lookup("key")
    assert ring.lookup_n("key", 100) == ring.lookup_n("key", len(NODES))
    assert ring.lookup_n("key", 5)[:3] == picked


def test_lookup_n_rejects_negative():
    with pytest.raises(ValueError):
        Rendezvous(NODES).lookup_n("key", -1)


def test_remove_only_moves_keys_of_removed_node():
    ring = Rendezvous(NODES)
    keys = [f"key-{i}" for i in range(200)]
    before = {key: ring.lookup(key) for key in keys}
    removed = NODES[3]
    ring.remove(removed)
    for key in keys:
        after = ring.lookup(key)
        assert after != removed
        if before[key] != removed:
            assert after == before[key]
    with pytest.raises(KeyError):
        ring.remove(removed)


def test_select_pods_all_when_zero_or_too_many():
    pods = {name: object() for name in NODES}
    assert select_pods(pods, 0, "me") == pods
    assert select_pods(pods, len(pods), "me") == pods


def test_select_pods_picks_rendezvous_subset():
    pods = {name: name.upper() for name in NODES}
    chosen = select_pods(pods, 3, "goldpinger-0")
    assert len(chosen) == 3
    assert all(pods[name] == value for name, value in chosen.items())
    assert set(chosen) == set(Rendezvous(NODES).lookup_n("goldpinger-0", 3))
    reordered = dict(reversed(list(pods.items())))
    assert select_pods(reordered, 3, "goldpinger-0") == chosen