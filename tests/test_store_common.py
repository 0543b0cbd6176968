from pathlib import Path

import pytest

from config_relay.errors import StoreUnavailable


def test_store_without_commits_is_unavailable(tmp_path: Path, store_provider):
    store = store_provider.create(tmp_path)

    with pytest.raises(StoreUnavailable):
        store.read()


def test_store_reads_head(tmp_path: Path, store_provider):
    store = store_provider.create(tmp_path)
    version = store_provider.commit("foo.bar=Hi!\n")

    snapshot = store.read()
    assert snapshot.to_dict() == {"foo.bar": "Hi!"}
    assert snapshot.version == version


def test_store_sees_new_commit(tmp_path: Path, store_provider):
    store = store_provider.create(tmp_path)
    v1 = store_provider.commit("foo.bar=Hi!\n")
    first = store.read()

    v2 = store_provider.commit("foo.bar=Change!\nother=1\n")
    second = store.read()

    assert v1 != v2
    assert first.version == v1
    assert second.version == v2
    assert second.to_dict() == {"foo.bar": "Change!", "other": "1"}
    assert first.diff(second) == ["foo.bar", "other"]


def test_store_read_is_repeatable(tmp_path: Path, store_provider):
    store = store_provider.create(tmp_path)
    store_provider.commit("a=1\nb=2\n")

    assert store.read() == store.read()


def test_store_preserves_order(tmp_path: Path, store_provider):
    store = store_provider.create(tmp_path)
    store_provider.commit("z=1\na=2\nm=3\n")

    assert store.read().keys() == ["z", "a", "m"]


def test_store_skips_malformed_lines(tmp_path: Path, store_provider):
    store = store_provider.create(tmp_path)
    store_provider.commit("a=1\nnot_a_property_line\nb=2\n")

    assert store.read().to_dict() == {"a": "1", "b": "2"}
