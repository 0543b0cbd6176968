from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from config_relay.errors import StoreUnavailable
from config_relay.impl.sql import Base, SqlPropertyStore, create_sql_property_store


@pytest.fixture
def session_maker(tmp_path: Path):
    engine = create_engine(f"sqlite:///{tmp_path / 'config.db'}")
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine)
    engine.dispose()


def test_commit_and_history(session_maker):
    store = create_sql_property_store(session_maker)
    v1 = store.commit({"a": "1"})
    v2 = store.commit_text("a=2\nb=3\n", message="Second")

    assert store.history() == [v2, v1]
    assert store.read().to_dict() == {"a": "2", "b": "3"}


def test_persists_across_instances(session_maker):
    SqlPropertyStore(session_maker).commit({"db.host": "localhost"})

    snapshot = SqlPropertyStore(session_maker).read()
    assert snapshot.to_dict() == {"db.host": "localhost"}


def test_heads_are_independent(session_maker):
    master = SqlPropertyStore(session_maker)
    dev = SqlPropertyStore(session_maker, head="dev")
    master.commit({"a": "1"})
    dev.commit({"a": "2"})

    assert master.read().get("a") == "1"
    assert dev.read().get("a") == "2"
    assert len(dev.history()) == 1


def test_missing_tables_are_unavailable(tmp_path: Path):
    engine = create_engine(f"sqlite:///{tmp_path / 'empty.db'}")
    try:
        store = SqlPropertyStore(sessionmaker(bind=engine))
        with pytest.raises(StoreUnavailable):
            store.read()
    finally:
        engine.dispose()
