from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from labpulse.db.base import Base
from labpulse.db.session import configure_engine, get_engine
from labpulse.main import app


@pytest.fixture()
def client(tmp_path: Path) -> TestClient:
    database_url = f"sqlite:///{tmp_path / 'test_labpulse.db'}"
    configure_engine(database_url)
    engine = get_engine()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    with TestClient(app) as test_client:
        yield test_client

    Base.metadata.drop_all(bind=engine)
