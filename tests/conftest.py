# pyright: reportUnusedFunction=false
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from teamchat.core.config import Settings  # noqa: E402
from teamchat.main import create_app  # noqa: E402


@pytest.fixture
def chat_settings(tmp_path: Path) -> Settings:
    return Settings(
        env="dev",
        log_level="WARNING",
        storage_backend="memory",
        openai_mode="fake",
        uploads_dir=tmp_path / "uploads",
    )


@pytest.fixture
def chat_app(chat_settings: Settings) -> FastAPI:
    return create_app(chat_settings)


@pytest.fixture
def client(chat_app: FastAPI) -> Iterator[TestClient]:
    with TestClient(chat_app) as c:
        yield c
