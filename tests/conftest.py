import io
import os
import sys
from pathlib import Path

import numpy as np
import pytest
from fastapi.testclient import TestClient
from PIL import Image

# Ensure project root is on sys.path so 'src' is importable during tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("SUPABASE_DISABLED", "1")
os.environ.setdefault("SUPABASE_STORAGE_LOCAL_DIR", ".local_storage")
os.environ.setdefault("SESSION_SECRET", "test-session-secret-that-is-long-enough-0123")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")


class RecordingLogger:
    """LogSink that keeps (level, event, fields) tuples."""

    def __init__(self):
        self.records = []

    def _log(self, level, event, **fields):
        self.records.append((level, event, fields))

    def info(self, event, **fields):
        self._log("info", event, **fields)

    def warning(self, event, **fields):
        self._log("warning", event, **fields)

    def error(self, event, **fields):
        self._log("error", event, **fields)

    def events(self, level=None):
        return [e for lvl, e, _ in self.records if level is None or lvl == level]


def gradient_array(width: int, height: int) -> np.ndarray:
    x = np.linspace(0, 255, width, dtype=np.float32)
    y = np.linspace(0, 255, height, dtype=np.float32)
    r = np.tile(x, (height, 1))
    g = np.tile(y[:, None], (1, width))
    b = (r + g) / 2.0
    return np.stack([r, g, b], axis=-1).astype(np.uint8)


@pytest.fixture()
def make_image():
    def _make(width=64, height=48, fmt="JPEG", **save_kwargs) -> bytes:
        img = Image.fromarray(gradient_array(width, height))
        buf = io.BytesIO()
        img.save(buf, format=fmt, **save_kwargs)
        return buf.getvalue()

    return _make


@pytest.fixture()
def make_noise_image():
    """JPEG of seeded random noise; barely compressible, so byte ceilings bite."""

    def _make(width, height, quality=95, seed=7) -> bytes:
        pixels = np.random.default_rng(seed).integers(0, 256, (height, width, 3), dtype=np.uint8)
        buf = io.BytesIO()
        Image.fromarray(pixels).save(buf, format="JPEG", quality=quality)
        return buf.getvalue()

    return _make


@pytest.fixture(autouse=True)
def _reset_memory_stores():
    from src.infrastructure.database.repositories import party_repository, photo_repository
    from src.infrastructure.storage import supabase_storage

    party_repository._MEM_PARTIES.clear()
    photo_repository._MEM_PHOTOS.clear()
    supabase_storage._LOCAL_TOKENS.clear()
    yield


@pytest.fixture()
def storage(tmp_path):
    from src.infrastructure.storage.supabase_storage import SupabaseStorage

    return SupabaseStorage(None, local_dir=tmp_path / "storage")


@pytest.fixture()
def parties():
    from src.infrastructure.database.repositories.party_repository import PartyRepository

    return PartyRepository(None)


@pytest.fixture()
def photos():
    from src.infrastructure.database.repositories.photo_repository import PhotoRepository

    return PhotoRepository(None)


@pytest.fixture()
def party_id(parties):
    return parties.create()


@pytest.fixture()
def session_token(party_id):
    from src.infrastructure.auth.session import create_session

    return create_session(party_id, "uploader-1")


@pytest.fixture()
def logger():
    return RecordingLogger()


@pytest.fixture()
def stored_paths(storage):
    """All object paths currently stored for a party."""
    from src.domain.entities.photo import party_folders

    def _paths(pid):
        return sorted(obj.path for folder in party_folders(pid) for obj in storage.list(folder))

    return _paths


@pytest.fixture(scope="session")
def client() -> TestClient:
    # lazy import after env configured
    from src.main import create_app

    app = create_app()
    return TestClient(app)
