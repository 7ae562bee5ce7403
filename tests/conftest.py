"""
Pytest fixtures for portfolio tests.
"""

import io
import os
import tempfile

# Keep the app's database, templates and renditions out of the source tree
os.environ.setdefault("PORTFOLIO_DATA_DIR", tempfile.mkdtemp(prefix="portfolio-test-"))

import pytest
from PIL import Image
from sqlmodel import Session, SQLModel, create_engine


def make_image_bytes(size=(600, 400), color="red", mode="RGB", fmt="JPEG"):
    """Encode a solid image of the given size."""
    img = Image.new(mode, size, color=color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def owner():
    return "user-1"


@pytest.fixture
def engine(tmp_path):
    """Fixture providing a fresh SQLite database."""
    import models  # noqa: F401  registers the tables

    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False}
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def store(tmp_path):
    """Fixture providing a rendition store rooted in a temporary directory."""
    from store import RenditionStore

    return RenditionStore(tmp_path / "photos")


@pytest.fixture
def registry(session, owner):
    from sizes import load_registry

    return load_registry(session, owner)


@pytest.fixture
def sample_jpeg_bytes():
    """Fixture providing a small landscape JPEG."""
    return make_image_bytes((600, 400))


@pytest.fixture
def large_jpeg_bytes():
    """Fixture providing a 3000x2000 JPEG."""
    return make_image_bytes((3000, 2000), color="orange")


@pytest.fixture
def sample_png_bytes():
    """Fixture providing a PNG with transparency."""
    return make_image_bytes((300, 300), color=(255, 0, 0, 128), mode="RGBA", fmt="PNG")


@pytest.fixture
def gallery(session, owner):
    from models import Gallery

    gallery = Gallery(name="Landscapes", slug="landscapes", is_public=True, user_id=owner)
    session.add(gallery)
    session.commit()
    session.refresh(gallery)
    return gallery


@pytest.fixture
def make_photo(session, store, registry, sample_jpeg_bytes):
    """Factory uploading a photo through the normal upload path."""
    import photos

    def _make(title="Photo", data=None, **kwargs):
        return photos.upload(
            session,
            store,
            registry,
            data=data or sample_jpeg_bytes,
            filename=f"{title.lower()}.jpg",
            content_type="image/jpeg",
            title=title,
            **kwargs,
        )

    return _make


@pytest.fixture
def client(engine, monkeypatch):
    """Fixture providing a TestClient bound to the test database."""
    from fastapi.testclient import TestClient

    import database
    from app import app

    monkeypatch.setattr(database, "engine", engine)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def app_store():
    """The store the running app writes to and serves from."""
    import routes

    return routes.get_store()
