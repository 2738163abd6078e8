import base64
import threading
import time

import pytest
from fastapi.testclient import TestClient

from faceauth.credentials import CredentialHasher
from faceauth.database import create_engine, create_session_maker, init_db, close_db
from faceauth.exceptions import NoFaceDetected
from faceauth.main import create_app
from faceauth.matcher import Matcher
from faceauth.pipelines import RegistrationPipeline, VerificationPipeline
from faceauth.workers import ExtractionPool

DIM = 128

ALICE_FACE = [0.1] * DIM
# Same person, slightly different capture: distance 0.3
ALICE_FACE_2 = [0.4] + [0.1] * (DIM - 1)
# Different person: distance sqrt(128 * 0.16) ~ 4.5
BOB_FACE = [0.5] * DIM

ALICE_PHOTO = b"alice-photo-1"
ALICE_PHOTO_2 = b"alice-photo-2"
BOB_PHOTO = b"bob-photo"
NO_FACE_PHOTO = b"landscape-without-people"
SHORT_EMBEDDING_PHOTO = b"model-with-wrong-dimension"

FACES = {
    ALICE_PHOTO: ALICE_FACE,
    ALICE_PHOTO_2: ALICE_FACE_2,
    BOB_PHOTO: BOB_FACE,
    SHORT_EMBEDDING_PHOTO: [0.1] * 64,
}


class FakeExtractor:
    """Maps known photo bytes to fixed embeddings; anything else has no face."""

    def __init__(self, faces=None, delay: float = 0.0):
        self.faces = dict(FACES if faces is None else faces)
        self.delay = delay
        self.loaded = False
        self.calls = []
        self._lock = threading.Lock()

    def load(self):
        self.loaded = True

    def extract(self, image_bytes: bytes):
        with self._lock:
            self.calls.append(image_bytes)
        if self.delay:
            time.sleep(self.delay)
        if image_bytes not in self.faces:
            raise NoFaceDetected()
        return list(self.faces[image_bytes])


def data_url(raw: bytes, media_type: str = "image/jpeg") -> str:
    return f"data:{media_type};base64," + base64.b64encode(raw).decode("ascii")


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'identities.db'}"


@pytest.fixture
async def engine(database_url):
    engine = create_engine(database_url)
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def extractor():
    extractor = FakeExtractor()
    extractor.load()
    return extractor


@pytest.fixture
def extraction_pool(extractor):
    pool = ExtractionPool(extractor, max_workers=2, max_pending=4, timeout=5)
    pool.start()
    yield pool
    pool.shutdown()


@pytest.fixture
def hasher():
    # Few iterations keep the suite fast
    return CredentialHasher(hash_credentials=True, iterations=1000)


@pytest.fixture
def registration(extraction_pool, hasher):
    return RegistrationPipeline(extraction_pool, hasher, embedding_dim=DIM)


@pytest.fixture
def verification(extraction_pool, hasher):
    return VerificationPipeline(extraction_pool, hasher, Matcher(threshold=0.6))


@pytest.fixture
def make_client(database_url):
    clients = []

    def _make(extractor=None, **options):
        app = create_app(
            database_url=database_url,
            extractor=extractor or FakeExtractor(),
            credentials=CredentialHasher(hash_credentials=True, iterations=1000),
            **options
        )
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()
