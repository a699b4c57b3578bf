import json

import httpx
import pytest

from pipbin.classifier import LanguageClassifier
from pipbin.database import InMemoryStore, PasteDatabase
from pipbin.ingest import IngestionPipeline

GUESSLANG_URL = "http://guesslang.test"
APP_DOMAIN = "https://host"


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def db(store):
    return PasteDatabase(store)


@pytest.fixture
def make_classifier():
    """Build a classifier whose HTTP calls are answered by ``handler``."""

    def factory(handler):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return LanguageClassifier(GUESSLANG_URL, client=client)

    return factory


@pytest.fixture
def answering(make_classifier):
    """Build a classifier that always answers with ``language``."""

    def factory(language):
        def handler(request):
            return httpx.Response(200, content=json.dumps({"language": language}))

        return make_classifier(handler)

    return factory


@pytest.fixture
def make_pipeline(db):
    def factory(classifier, max_bytes=512 * 1024, database=None):
        return IngestionPipeline(database or db, classifier, APP_DOMAIN, max_bytes)

    return factory
