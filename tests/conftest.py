"""
Shared pytest fixtures for vibe-templates tests.

Builds a small template corpus under tmp_path and provides fake embedding
providers that stand in for the network backends.
"""

import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from vibe_templates.services.embedding_service import EmbeddingProvider
from vibe_templates.services.search_service import SearchService
from vibe_templates.services.template_service import TemplateService
from vibe_templates.services.vector_index import TemplateVectorIndex


GOOGLE_ID = "typescript/nextjs/auth/nextauth-google"
STRIPE_ID = "typescript/nextjs/payment/stripe-checkout"
SQLALCHEMY_ID = "python/fastapi/database/sqlalchemy-setup"

# Corpus scan order is directory-name order
ALL_IDS = [SQLALCHEMY_ID, GOOGLE_ID, STRIPE_ID]


def make_metadata(template_id: str, name: str, description: str, tags: List[str], /, **overrides) -> Dict[str, Any]:
    language, framework, category, _ = template_id.split("/")
    data = {
        "id": template_id,
        "name": name,
        "description": description,
        "version": "1.0.0",
        "category": category,
        "language": language,
        "framework": framework,
        "dependencies": {"example-lib": "^1.0.0"},
        "envVariables": [
            {
                "name": "EXAMPLE_SECRET",
                "description": "Secret used by the template",
                "required": True,
                "example": "sk_test_123",
            },
            {
                "name": "EXAMPLE_DEBUG",
                "description": "Verbose output",
                "required": False,
            },
        ],
        "files": [{"path": "lib/main.ts", "description": "Main module", "isRequired": True}],
        "tags": tags,
        "usage": {
            "installation": "npm install example-lib",
            "configuration": "Set EXAMPLE_SECRET in .env.local",
            "example": "import { main } from './lib/main'",
        },
        "author": "vibe-templates",
        "createdAt": "2024-01-15",
        "updatedAt": "2024-02-01",
    }
    data.update(overrides)
    return data


def write_template(
    root: Path,
    template_id: str,
    metadata: Optional[Dict[str, Any]] = None,
    files: Optional[Dict[str, str]] = None,
    single_file: Optional[str] = None,
    readme: bool = True,
    raw_metadata: Optional[str] = None,
) -> Path:
    """Write one template directory; returns its path."""
    template_dir = root.joinpath(*template_id.split("/"))
    template_dir.mkdir(parents=True, exist_ok=True)

    if raw_metadata is not None:
        (template_dir / "metadata.json").write_text(raw_metadata, encoding="utf-8")
    elif metadata is not None:
        (template_dir / "metadata.json").write_text(json.dumps(metadata, indent=2), encoding="utf-8")

    if files:
        for relative_path, content in files.items():
            file_path = template_dir / "files" / relative_path
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(content, encoding="utf-8")

    if single_file is not None:
        (template_dir / "template.ts").write_text(single_file, encoding="utf-8")

    if readme:
        (template_dir / "README.md").write_text(f"# {template_id}\n", encoding="utf-8")

    return template_dir


def write_embeddings(root: Path, embeddings: Dict[str, List[float]], model: str = "keyword-test") -> Path:
    path = root / "embeddings.json"
    path.write_text(json.dumps({
        "embeddings": embeddings,
        "generatedAt": "2024-02-01T00:00:00Z",
        "model": model,
    }), encoding="utf-8")
    return path


class KeywordEmbeddingProvider(EmbeddingProvider):
    """
    Fake provider: one dimension per vocabulary word, value = occurrences.

    Records every call and the peak number of concurrent calls.
    """

    provider_name = "keyword"
    VOCABULARY = ["auth", "google", "oauth", "stripe", "payment", "checkout",
                  "database", "sqlalchemy", "postgres"]

    def __init__(self, available: bool = True, delay: float = 0.0, fail_on: Optional[str] = None):
        super().__init__("keyword-test", cache_size=0)
        self.available = available
        self.delay = delay
        self.fail_on = fail_on
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def is_available(self) -> bool:
        return self.available

    def _embed(self, text: str):
        with self._lock:
            self.calls.append(text)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if self.fail_on is not None and self.fail_on in text:
                raise RuntimeError("rate limited")
            lowered = text.lower()
            return [float(lowered.count(word)) for word in self.VOCABULARY]
        finally:
            with self._lock:
                self.in_flight -= 1


@pytest.fixture
def templates_dir(tmp_path):
    """
    Create a three-template corpus.

    - nextauth-google: multi-file body under files/
    - stripe-checkout: single template.ts body
    - sqlalchemy-setup: python/fastapi, multi-file body
    """
    root = tmp_path / "templates"
    root.mkdir()

    write_template(
        root, GOOGLE_ID,
        make_metadata(
            GOOGLE_ID, "NextAuth Google OAuth",
            "Google sign-in for Next.js with NextAuth",
            ["auth", "nextauth", "google", "oauth"],
            files=[
                {"path": "auth.ts", "description": "NextAuth config", "isRequired": True},
                {"path": "app/api/auth/[...nextauth]/route.ts", "description": "Route handler",
                 "isRequired": True},
            ],
            relatedTemplates=[STRIPE_ID],
        ),
        files={
            "auth.ts": "export const authOptions = {};\n",
            "app/api/auth/[...nextauth]/route.ts": "export { handler as GET };\n",
        },
    )
    write_template(
        root, STRIPE_ID,
        make_metadata(
            STRIPE_ID, "Stripe Checkout",
            "Stripe checkout session with webhook handling",
            ["stripe", "payment", "checkout"],
            files=[{"path": "template.ts", "description": "Checkout route", "isRequired": True}],
        ),
        single_file="export async function POST() {}\n",
    )
    write_template(
        root, SQLALCHEMY_ID,
        make_metadata(
            SQLALCHEMY_ID, "SQLAlchemy Setup",
            "Async SQLAlchemy engine and session for FastAPI",
            ["database", "sqlalchemy", "postgres"],
            files=[{"path": "db.py", "description": "Engine and session", "isRequired": True}],
        ),
        files={"db.py": "engine = None\n"},
    )
    return root


@pytest.fixture
def template_service(templates_dir):
    return TemplateService(templates_dir)


@pytest.fixture
def keyword_provider():
    return KeywordEmbeddingProvider()


@pytest.fixture
def lexical_search(template_service):
    """SearchService without an embedding provider."""
    index = TemplateVectorIndex(template_service, provider=None)
    return SearchService(template_service, index)


@pytest.fixture
def vector_search(template_service, keyword_provider):
    """SearchService backed by the keyword provider."""
    index = TemplateVectorIndex(template_service, provider=keyword_provider)
    return SearchService(template_service, index)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every environment variable the server reads."""
    for name in [
        "VIBE_TEMPLATES_PROJECT_ROOT",
        "VIBE_TEMPLATES_DIR",
        "VIBE_TEMPLATES_LOG_LEVEL",
        "VIBE_TEMPLATES_EMBEDDING_PROVIDER",
        "VIBE_TEMPLATES_EMBEDDING_MODEL",
        "VIBE_TEMPLATES_EMBEDDING_BATCH_SIZE",
        "VIBE_TEMPLATES_EMBEDDING_CACHE_SIZE",
        "VIBE_TEMPLATES_EAGER_INIT",
        "OPENAI_API_KEY",
        "VOYAGE_API_KEY",
    ]:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def log_records():
    """Records logged under the vibe_templates namespace, which does not propagate to root."""
    records: List[logging.LogRecord] = []

    class ListHandler(logging.Handler):
        def emit(self, record):
            records.append(record)

    handler = ListHandler(level=logging.DEBUG)
    logger = logging.getLogger("vibe_templates")
    logger.addHandler(handler)
    yield records
    logger.removeHandler(handler)
