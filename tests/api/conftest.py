"""Test fixtures for API tests."""
import pytest
from fastapi.testclient import TestClient

from app.database import get_db
from app.main import app
from app.services.catalog import (
    CategoryFanoutCatalog,
    StaticCategorySource,
    get_product_catalog,
)
from app.services.proof_storage import ProofStorage, get_proof_storage


class MemoryProofStorage(ProofStorage):
    """Keeps uploaded proofs in a dict."""

    def __init__(self):
        self.files: dict[str, bytes] = {}

    def store(self, order_id, content, filename, content_type):
        ref = f"memory://{order_id}/{filename}"
        self.files[ref] = content
        return ref

    def delete(self, ref):
        self.files.pop(ref, None)


@pytest.fixture
def proof_storage():
    return MemoryProofStorage()


@pytest.fixture
def catalog():
    return CategoryFanoutCatalog([
        StaticCategorySource("chemical_drugs", {
            "DRUG-A": {"name": "Amoxicillin 500mg", "manufacturer": "Farabi"},
        }),
        StaticCategorySource("medical_supplies", {
            "DRUG-B": {"name": "Sterile Gauze", "manufacturer": "Supplies Co"},
        }),
        StaticCategorySource("natural_products", {}),
    ])


@pytest.fixture
def client(engine, db, proof_storage, catalog):
    """Create a TestClient with overridden database and collaborator dependencies.

    Requires both engine (to ensure tables are created) and db (the session).
    """

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_proof_storage] = lambda: proof_storage
    app.dependency_overrides[get_product_catalog] = lambda: catalog

    with TestClient(app) as test_client:
        yield test_client

    # Clean up
    app.dependency_overrides.clear()


@pytest.fixture
def headers_for(actor_factory):
    """Build X-Actor headers for a role."""
    def _headers(role):
        actor = actor_factory(role)
        return {"X-Actor-Id": str(actor.id), "X-Actor-Role": actor.role.value}
    return _headers
