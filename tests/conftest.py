import pytest

from errors import StoreError
from models import AssessmentSubmission
from registry import register_organization
from store import MemoryStore

# 2 domains, 3 questions: P1/P2 in "Carga" (P2 inverted), P3 in "Apoio"
SMALL_BANK = [
    {"domain": "Carga", "text": "Tenho tempo suficiente?", "inverted": False},
    {"domain": "Carga", "text": "Sinto-me esgotado?", "inverted": True},
    {"domain": "Apoio", "text": "Recebo apoio da chefia?", "inverted": False},
]

NOON_2024_03_15 = 1710504000000  # 2024-03-15T12:00:00Z


class FailingStore(MemoryStore):
    """Memory store whose writes fail like a dropped connection."""

    def create(self, collection, data):
        raise StoreError()


class NoQueryStore(MemoryStore):
    """Memory store that must not be queried."""

    def query(self, collection, filters=None):
        raise AssertionError("store was queried")


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def org_form():
    return {
        "name": "Transportes Rápidos",
        "cnpj": "12.345.678/0001-90",
        "employee_count": 10,
        "sectors": ["Logística", "Administrativo"],
        "functions": ["Motorista", "Analista"],
        "password": "s3nha",
        "confirm_password": "s3nha",
    }


@pytest.fixture
def org(store, org_form):
    return register_organization(store, org_form)


def make_submission(answers, sector="Logística", function="Motorista", org_id="org-1"):
    return AssessmentSubmission(
        organization_id=org_id,
        sector=sector,
        function=function,
        submitted_at=NOON_2024_03_15,
        answers=answers,
    )
