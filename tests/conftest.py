# Jewelry POS Test Suite - Shared Configuration and Fixtures
#
# This module provides:
# - An in-process app on an ephemeral SQLite file (one per test run)
# - An httpx client driving the app through WSGITransport (no server needed)
# - Failure message formatting
# - Test data factories (items, invoices, market rates)

import os
import sys
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, Generator, List, Optional, Any
from dataclasses import dataclass

import pytest
import httpx

# Add backend to path for imports
REPO_ROOT = Path(__file__).parent.parent
BACKEND_DIR = REPO_ROOT / "backend"
sys.path.insert(0, str(BACKEND_DIR))


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class TestConfig:
    """Test configuration with environment variable overrides."""
    base_url: str = "http://testserver"
    request_timeout: float = float(os.environ.get("TEST_REQUEST_TIMEOUT", "30"))
    invoice_prefix: str = os.environ.get("TEST_INVOICE_PREFIX", "INV")


# =============================================================================
# FAILURE MESSAGE HELPER
# =============================================================================

class TestFailure(Exception):
    """
    Custom exception with detailed, human-readable failure messages.

    Structure:
    1. Scenario: What was being tested
    2. Expected: What should have happened
    3. Actual: What actually happened
    4. Likely Cause: Most probable reason for failure
    5. Code Location: Where to look in the codebase
    """

    def __init__(
        self,
        scenario: str,
        expected: str,
        actual: str,
        likely_cause: str,
        code_location: str,
        response: Optional[httpx.Response] = None,
        extra_context: Optional[Dict[str, Any]] = None
    ):
        self.scenario = scenario
        self.expected = expected
        self.actual = actual
        self.likely_cause = likely_cause
        self.code_location = code_location
        self.response = response
        self.extra_context = extra_context or {}

        super().__init__(self._format_message())

    def _format_message(self) -> str:
        lines = [
            "",
            "=" * 80,
            "TEST FAILURE DETAILS",
            "=" * 80,
            f"SCENARIO: {self.scenario}",
            "-" * 80,
            f"EXPECTED: {self.expected}",
            f"ACTUAL: {self.actual}",
            "-" * 80,
            f"LIKELY CAUSE: {self.likely_cause}",
            f"CODE LOCATION: {self.code_location}",
        ]

        if self.response is not None:
            lines.extend([
                "-" * 80,
                f"HTTP STATUS: {self.response.status_code}",
                f"RESPONSE BODY: {self.response.text[:1000]}",
            ])

        if self.extra_context:
            lines.append("-" * 80)
            lines.append("EXTRA CONTEXT:")
            for key, value in self.extra_context.items():
                lines.append(f"  {key}: {value}")

        lines.append("=" * 80)
        return "\n".join(lines)


def assert_response(
    response: httpx.Response,
    expected_status: int,
    scenario: str,
    code_location: str,
    expected_body_contains: Optional[str] = None
):
    """
    Assert HTTP response status and optionally body content.
    Raises TestFailure with detailed message on failure.
    """
    if response.status_code != expected_status:
        raise TestFailure(
            scenario=scenario,
            expected=f"HTTP {expected_status}",
            actual=f"HTTP {response.status_code}",
            likely_cause=_infer_cause(response),
            code_location=code_location,
            response=response
        )

    if expected_body_contains and expected_body_contains not in response.text:
        raise TestFailure(
            scenario=scenario,
            expected=f"Response body contains: {expected_body_contains}",
            actual=f"Response body: {response.text[:500]}",
            likely_cause="Response format changed or wrong endpoint hit",
            code_location=code_location,
            response=response
        )


def _infer_cause(response: httpx.Response) -> str:
    """Infer likely cause from response status/body."""
    code = None
    try:
        code = response.json().get("code")
    except ValueError:
        pass

    if response.status_code == 404:
        return "Resource not found - wrong item/invoice id or number"
    elif response.status_code == 400:
        return "Invalid request - missing required field or validation failed"
    elif response.status_code == 409 and code == "insufficient_stock":
        return "Not enough stock for a sales line - check item stock setup"
    elif response.status_code == 409 and code == "invalid_transition":
        return "Status change not allowed for this invoice type/current status"
    elif response.status_code == 409:
        return "Conflict - business rule refused the request"
    elif response.status_code == 500 and code == "partial_commit":
        return "Invoice saved but stock not applied - run apply-stock"
    elif response.status_code == 500:
        return "Server error - check backend logs for stack trace"
    else:
        return f"Unexpected status code {response.status_code}"


# =============================================================================
# HTTP CLIENT
# =============================================================================

class APIClient:
    """
    HTTP client wrapper that talks to the Flask app in-process.
    """

    def __init__(self, app, base_url: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            transport=httpx.WSGITransport(app=app),
            base_url=self.base_url,
            timeout=timeout,
        )

    def _headers(self, extra: Optional[Dict] = None) -> Dict:
        headers = {"Content-Type": "application/json"}
        if extra:
            headers.update(extra)
        return headers

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.get(path, headers=self._headers(), params=params, **kwargs)

    def post(self, path: str, json: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.post(path, headers=self._headers(), json=json, **kwargs)

    def close(self):
        """Close the HTTP client."""
        self.client.close()


# =============================================================================
# TEST DATA FACTORY
# =============================================================================

class TestDataFactory:
    """
    Factory for creating test data via API calls.
    """

    def __init__(self, client: APIClient):
        self.client = client
        self._counter = 0

    def _next_id(self) -> int:
        self._counter += 1
        return self._counter

    def _expect(self, response: httpx.Response, status: int, scenario: str, code_location: str) -> Dict:
        if response.status_code == status:
            return response.json()
        raise TestFailure(
            scenario=scenario,
            expected=f"HTTP {status}",
            actual=f"HTTP {response.status_code}",
            likely_cause=_infer_cause(response),
            code_location=code_location,
            response=response
        )

    def create_item(
        self,
        stock: int = 5,
        name: Optional[str] = None,
        category: str = "ring",
        weight_grams: float = 4.5,
        materials: Optional[List[str]] = None,
    ) -> Dict:
        """Create a catalog item via API."""
        n = self._next_id()
        response = self.client.post("/api/items", json={
            "name": name or f"Test Ring {n}",
            "category": category,
            "weight_grams": weight_grams,
            "stock": stock,
            "materials": materials if materials is not None else ["22K Gold"],
        })
        return self._expect(
            response, 201, "Create test item", "backend/jewelry_pos/routes/items.py:create_item_route"
        )["item"]

    def sales_line(self, item: Dict, quantity: int = 1, price: str = "150000", discount: str = "0") -> Dict:
        return {
            "item_id": item["id"],
            "name": item["name"],
            "category": item["category"],
            "weight_grams": item["weight_grams"],
            "quantity": quantity,
            "price": price,
            "discount": discount,
        }

    def manual_line(self, name: str = "Gold chain", quantity: int = 1, price: str = "90000",
                    weight_grams: float = 8.0, item_id: Optional[int] = None) -> Dict:
        return {
            "item_id": item_id,
            "name": name,
            "weight_grams": weight_grams,
            "quantity": quantity,
            "price": price,
        }

    def invoice_payload(self, invoice_type: str, lines: List[Dict], **extra) -> Dict:
        payload = {
            "type": invoice_type,
            "customer_name": f"Customer {self._next_id()}",
            "customer_phone": "09-450-000-000",
            "lines": lines,
        }
        if invoice_type == "pawn" and "due_date" not in extra:
            payload["due_date"] = (date.today() + timedelta(days=30)).isoformat()
        payload.update(extra)
        return payload

    def create_invoice(self, invoice_type: str, lines: List[Dict], **extra) -> Dict:
        """Create an invoice via API."""
        response = self.client.post("/api/invoices", json=self.invoice_payload(invoice_type, lines, **extra))
        return self._expect(
            response, 201, f"Create {invoice_type} invoice",
            "backend/jewelry_pos/routes/invoices.py:create_invoice_route",
        )["invoice"]

    def get_item(self, item_id: int) -> Dict:
        response = self.client.get(f"/api/items/{item_id}")
        return self._expect(
            response, 200, "Fetch item", "backend/jewelry_pos/routes/items.py:get_item_route"
        )["item"]

    def record_rate(self, value: float, rate_type: str = "gold", rate_date: Optional[str] = None,
                    time: str = "10:00") -> Dict:
        response = self.client.post("/api/market-rates", json={
            "rate_type": rate_type,
            "rate_date": rate_date or date.today().isoformat(),
            "time": time,
            "value": value,
        })
        return self._expect(
            response, 201, "Record market rate", "backend/jewelry_pos/routes/market.py:record_rate_route"
        )["rate"]


# =============================================================================
# PYTEST FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def test_config() -> TestConfig:
    """Test configuration."""
    return TestConfig()


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    """Application on an ephemeral SQLite file shared by every request in the run."""
    from jewelry_pos import create_app
    from jewelry_pos.extensions import db

    db_file = tmp_path_factory.mktemp("jewelry_pos_test") / "test_jewelry_pos.sqlite3"
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_file}",
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture
def clean_db(app):
    """Empty every table before the test."""
    from jewelry_pos.extensions import db

    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()


@pytest.fixture
def client(app, clean_db, test_config: TestConfig) -> Generator[APIClient, None, None]:
    """API client against an empty database."""
    api = APIClient(app, test_config.base_url, timeout=test_config.request_timeout)
    yield api
    api.close()


@pytest.fixture
def factory(client: APIClient) -> TestDataFactory:
    """Test data factory."""
    return TestDataFactory(client)


# =============================================================================
# PYTEST HOOKS
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "smoke: Quick smoke tests for critical paths")
    config.addinivalue_line("markers", "full: Full regression tests")
    config.addinivalue_line("markers", "items: Catalog item tests")
    config.addinivalue_line("markers", "invoices: Invoice workflow tests")
    config.addinivalue_line("markers", "stock: Stock reconciliation tests")
    config.addinivalue_line("markers", "lifecycle: Invoice status lifecycle tests")
    config.addinivalue_line("markers", "pricing: Gold price calculator tests")
    config.addinivalue_line("markers", "market: Market rate tests")
