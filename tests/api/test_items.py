# Jewelry POS API Tests - Catalog Items
#
# Tests for:
# - Item creation and validation
# - Item lookup
# - Catalog search (name / id, category, materials, stock status)
# - Paginated inventory listing

import pytest

from tests.conftest import APIClient, TestFailure, assert_response, TestDataFactory


class TestItemCreation:
    """Item create and read tests."""

    @pytest.mark.smoke
    @pytest.mark.items
    def test_create_item(self, client: APIClient):
        """
        SCENARIO: Staff adds a ring to the catalog
        EXPECTED: HTTP 201 with the stored item
        """
        response = client.post("/api/items", json={
            "name": "Lotus Ring",
            "category": "ring",
            "weight_grams": 4.25,
            "stock": 2,
            "materials": ["22K Gold", "Ruby", "22K Gold"],
        })

        assert_response(
            response, 201,
            scenario="Create item with valid data",
            code_location="backend/jewelry_pos/routes/items.py:create_item_route"
        )
        item = response.json()["item"]
        if item["materials"] != ["22K Gold", "Ruby"] or item["stock"] != 2:
            raise TestFailure(
                scenario="Materials are de-duplicated and stock stored",
                expected="materials=['22K Gold', 'Ruby'], stock=2",
                actual=f"materials={item['materials']}, stock={item['stock']}",
                likely_cause="normalize_materials or create_item changed",
                code_location="backend/jewelry_pos/services/catalog_service.py:create_item",
                response=response
            )

    @pytest.mark.items
    @pytest.mark.parametrize("payload", [
        {"category": "ring", "weight_grams": 4},
        {"name": "Ring", "category": "ring", "weight_grams": 0},
        {"name": "Ring", "category": "ring", "weight_grams": 4, "stock": -1},
        {"name": "Ring", "category": "ring", "weight_grams": 4, "sku": "X"},
    ])
    def test_create_item_validation(self, client: APIClient, payload):
        """
        SCENARIO: Missing name, zero weight, negative stock or unknown field
        EXPECTED: HTTP 400 with validation_error code
        """
        response = client.post("/api/items", json=payload)
        assert_response(
            response, 400,
            scenario="Reject invalid item payload",
            code_location="backend/jewelry_pos/routes/items.py:create_item_route",
            expected_body_contains="validation_error"
        )

    @pytest.mark.items
    def test_get_missing_item(self, client: APIClient):
        response = client.get("/api/items/9999")
        assert_response(
            response, 404,
            scenario="Fetch unknown item",
            code_location="backend/jewelry_pos/routes/items.py:get_item_route",
            expected_body_contains="not_found"
        )


class TestItemSearch:
    """Catalog search used by the invoice item picker."""

    @pytest.mark.items
    def test_search_filters(self, client: APIClient, factory: TestDataFactory):
        jade = factory.create_item(name="Jade Bangle", category="bracelet", materials=["Jade"])
        factory.create_item(name="Gold Bangle", category="bracelet", materials=["22K Gold"])
        factory.create_item(name="Jade Earring", category="earring", materials=["Jade", "Silver"])

        by_name = client.get("/api/items", params={"q": "bangle"}).json()
        assert by_name["count"] == 2

        by_category_and_material = client.get(
            "/api/items", params={"category": "bracelet", "materials": "jade"}
        ).json()
        assert [i["id"] for i in by_category_and_material["items"]] == [jade["id"]]

        by_materials = client.get("/api/items", params={"materials": "silver,gold"}).json()
        assert by_materials["count"] == 2

    @pytest.mark.items
    def test_stock_status_and_pagination(self, client: APIClient, factory: TestDataFactory):
        """
        SCENARIO: Inventory page filters out-of-stock items and pages the rest
        EXPECTED: Filtered items, pagination metadata and whole-catalog stats
        """
        sold_out = factory.create_item(stock=0)
        factory.create_item(stock=2)
        factory.create_item(stock=20)

        response = client.get("/api/items", params={"stock_status": "out-of-stock"})
        assert_response(
            response, 200,
            scenario="Filter items by stock status",
            code_location="backend/jewelry_pos/routes/items.py:list_items_route"
        )
        assert [i["id"] for i in response.json()["items"]] == [sold_out["id"]]

        paged = client.get("/api/items", params={"page": 2, "per_page": 2}).json()
        assert paged["count"] == 1
        assert paged["pagination"]["total"] == 3
        assert paged["pagination"]["has_prev"] is True
        assert paged["stats"] == {"total": 3, "low_stock": 1, "out_of_stock": 1}

        bad = client.get("/api/items", params={"stock_status": "plenty"})
        assert_response(
            bad, 400,
            scenario="Reject unknown stock status",
            code_location="backend/jewelry_pos/services/catalog_service.py:_stock_status_filter",
            expected_body_contains="validation_error"
        )
