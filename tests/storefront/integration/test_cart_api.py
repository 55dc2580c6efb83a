"""Integration tests for catalog and cart endpoints via TestClient."""


class TestCatalogAPI:
    def test_list_products(self, client):
        response = client.get("/products")
        assert response.status_code == 200
        titles = [product["title"] for product in response.json()]
        assert titles == ["Dragon", "Corn Cob", "Bee Hive"]

    def test_get_product(self, client):
        response = client.get("/products/3")
        assert response.status_code == 200
        assert response.json()["price_minor_units"] == 2200

    def test_unknown_product_returns_404(self, client):
        assert client.get("/products/404").status_code == 404


class TestCartAPI:
    def test_new_session_has_empty_cart(self, client):
        response = client.get("/sessions/s-empty/cart")
        assert response.status_code == 200
        assert response.json() == {"lines": [], "total": 0, "item_count": 0}

    def test_add_catalog_product(self, client):
        response = client.post("/sessions/s1/cart/lines", json={"product_id": "1", "quantity": 2})
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 3000
        assert body["lines"][0]["title"] == "Dragon"

    def test_add_unknown_product_returns_404(self, client):
        response = client.post("/sessions/s1/cart/lines", json={"product_id": "404"})
        assert response.status_code == 404

    def test_add_product_record(self, client):
        response = client.post(
            "/sessions/s1/cart/lines",
            json={"product_id": "x-1", "title": "Gift card", "price_minor_units": 5000},
        )
        assert response.json()["total"] == 5000

    def test_set_quantity(self, client):
        client.post("/sessions/s1/cart/lines", json={"product_id": "1"})
        response = client.put("/sessions/s1/cart/lines/1", json={"quantity": 4})
        assert response.json()["item_count"] == 4

    def test_set_quantity_zero_removes_line(self, client):
        client.post("/sessions/s1/cart/lines", json={"product_id": "1"})
        response = client.put("/sessions/s1/cart/lines/1", json={"quantity": 0})
        assert response.json()["lines"] == []

    def test_remove_line(self, client):
        client.post("/sessions/s1/cart/lines", json={"product_id": "1"})
        client.post("/sessions/s1/cart/lines", json={"product_id": "2"})
        response = client.delete("/sessions/s1/cart/lines/1")
        assert [line["product_id"] for line in response.json()["lines"]] == ["2"]

    def test_clear_cart(self, client):
        client.post("/sessions/s1/cart/lines", json={"product_id": "1"})
        response = client.delete("/sessions/s1/cart")
        assert response.json()["item_count"] == 0

    def test_sessions_have_separate_carts(self, client):
        client.post("/sessions/s1/cart/lines", json={"product_id": "1"})
        assert client.get("/sessions/s2/cart").json()["item_count"] == 0
