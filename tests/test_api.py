"""HTTP tests for the storefront API via httpx's ASGI transport."""

import httpx

from api.app import create_app
from api.auth import EMAIL_HEADER, ROLE_HEADER, USER_ID_HEADER
from db import crud
from db_case import ADMIN, ALICE, BOB, DbTestCase


def headers_for(principal):
    headers = {USER_ID_HEADER: principal.user_id}
    if principal.email:
        headers[EMAIL_HEADER] = principal.email
    if principal.role:
        headers[ROLE_HEADER] = principal.role
    return headers


class ApiTestCase(DbTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.app = create_app()
        self.client = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=self.app), base_url="http://testserver"
        )
        self.addAsyncCleanup(self.client.aclose)

    async def checkout(self, principal, items, address="12 Market St", method="cod"):
        return await self.client.post(
            "/orders",
            json={"items": items, "address": address, "paymentMethod": method},
            headers=headers_for(principal),
        )

    # ---------- catalog ----------

    async def test_products(self):
        pid = await self.make_product("Espresso", "2.50", 4, image_url="/img/e.jpg")
        response = await self.client.get("/products")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(),
            [
                {
                    "id": pid,
                    "name": "Espresso",
                    "category": "",
                    "price": 2.5,
                    "stock": 4,
                    "description": "",
                    "image_url": "/img/e.jpg",
                }
            ],
        )
        self.assertEqual((await self.client.get(f"/products/{pid}")).json()["id"], pid)

        missing = await self.client.get("/products/9999")
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json(), {"error": "Product not found"})

    # ---------- checkout ----------

    async def test_checkout_success(self):
        pid = await self.make_product(price="100.00", stock=10)
        response = await self.checkout(ALICE, [{"id": pid, "quantity": 3, "price": 1}])
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertIsInstance(body["orderId"], int)
        self.assertEqual(
            {k: v for k, v in body.items() if k != "orderId"},
            {
                "email": "alice@example.com",
                "subtotal": 300.0,
                "taxRate": 0.08,
                "totalAmount": 324.0,
                "status": "pending",
                "paymentMethod": "cod",
            },
        )
        self.assertEqual(await crud.product_stock(pid), 7)

    async def test_checkout_accepts_product_id_key(self):
        pid = await self.make_product(price="1.00", stock=10)
        response = await self.checkout(
            ALICE, [{"product_id": pid, "quantity": 2}, {"id": pid, "quantity": 3}]
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["subtotal"], 5.0)

    async def test_checkout_requires_identity(self):
        pid = await self.make_product(stock=10)
        response = await self.client.post(
            "/orders",
            json={"items": [{"id": pid, "quantity": 1}], "address": "x", "paymentMethod": "cod"},
        )
        self.assertEqual(response.status_code, 401)
        self.assertIn("error", response.json())

        no_email = await self.client.post(
            "/orders",
            json={"items": [{"id": pid, "quantity": 1}], "address": "x", "paymentMethod": "cod"},
            headers={USER_ID_HEADER: "user_x"},
        )
        self.assertEqual(no_email.status_code, 401)
        self.assertEqual(await crud.product_stock(pid), 10)

    async def test_checkout_validation_errors(self):
        pid = await self.make_product("Widget", stock=2)
        cases = [
            ([], "12 Market St", "cod", 400, "Cart is empty"),
            ([{"id": pid, "quantity": 0}], "12 Market St", "cod", 400, "Invalid cart line"),
            ([{"id": pid, "quantity": 1}], "   ", "cod", 400, "address"),
            ([{"id": pid, "quantity": 1}], "12 Market St", "card", 400, "payment method"),
            ([{"id": 9999, "quantity": 1}], "12 Market St", "cod", 404, "9999"),
            ([{"id": pid, "quantity": 5}], "12 Market St", "cod", 400, "available=2"),
        ]
        for items, address, method, status, fragment in cases:
            with self.subTest(items=items, address=address, method=method):
                response = await self.checkout(ALICE, items, address, method)
                self.assertEqual(response.status_code, status)
                self.assertEqual(list(response.json()), ["error"])
                self.assertIn(fragment, response.json()["error"])
        self.assertEqual(await crud.product_stock(pid), 2)
        self.assertEqual(await self.count_rows("orders"), 0)

    async def test_ids_beyond_integer_range_are_not_found(self):
        pid = await self.make_product(stock=3)
        huge = 10**20
        response = await self.checkout(ALICE, [{"id": huge, "quantity": 1}])
        self.assertEqual(response.status_code, 404)
        self.assertIn(str(huge), response.json()["error"])

        self.assertEqual((await self.client.get(f"/products/{huge}")).status_code, 404)
        status = await self.client.patch(
            f"/api/admin/orders/{huge}/status",
            json={"status": "shipped"},
            headers=headers_for(ADMIN),
        )
        self.assertEqual(status.status_code, 404)
        self.assertEqual(status.json(), {"error": "Order not found"})
        self.assertEqual(await crud.product_stock(pid), 3)
        self.assertEqual(await self.count_rows("orders"), 0)

    async def test_checkout_missing_fields_and_bad_json(self):
        response = await self.client.post("/orders", json={}, headers=headers_for(ALICE))
        self.assertEqual(response.status_code, 400)
        self.assertIn("error", response.json())

        response = await self.client.post(
            "/orders",
            content=b"{not json",
            headers={**headers_for(ALICE), "Content-Type": "application/json"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("error", response.json())

    # ---------- own orders ----------

    async def test_my_orders(self):
        pid = await self.make_product("Kettle", "40.00", 5, image_url="/img/k.jpg")
        await self.checkout(ALICE, [{"id": pid, "quantity": 2}])
        await self.checkout(BOB, [{"id": pid, "quantity": 1}])
        await crud.update_product_price_stock(pid, "55.00", None)

        response = await self.client.get("/api/orders/me", headers=headers_for(ALICE))
        self.assertEqual(response.status_code, 200)
        orders = response.json()
        self.assertEqual(len(orders), 1)
        self.assertEqual(orders[0]["total_amount"], 86.4)
        self.assertEqual(orders[0]["status"], "pending")
        self.assertEqual(orders[0]["payment_method"], "cod")
        self.assertEqual(
            orders[0]["items"],
            [
                {
                    "product_id": pid,
                    "name": "Kettle",
                    "quantity": 2,
                    "price": 40.0,
                    "image_url": "/img/k.jpg",
                }
            ],
        )
        self.assertEqual((await self.client.get("/api/orders/me")).status_code, 401)

    async def test_profile_sync(self):
        response = await self.client.post("/api/me/sync", headers=headers_for(ALICE))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"userId": "user_alice", "email": "alice@example.com"})
        self.assertEqual((await crud.get_user("user_alice")).email, "alice@example.com")

    # ---------- admin ----------

    async def test_admin_routes_require_admin_role(self):
        for method, url in (
            ("GET", "/api/admin/stats"),
            ("GET", "/api/admin/orders"),
            ("PATCH", "/api/admin/orders/1/status"),
            ("GET", "/api/admin/users"),
            ("DELETE", "/api/admin/users/user_bob"),
        ):
            with self.subTest(url=url):
                anon = await self.client.request(method, url, json={"status": "shipped"})
                self.assertEqual(anon.status_code, 401)
                customer = await self.client.request(
                    method, url, json={"status": "shipped"}, headers=headers_for(ALICE)
                )
                self.assertEqual(customer.status_code, 403)
                self.assertEqual(
                    customer.json(), {"error": "Forbidden: Admin access required"}
                )

    async def test_admin_update_status(self):
        pid = await self.make_product(stock=5)
        order_id = (await self.checkout(ALICE, [{"id": pid, "quantity": 1}])).json()["orderId"]
        admin = headers_for(ADMIN)

        response = await self.client.patch(
            f"/api/admin/orders/{order_id}/status", json={"status": "shipped"}, headers=admin
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "shipped")
        self.assertEqual((await crud.get_order_detail(order_id)).status.value, "shipped")

        bad = await self.client.patch(
            f"/api/admin/orders/{order_id}/status", json={"status": "lost"}, headers=admin
        )
        self.assertEqual(bad.status_code, 400)
        self.assertIn("Invalid status", bad.json()["error"])

        missing = await self.client.patch(
            "/api/admin/orders/424242/status", json={"status": "shipped"}, headers=admin
        )
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json(), {"error": "Order not found"})

    async def test_admin_stats(self):
        empty = await self.client.get("/api/admin/stats", headers=headers_for(ADMIN))
        self.assertEqual(empty.status_code, 200)
        self.assertEqual(
            empty.json(),
            {
                "totalProducts": 0,
                "totalOrders": 0,
                "totalRevenue": 0,
                "pendingOrders": 0,
                "averageOrderValue": 0,
            },
        )

        pid = await self.make_product(price="100.00", stock=10)
        await self.checkout(ALICE, [{"id": pid, "quantity": 3}])
        stats = (await self.client.get("/api/admin/stats", headers=headers_for(ADMIN))).json()
        self.assertEqual(stats["totalProducts"], 1)
        self.assertEqual(stats["totalOrders"], 1)
        self.assertEqual(stats["totalRevenue"], 324.0)
        self.assertEqual(stats["pendingOrders"], 1)

    async def test_admin_orders_listing(self):
        pid = await self.make_product(stock=5)
        await self.checkout(ALICE, [{"id": pid, "quantity": 1}])
        rows = (await self.client.get("/api/admin/orders", headers=headers_for(ADMIN))).json()
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["user_email"], "alice@example.com")
        self.assertEqual(rows[0]["item_count"], 1)

    async def test_admin_users(self):
        pid = await self.make_product(stock=5)
        await self.checkout(ALICE, [{"id": pid, "quantity": 1}])
        await self.checkout(ALICE, [{"id": pid, "quantity": 1}])
        admin = headers_for(ADMIN)

        users = (await self.client.get("/api/admin/users", headers=admin)).json()
        self.assertEqual(len(users), 1)
        self.assertEqual(users[0]["userId"], "user_alice")
        self.assertEqual(users[0]["email"], "alice@example.com")
        self.assertEqual(users[0]["orderCount"], 2)
        self.assertIn("createdAt", users[0])

        response = await self.client.delete("/api/admin/users/user_alice", headers=admin)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(),
            {
                "message": "User and their orders deleted successfully",
                "userId": "user_alice",
                "deletedOrders": 2,
            },
        )
        self.assertEqual(await self.count_rows("orders"), 0)
        self.assertEqual(await self.count_rows("order_items"), 0)
        self.assertEqual((await self.client.get("/api/admin/users", headers=admin)).json(), [])

        missing = await self.client.delete("/api/admin/users/user_alice", headers=admin)
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json(), {"error": "User not found"})

    # ---------- health ----------

    async def test_health(self):
        response = await self.client.get("/api/health")
        self.assertEqual(response.json(), {"status": "OK", "database": "Connected"})
