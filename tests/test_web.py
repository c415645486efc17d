"""
End-to-end tests through the FastAPI app.

The ticketing API is replaced by the FakeApi transport from conftest, so
these exercise routing, the access gate, the session layer, CSRF and the
templates together.
"""

import json

import httpx

from busdesk.roles import Role

from conftest import CSRF_TOKEN, make_schedule, make_ticket, sign_in

HX = {"HX-Request": "true"}


def session_cookie_headers(response):
    return [h for h in response.headers.get_list("set-cookie") if h.startswith("session=")]


class TestAccessGate:
    def test_anonymous_is_sent_to_sign_in(self, client):
        response = client.get("/dashboard/customers", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "/"

    def test_agent_on_dashboard_root_goes_to_customers(self, client):
        sign_in(client, Role.SALESAGENT)

        response = client.get("/dashboard", follow_redirects=False)

        assert response.headers["location"] == "/dashboard/customers"

    def test_driver_cannot_open_admin_pages(self, client):
        sign_in(client, Role.DRIVER)

        response = client.get("/dashboard/users", follow_redirects=False)

        assert response.headers["location"] == "/dashboard/qr-scanner"

    def test_htmx_requests_get_a_client_side_redirect(self, client):
        sign_in(client, Role.DRIVER)

        response = client.post("/dashboard/sell-ticket/dialog/open", headers=HX, follow_redirects=False)

        assert response.status_code == 204
        assert response.headers["HX-Redirect"] == "/dashboard/qr-scanner"

    def test_tampered_session_cookie_is_anonymous(self, client):
        client.cookies.set("session", "not-a-jwt")

        response = client.get("/dashboard", follow_redirects=False)

        assert response.headers["location"] == "/"

    def test_token_rejected_by_backend_signs_out(self, client, fake_api):
        fake_api.on("GET", "/user", status_code=401)
        sign_in(client, Role.SALESAGENT)

        response = client.get("/dashboard/customers", follow_redirects=False)

        assert response.headers["location"] == "/"
        assert "Max-Age=0" in session_cookie_headers(response)[0]

    def test_backend_unreachable_keeps_the_session(self, client, fake_api):
        def down(request):
            raise httpx.ConnectError("refused", request=request)

        fake_api.on("GET", "/user", handler=down)
        fake_api.on("GET", "/customers", json=[])
        sign_in(client, Role.SALESAGENT)

        response = client.get("/dashboard/customers", follow_redirects=False)

        assert response.status_code == 200

    def test_token_rejected_mid_page_signs_out(self, client, fake_api):
        fake_api.on("GET", "/customers", status_code=403)
        sign_in(client, Role.SALESAGENT)

        response = client.get("/dashboard/customers", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "/"

    def test_token_rejected_while_validating_a_ticket_signs_out(self, client, fake_api):
        fake_api.on("POST", "/tickets/validate", status_code=401)
        sign_in(client, Role.DRIVER)

        response = client.post(
            "/dashboard/qr-scanner/validate", data={"ticket_hash": "hash-12"}, follow_redirects=False
        )

        assert response.status_code == 302
        assert response.headers["location"] == "/"
        assert "Max-Age=0" in session_cookie_headers(response)[0]

    def test_token_rejected_while_opening_the_sale_dialog_signs_out(self, client, fake_api):
        fake_api.on("GET", "/payment-methods", json=["cash"])
        fake_api.on("GET", "/schedules", status_code=401)
        sign_in(client, Role.SALESAGENT)

        response = client.post("/dashboard/sell-ticket/dialog/open", headers=HX, follow_redirects=False)

        assert response.status_code == 204
        assert response.headers["HX-Redirect"] == "/"
        assert "Max-Age=0" in session_cookie_headers(response)[0]
        assert "Session expired" not in response.text

    def test_token_rejected_while_loading_edit_seats_signs_out(self, client, fake_api):
        fake_api.on("GET", "/schedules/available-seats", status_code=403)
        sign_in(client, Role.SALESAGENT)

        response = client.get(
            "/dashboard/sell-ticket/tickets/1/seats",
            params={"schedule_id": "7", "schedule_date": "2026-10-20", "seat_number": "1"},
            headers=HX,
            follow_redirects=False
        )

        assert response.status_code == 204
        assert response.headers["HX-Redirect"] == "/"


class TestLogin:
    def test_login_page(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert 'name="csrf_token"' in response.text

    def test_signed_in_staff_skip_the_login_page(self, client):
        sign_in(client, Role.DRIVER)

        response = client.get("/", follow_redirects=False)

        assert response.headers["location"] == "/dashboard/qr-scanner"

    def test_signed_in_customer_sees_the_login_page(self, client):
        sign_in(client, Role.CUSTOMER)

        response = client.get("/", follow_redirects=False)

        assert response.status_code == 200

    def test_successful_login_lands_on_role_page(self, client, fake_api):
        fake_api.on("POST", "/login", json={"token": "fresh-token"})
        fake_api.on("GET", "/user", json={"user": {
            "id": 2,
            "email": "agent@example.com",
            "first_name": "Nino",
            "last_name": "Beridze",
            "role": "salesagent",
        }})

        response = client.post(
            "/auth/login",
            data={"email": "agent@example.com", "password": "secret1"},
            follow_redirects=False
        )

        assert response.status_code == 302
        assert response.headers["location"] == "/dashboard/customers"
        assert session_cookie_headers(response)
        login_body = json.loads(fake_api.calls("POST", "/login")[0].content)
        assert login_body == {"email": "agent@example.com", "password": "secret1"}
        assert fake_api.calls("GET", "/user")[0].headers["Authorization"] == "Bearer fresh-token"

    def test_short_password_is_rejected_locally(self, client, fake_api):
        response = client.post("/auth/login", data={"email": "agent@example.com", "password": "123"})

        assert response.status_code == 400
        assert fake_api.calls("POST", "/login") == []

    def test_wrong_credentials(self, client, fake_api):
        fake_api.on("POST", "/login", status_code=401, json={"message": "Invalid credentials"})

        response = client.post("/auth/login", data={"email": "agent@example.com", "password": "secret1"})

        assert response.status_code == 400
        assert "Invalid email or password" in response.text

    def test_unknown_role_cannot_sign_in(self, client, fake_api):
        fake_api.on("POST", "/login", json={"token": "t"})
        fake_api.on("GET", "/user", json={"user": {"id": 9, "email": "x@example.com", "role": "pilot"}})

        response = client.post("/auth/login", data={"email": "x@example.com", "password": "secret1"})

        assert response.status_code == 400

    def test_post_without_matching_csrf_token_is_forbidden(self, client):
        response = client.post(
            "/auth/login",
            data={"email": "agent@example.com", "password": "secret1"},
            headers={"X-CSRF-Token": "forged"}
        )

        assert response.status_code == 403
        assert CSRF_TOKEN not in response.text

    def test_logout_clears_the_session(self, client):
        sign_in(client, Role.ADMIN)

        response = client.get("/auth/logout", follow_redirects=False)

        assert response.headers["location"] == "/"
        assert "Max-Age=0" in session_cookie_headers(response)[0]


class TestSellDialog:
    def test_sale_from_open_to_sold(self, client, fake_api):
        fake_api.on("GET", "/payment-methods", json=["cash", "card"])
        fake_api.on("GET", "/schedules", json=[make_schedule()])
        fake_api.on("GET", "/schedules/available-seats", json={"available_seats": "1, 2, 3"})
        fake_api.on("POST", "/tickets/sell", json={"tickets": [{"id": 10}]})
        sign_in(client, Role.SALESAGENT)
        base = "/dashboard/sell-ticket/dialog"

        response = client.post(f"{base}/open", headers=HX)
        assert response.status_code == 200
        assert "Tbilisi ➝ Batumi (09:00)" in response.text

        response = client.post(f"{base}/schedule", data={"schedule_id": "7"}, headers=HX)
        assert f"{base}/seats/3" in response.text

        client.post(f"{base}/seats/2", headers=HX)
        for field, value in (
            ("passenger_name", "Ana"),
            ("passenger_surname", "Gelashvili"),
            ("passenger_email", "ana@example.com"),
        ):
            client.post(f"{base}/passengers/0", data={"field": field, "value": value}, headers=HX)
        client.post(f"{base}/payment-method", data={"payment_method": "card"}, headers=HX)

        response = client.post(f"{base}/submit", headers=HX)

        assert response.headers["HX-Trigger"] == "ticketsSold"
        assert "Sold 1 ticket(s)" in response.text
        sale = json.loads(fake_api.calls("POST", "/tickets/sell")[0].content)
        assert sale["seat_numbers"] == [2]
        assert sale["payment_method"] == "card"
        assert sale["passengers"][0]["passenger_name"] == "Ana"

    def test_submit_with_blank_passenger_shows_field_errors(self, client, fake_api):
        fake_api.on("GET", "/schedules", json=[make_schedule()])
        fake_api.on("GET", "/schedules/available-seats", json={"available_seats": "1, 2"})
        sign_in(client, Role.SALESAGENT)
        base = "/dashboard/sell-ticket/dialog"
        client.post(f"{base}/open", headers=HX)
        client.post(f"{base}/schedule", data={"schedule_id": "7"}, headers=HX)
        client.post(f"{base}/seats/1", headers=HX)

        response = client.post(f"{base}/submit", headers=HX)

        assert "Name is required" in response.text
        assert "Please fill in the passenger details correctly" in response.text
        assert fake_api.calls("POST", "/tickets/sell") == []

    def test_unknown_passenger_field_is_rejected(self, client):
        sign_in(client, Role.SALESAGENT)

        response = client.post(
            "/dashboard/sell-ticket/dialog/passengers/0",
            data={"field": "passport", "value": "x"},
            headers=HX
        )

        assert response.status_code == 422

    def test_admin_cannot_use_the_agent_dialog(self, client):
        sign_in(client, Role.ADMIN)

        response = client.post("/dashboard/sell-ticket/dialog/open", headers=HX)

        assert response.status_code == 403


class TestPages:
    def test_admin_dashboard_totals(self, client, fake_api):
        fake_api.on("GET", "/alltickets", json=[
            make_ticket(1, validated_at="2026-10-19 09:05:00"),
            make_ticket(2),
        ])
        fake_api.on("GET", "/users", json=[{"id": 1, "email": "admin@example.com", "role": "admin"}])
        sign_in(client, Role.ADMIN)

        response = client.get("/dashboard")

        assert response.status_code == 200
        assert "60.00" in response.text

    def test_excel_export(self, client, fake_api):
        fake_api.on("GET", "/excel/tickets", handler=lambda request: httpx.Response(200, content=b"PK\x03\x04"))
        sign_in(client, Role.ADMIN)

        response = client.get("/dashboard/export/tickets")

        assert response.status_code == 200
        assert response.content == b"PK\x03\x04"
        assert "spreadsheetml" in response.headers["content-type"]

    def test_unknown_export_is_not_found(self, client):
        sign_in(client, Role.ADMIN)

        response = client.get("/dashboard/export/passwords")

        assert response.status_code == 404

    def test_backend_failure_renders_error_page(self, client, fake_api):
        fake_api.on("GET", "/users", status_code=500)
        sign_in(client, Role.ADMIN)

        response = client.get("/dashboard/users")

        assert response.status_code == 502
        assert "Failed to load users" in response.text

    def test_admin_cannot_delete_own_account(self, client, fake_api):
        sign_in(client, Role.ADMIN)

        response = client.post("/dashboard/users/1/delete", follow_redirects=False)

        assert response.status_code == 400
        assert fake_api.calls("DELETE", "/users/1") == []

    def test_agent_ticket_table_filters_by_search(self, client, fake_api):
        fake_api.on("GET", "/schedules", json=[make_schedule()])
        fake_api.on("GET", "/alltickets", json=[
            make_ticket(1, passenger_name="Nino"),
            make_ticket(2, passenger_name="Levan"),
        ])
        sign_in(client, Role.SALESAGENT)

        response = client.get("/dashboard/sell-ticket", params={"search": "levan"})

        assert response.status_code == 200
        assert "Levan Kapanadze" in response.text
        assert "Nino Kapanadze" not in response.text

    def test_customer_search(self, client, fake_api):
        fake_api.on("GET", "/customers", json=[
            {"id": 5, "email": "tamar@example.com", "first_name": "Tamar", "last_name": "K", "role": "customer", "status_id": 1},
            {"id": 6, "email": "dato@example.com", "first_name": "Dato", "last_name": "M", "role": "customer"},
        ])
        sign_in(client, Role.SALESAGENT)

        response = client.get("/dashboard/customers", params={"search": "tamar"})

        assert "tamar@example.com" in response.text
        assert "dato@example.com" not in response.text
        assert "Active" in response.text


class TestScanner:
    def test_validating_a_ticket_records_history(self, client, fake_api):
        fake_api.on("GET", "/driver/tickets", json=[])
        fake_api.on("POST", "/tickets/validate", json={
            "success": True,
            "message": "Ticket validated",
            "ticket": make_ticket(12, passenger_name="Eka"),
        })
        sign_in(client, Role.DRIVER)

        response = client.post("/dashboard/qr-scanner/validate", data={"ticket_hash": " hash-12 "})

        assert response.status_code == 200
        assert "Ticket validated" in response.text
        assert "Eka Kapanadze" in response.text
        assert fake_api.calls("POST", "/tickets/validate")[0].url.params["hash"] == "hash-12"

    def test_rejected_ticket_shows_backend_message(self, client, fake_api):
        fake_api.on("GET", "/driver/tickets", json=[])
        fake_api.on("POST", "/tickets/validate", status_code=422, json={"message": "Ticket already used"})
        sign_in(client, Role.DRIVER)

        response = client.post("/dashboard/qr-scanner/validate", data={"ticket_hash": "hash-12"})

        assert "Ticket already used" in response.text

    def test_unknown_date_filter_falls_back_to_today(self, client, fake_api):
        fake_api.on("GET", "/driver/tickets", json=[])
        sign_in(client, Role.DRIVER)

        response = client.get("/dashboard/qr-scanner", params={"date_filter": "yesterday"})

        assert response.status_code == 200
        assert 'date_filter=today" aria-current="page"' in response.text


class TestTicketEdit:
    def test_edit_page_offers_the_ticket_own_seat(self, client, fake_api):
        fake_api.on("GET", "/alltickets/5", json=make_ticket(5))
        fake_api.on("GET", "/schedules", json=[make_schedule()])
        fake_api.on("GET", "/schedules/available-seats", json={"available_seats": "1, 9"})
        sign_in(client, Role.SALESAGENT)

        response = client.get("/dashboard/sell-ticket/tickets/5/edit")

        assert response.status_code == 200
        assert '<option value="5" selected>' in response.text
        assert '<option value="9">' in response.text

    def test_invalid_passenger_edit_is_not_sent(self, client, fake_api):
        fake_api.on("GET", "/alltickets/5", json=make_ticket(5))
        fake_api.on("GET", "/schedules", json=[make_schedule()])
        fake_api.on("GET", "/schedules/available-seats", json={"available_seats": "1"})
        sign_in(client, Role.ADMIN)

        response = client.post("/dashboard/tickets/5", data={
            "schedule_id": "7",
            "schedule_date": "2026-10-20",
            "seat_number": "5",
            "passenger_name": "Ana",
            "passenger_surname": "Doe",
            "passenger_email": "broken",
        })

        assert response.status_code == 400
        assert "Invalid email format" in response.text
        assert fake_api.calls("PUT", "/tickets/5") == []

    def test_agent_cancels_a_ticket(self, client, fake_api):
        fake_api.on("POST", "/tickets/5/cancel", json={"message": "Cancelled"})
        sign_in(client, Role.SALESAGENT)

        response = client.post("/dashboard/sell-ticket/tickets/5/cancel", follow_redirects=False)

        assert response.headers["location"] == "/dashboard/sell-ticket"
        assert len(fake_api.calls("POST", "/tickets/5/cancel")) == 1
