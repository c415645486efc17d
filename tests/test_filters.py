"""Ticket table filters, route options, revenue and the driver date filter."""

from datetime import date

import pytest

from busdesk.schemas.ticket import Ticket
from busdesk.services.driver import filter_tickets_by_date
from busdesk.services.tickets import extract_unique_routes, filter_tickets, total_revenue
from busdesk.services.users import status_color, status_label

from conftest import make_schedule, make_ticket

BATUMI = make_schedule(7, "Tbilisi", "Batumi", price=30.0)
KUTAISI = make_schedule(8, "Tbilisi", "Kutaisi", price=15.5)


@pytest.fixture
def tickets():
    return [
        Ticket.model_validate(make_ticket(1, "2026-10-19", BATUMI, passenger_name="Nino")),
        Ticket.model_validate(make_ticket(2, "2026-10-20", KUTAISI, passenger_name="Levan")),
        Ticket.model_validate(make_ticket(3, "2026-10-19", KUTAISI, passenger_email="ANA@mail.ge")),
    ]


class TestFilterTickets:
    def test_no_filters_keeps_everything(self, tickets):
        assert filter_tickets(tickets) == tickets

    def test_search_matches_name_email_or_id_case_insensitively(self, tickets):
        assert [t.id for t in filter_tickets(tickets, "nino")] == [1]
        assert [t.id for t in filter_tickets(tickets, "ana@mail")] == [3]
        assert [t.id for t in filter_tickets(tickets, "2")] == [2]

    def test_date(self, tickets):
        assert [t.id for t in filter_tickets(tickets, selected_date=date(2026, 10, 19))] == [1, 3]

    def test_direction(self, tickets):
        assert [t.id for t in filter_tickets(tickets, selected_direction="Tbilisi-Kutaisi")] == [2, 3]

    def test_filters_combine(self, tickets):
        result = filter_tickets(tickets, "", date(2026, 10, 19), "Tbilisi-Kutaisi")
        assert [t.id for t in result] == [3]

    def test_tickets_without_route_are_skipped(self, tickets):
        bare = Ticket.model_validate({**make_ticket(4), "schedule": None})
        assert bare not in filter_tickets(tickets + [bare])


class TestRoutesAndRevenue:
    def test_unique_routes_in_first_seen_order(self, tickets):
        routes = extract_unique_routes(tickets)
        assert [route.value for route in routes] == ["Tbilisi-Batumi", "Tbilisi-Kutaisi"]
        assert routes[0].arrives_to == "Batumi"

    def test_revenue_sums_destination_prices(self, tickets):
        assert total_revenue(tickets) == pytest.approx(61.0)

    def test_revenue_of_nothing(self):
        assert total_revenue([]) == 0


class TestDriverDateFilter:
    TODAY = date(2026, 10, 19)

    @pytest.fixture
    def week(self):
        return [
            Ticket.model_validate(make_ticket(i, f"2026-10-{day}"))
            for i, day in enumerate((18, 19, 20, 26, 27), start=1)
        ]

    def test_today(self, week):
        assert [t.id for t in filter_tickets_by_date(week, "today", self.TODAY)] == [2]

    def test_tomorrow(self, week):
        assert [t.id for t in filter_tickets_by_date(week, "tomorrow", self.TODAY)] == [3]

    def test_week_includes_both_ends(self, week):
        assert [t.id for t in filter_tickets_by_date(week, "week", self.TODAY)] == [2, 3, 4]

    def test_all(self, week):
        assert filter_tickets_by_date(week, "all", self.TODAY) == week

    def test_unknown_filter_means_today(self, week):
        assert [t.id for t in filter_tickets_by_date(week, "someday", self.TODAY)] == [2]

    def test_unparseable_dates_are_dropped(self):
        broken = Ticket.model_validate(make_ticket(1, "soon"))
        assert filter_tickets_by_date([broken], "today", self.TODAY) == []


class TestCustomerStatus:
    def test_known_status(self):
        assert status_label(1) == "Active"
        assert status_color(2) == "#FE0000"

    def test_unknown_status(self):
        assert status_label(99) == "Unknown"
        assert status_color(None) == "#000000"
