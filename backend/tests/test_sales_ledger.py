"""
Sale ledger query tests: customer history and the pending review queue.
"""

from datetime import timedelta

import pytest

from dealership.errors import NotFound
from dealership.extensions import db
from dealership.models import PurchaseRequest, Sale
from dealership.services import purchase_service, sales_service
from dealership.time_utils import utcnow

from conftest import make_vehicle, purchase_code


def _request(customer, vehicle) -> PurchaseRequest:
    return purchase_service.create_purchase_request(
        vehicle.id, customer.id, purchase_code(customer, vehicle)
    )


class TestPurchaseHistory:
    def test_unknown_customer_not_found(self, app):
        with pytest.raises(NotFound):
            sales_service.get_purchase_history(9999)

    def test_empty_history(self, customer):
        assert sales_service.get_purchase_history(customer.id) == []

    def test_newest_first(self, customer):
        civic = make_vehicle(make="Honda", model="Civic", year=2020, price_cents=7_200_000)
        accord = make_vehicle(make="Honda", model="Accord", year=2023, price_cents=9_900_000)

        first_sale = purchase_service.approve_purchase_request(_request(customer, civic).id)
        second_sale = purchase_service.approve_purchase_request(_request(customer, accord).id)

        # Force distinct timestamps so ordering is not decided by id alone
        db.session.get(Sale, first_sale.id).sold_at = utcnow() - timedelta(days=1)
        db.session.commit()

        history = sales_service.get_purchase_history(customer.id)
        assert [h["sale_id"] for h in history] == [second_sale.id, first_sale.id]
        assert history[0]["price_cents"] == 9_900_000
        assert history[0]["vehicle"] == {
            "id": accord.id,
            "make": "Honda",
            "model": "Accord",
            "year": 2023,
        }
        assert history[0]["sold_at"].endswith("Z")

    def test_only_own_sales(self, customer, other_customer):
        mine = make_vehicle()
        theirs = make_vehicle(model="Corolla")
        purchase_service.approve_purchase_request(_request(customer, mine).id)
        purchase_service.approve_purchase_request(_request(other_customer, theirs).id)

        history = sales_service.get_purchase_history(customer.id)
        assert len(history) == 1
        assert history[0]["vehicle"]["id"] == mine.id


class TestPendingRequests:
    def test_oldest_first_with_summaries(self, customer, other_customer):
        camry = make_vehicle()
        corolla = make_vehicle(model="Corolla")

        newer = _request(customer, camry)
        older = _request(other_customer, corolla)
        db.session.get(PurchaseRequest, older.id).requested_at = utcnow() - timedelta(hours=1)
        db.session.commit()

        pending = sales_service.get_pending_requests()
        assert [p["request_id"] for p in pending] == [older.id, newer.id]
        assert pending[0]["customer"] == {
            "id": other_customer.id,
            "email": "second@example.com",
            "full_name": "Second Buyer",
        }
        assert pending[0]["vehicle"]["model"] == "Corolla"

    def test_decided_requests_excluded(self, customer, other_customer):
        camry = make_vehicle()
        corolla = make_vehicle(model="Corolla")

        approved = _request(customer, camry)
        rejected = _request(other_customer, corolla)
        still_pending = _request(customer, corolla)

        purchase_service.approve_purchase_request(approved.id)
        purchase_service.reject_purchase_request(rejected.id)

        pending = sales_service.get_pending_requests()
        assert [p["request_id"] for p in pending] == [still_pending.id]
