import pytest

from order_service.errors import NotFoundError, UpstreamError
from order_service.orders.models import OrderStatus
from order_service.payments.events import CheckoutSessionCompleted


def _session(order_pk: str, order_ref: str = "ORD-X", session_id: str = "cs_test_1") -> CheckoutSessionCompleted:
    return CheckoutSessionCompleted.model_validate({
        "id": session_id,
        "payment_status": "paid",
        "customer_details": {"email": "payer@example.com"},
        "amount_total": 7325,
        "metadata": {"order_id": order_pk, "orderId": order_ref},
    })


@pytest.mark.asyncio
async def test_first_payment_marks_order_paid(order_service, repository, clients, notifier):
    row = repository.seed()

    order = await order_service.process_payment(_session(row["id"], row["order_id"]))

    assert order.is_paid is True
    assert order.status == OrderStatus.PROCESSING
    assert order.paid_at is not None
    assert order.payment_result.id == "cs_test_1"
    assert order.payment_result.status == "paid"
    assert order.payment_result.email_address == "payer@example.com"
    assert repository.rows[row["id"]]["status"] == "processing"

    clients.confirm_reservation.assert_awaited_once_with(
        row["order_id"],
        [{"product": "p1", "quantity": 2}, {"product": "p2", "quantity": 1}],
        "internal-test-token",
    )
    notifier.send.assert_awaited_once()
    to, subject, html = notifier.send.await_args.args
    assert to == "jane@example.com"
    assert subject == f"Order Confirmation - {row['order_id']}"
    assert "Jane Doe" in html

@pytest.mark.asyncio
async def test_duplicate_delivery_is_a_noop(order_service, repository, clients, notifier):
    row = repository.seed()
    session = _session(row["id"], row["order_id"])

    first = await order_service.process_payment(session)
    second = await order_service.process_payment(session)

    assert second.is_paid is True
    assert second.paid_at == first.paid_at
    assert clients.confirm_reservation.await_count == 1
    assert notifier.send.await_count == 1

@pytest.mark.asyncio
async def test_unknown_order_raises_not_found(order_service, clients):
    with pytest.raises(NotFoundError):
        await order_service.process_payment(_session("missing-pk"))
    clients.confirm_reservation.assert_not_awaited()

@pytest.mark.asyncio
async def test_notification_failures_do_not_undo_payment(order_service, repository, clients, notifier):
    row = repository.seed()
    clients.get_user_details.side_effect = UpstreamError("Failed to get user details", remote_status=503)

    order = await order_service.process_payment(_session(row["id"], row["order_id"]))

    assert order.is_paid is True
    notifier.send.assert_not_awaited()

@pytest.mark.asyncio
async def test_mailer_exception_is_contained(order_service, repository, notifier):
    row = repository.seed()
    notifier.send.side_effect = RuntimeError("smtp down")

    order = await order_service.process_payment(_session(row["id"], row["order_id"]))

    assert order.is_paid is True
    assert repository.rows[row["id"]]["is_paid"] is True

@pytest.mark.asyncio
async def test_payment_on_cancelled_order_is_recorded_without_reviving_it(order_service, repository, clients, notifier):
    row = repository.seed(status="cancelled")

    order = await order_service.process_payment(_session(row["id"], row["order_id"]))

    assert order.is_paid is True
    assert order.status == OrderStatus.CANCELLED
    clients.confirm_reservation.assert_not_awaited()
    notifier.send.assert_not_awaited()

@pytest.mark.asyncio
async def test_concurrent_writer_wins_and_loser_returns_stored_state(order_service, repository, clients, monkeypatch):
    row = repository.seed()
    real_mark_paid = repository.mark_paid

    def racing_mark_paid(order_pk, changes, expected_status=None):
        # un autre processus de webhook vient d'écrire le paiement
        repository.rows[order_pk].update({"is_paid": True, "status": "processing"})
        return real_mark_paid(order_pk, changes, expected_status)

    monkeypatch.setattr(repository, "mark_paid", racing_mark_paid)
    order = await order_service.process_payment(_session(row["id"], row["order_id"]))

    assert order.is_paid is True
    assert order.payment_result is None
    clients.confirm_reservation.assert_not_awaited()
