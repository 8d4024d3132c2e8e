from datetime import date, datetime, timedelta

import pytest

from app.models.booking import PaymentStatus, CautionStatus, HandshakeStatus, DisputeStatus, BookingStatus
from app.models.escrow_transaction import TransactionType
from app.models.listing import PricingModel
from app.services.escrow_service import (
    EscrowService,
    REFUND_GUEST,
    RELEASE_TO_HOST,
    calculate_booking_end,
    calculate_release_date,
    escrow_balance,
    generate_transaction_id,
)
from app.utils.errors import EscrowError
from extensions import db


def _types(transactions):
    return sorted((tx.type, float(tx.amount)) for tx in transactions)


def test_guest_payment_moves_total_into_escrow(listing, guest, make_booking):
    booking = make_booking(listing, guest)

    tx = EscrowService.process_guest_payment(booking, guest.id)
    db.session.commit()

    assert tx.type == TransactionType.GUEST_PAYMENT
    assert float(tx.amount) == 160.0
    assert tx.gateway_reference.startswith('SIM_')
    assert booking.payment_status == PaymentStatus.ESCROW
    assert booking.payment_reference == tx.gateway_reference
    assert booking.caution_status == CautionStatus.HELD
    # daily listing: access ends 23:00 on the booked day, then a 24h hold
    assert booking.escrow_release_date == datetime.combine(booking.date, datetime.min.time()) + timedelta(hours=47)
    assert escrow_balance(booking) == 160.0


def test_paying_twice_is_a_conflict(listing, guest, make_booking):
    booking = make_booking(listing, guest, paid=True)

    with pytest.raises(EscrowError) as exc:
        EscrowService.process_guest_payment(booking, guest.id)
    assert exc.value.status_code == 409


def test_cannot_pay_for_cancelled_booking(listing, guest, make_booking):
    booking = make_booking(listing, guest, status=BookingStatus.CANCELLED)

    with pytest.raises(EscrowError):
        EscrowService.process_guest_payment(booking, guest.id)


def test_release_pays_host_and_returns_caution(listing, guest, host, make_booking):
    booking = make_booking(listing, guest, paid=True)

    transactions = EscrowService.release_funds_to_host(booking, host.id)
    db.session.commit()

    assert _types(transactions) == [
        (TransactionType.HOST_PAYOUT, 95.0),
        (TransactionType.REFUND, 50.0),
        (TransactionType.SERVICE_FEE, 15.0),
    ]
    assert booking.payment_status == PaymentStatus.RELEASED
    assert booking.caution_status == CautionStatus.RELEASED
    assert float(host.wallet_balance) == 95.0
    assert escrow_balance(booking) == 0.0


def test_release_requires_escrow(listing, guest, host, make_booking):
    booking = make_booking(listing, guest)

    with pytest.raises(EscrowError):
        EscrowService.release_funds_to_host(booking, host.id)


def test_partial_refund_keeps_the_rest_as_fee(listing, guest, make_booking):
    booking = make_booking(listing, guest, paid=True)

    transactions = EscrowService.process_refund(booking, guest.id, 80)
    db.session.commit()

    assert _types(transactions) == [(TransactionType.REFUND, 80.0), (TransactionType.SERVICE_FEE, 80.0)]
    assert transactions[1].meta['kind'] == 'cancellation_fee'
    assert booking.payment_status == PaymentStatus.REFUNDED
    assert booking.caution_status == CautionStatus.RELEASED
    assert float(booking.refund_amount) == 80.0
    assert booking.refund_processed
    assert escrow_balance(booking) == 0.0


def test_zero_refund_still_settles_escrow(listing, guest, make_booking):
    booking = make_booking(listing, guest, paid=True)

    transactions = EscrowService.process_refund(booking, guest.id, 0)

    assert _types(transactions) == [(TransactionType.SERVICE_FEE, 160.0)]
    assert booking.payment_status == PaymentStatus.REFUNDED


def test_refund_cannot_exceed_what_is_held(listing, guest, make_booking):
    booking = make_booking(listing, guest, paid=True)

    with pytest.raises(EscrowError) as exc:
        EscrowService.process_refund(booking, guest.id, 160.01)
    assert exc.value.details == {'refundable': 160.0}

    with pytest.raises(EscrowError):
        EscrowService.process_refund(booking, guest.id, -1)


def test_partial_caution_claim(listing, guest, host, make_booking):
    booking = make_booking(listing, guest, paid=True)

    transactions = EscrowService.claim_caution_fee(booking, 30)
    db.session.commit()

    assert _types(transactions) == [(TransactionType.HOST_PAYOUT, 30.0), (TransactionType.REFUND, 20.0)]
    assert transactions[0].to_user_id == host.id
    assert booking.caution_status == CautionStatus.PARTIAL_CLAIM
    assert float(booking.caution_claim_amount) == 30.0
    assert escrow_balance(booking) == 110.0


def test_claim_is_capped_at_the_deposit_and_release_skips_it(listing, guest, host, make_booking):
    booking = make_booking(listing, guest, paid=True)

    EscrowService.claim_caution_fee(booking, 500)
    assert booking.caution_status == CautionStatus.CLAIMED
    assert float(booking.caution_claim_amount) == 50.0

    transactions = EscrowService.release_funds_to_host(booking, host.id)
    assert TransactionType.REFUND not in [tx.type for tx in transactions]
    assert escrow_balance(booking) == 0.0


def test_zero_claim_returns_deposit(listing, guest, make_booking):
    booking = make_booking(listing, guest, paid=True)

    EscrowService.claim_caution_fee(booking, 0)

    assert booking.caution_status == CautionStatus.RELEASED


def test_claim_needs_a_held_deposit(make_listing, guest, make_booking):
    booking = make_booking(make_listing(caution_fee=0), guest, paid=True)

    assert booking.caution_status is None
    with pytest.raises(EscrowError):
        EscrowService.claim_caution_fee(booking, 10)


def test_release_eligibility(listing, guest, make_booking):
    booking = make_booking(listing, guest, paid=True)
    after = booking.escrow_release_date + timedelta(minutes=1)
    before = booking.escrow_release_date - timedelta(minutes=1)

    assert not EscrowService.is_eligible_for_release(booking, after)

    booking.handshake_status = HandshakeStatus.VERIFIED
    assert EscrowService.is_eligible_for_release(booking, after)
    assert not EscrowService.is_eligible_for_release(booking, before)

    booking.dispute_status = DisputeStatus.OPEN
    assert not EscrowService.is_eligible_for_release(booking, after)


def test_check_and_release_eligible_bookings(listing, guest, make_booking):
    ready = make_booking(listing, guest, paid=True)
    ready.handshake_status = HandshakeStatus.VERIFIED
    waiting = make_booking(listing, guest, date=ready.date + timedelta(days=5), paid=True)
    waiting.handshake_status = HandshakeStatus.VERIFIED

    released = EscrowService.check_and_release_eligible_bookings(ready.escrow_release_date)

    assert released == 1
    assert ready.payment_status == PaymentStatus.RELEASED
    assert waiting.payment_status == PaymentStatus.ESCROW


def test_platform_financials(listing, guest, host, make_booking):
    released = make_booking(listing, guest, paid=True)
    EscrowService.release_funds_to_host(released, host.id)
    make_booking(listing, guest, date=released.date + timedelta(days=3), paid=True)
    db.session.commit()

    financials = EscrowService.get_platform_financials()

    assert financials == {
        'total_escrow': 160.0,
        'total_released': 95.0,
        'total_revenue': 15.0,
        'total_refunded': 50.0,
        'pending_payouts': 1,
    }


def test_transactions_are_listed_newest_first(listing, guest, host, make_booking):
    booking = make_booking(listing, guest, paid=True)
    EscrowService.release_funds_to_host(booking, host.id)
    db.session.commit()

    transactions = EscrowService.get_escrow_transactions(booking.id)

    assert len(transactions) == 4
    assert transactions[-1].type == TransactionType.GUEST_PAYMENT
    assert EscrowService.get_escrow_transactions(booking.id + 100) == []


def test_resolve_dispute_refunds_everything_held(listing, guest, make_booking):
    booking = make_booking(listing, guest, paid=True)
    booking.dispute_status = DisputeStatus.OPEN

    EscrowService.resolve_dispute(booking, REFUND_GUEST, 'Host never showed up')

    assert booking.payment_status == PaymentStatus.REFUNDED
    assert float(booking.refund_amount) == 160.0
    assert booking.dispute_status == DisputeStatus.RESOLVED


def test_resolve_dispute_can_release_to_host(listing, guest, host, make_booking):
    booking = make_booking(listing, guest, paid=True)
    booking.dispute_status = DisputeStatus.OPEN

    EscrowService.resolve_dispute(booking, RELEASE_TO_HOST)

    assert booking.payment_status == PaymentStatus.RELEASED
    assert float(host.wallet_balance) == 95.0


def test_resolve_dispute_rejects_unknown_decision(listing, guest, make_booking):
    booking = make_booking(listing, guest, paid=True)

    with pytest.raises(EscrowError):
        EscrowService.resolve_dispute(booking, 'SPLIT')


def test_booking_end_by_pricing_model(app):
    day = date(2030, 5, 10)
    midnight = datetime(2030, 5, 10)

    assert calculate_booking_end(day, hours=[14, 9, 15]) == midnight + timedelta(hours=16)
    assert calculate_booking_end(day, duration=2, pricing_model=PricingModel.NIGHTLY) == \
        midnight + timedelta(days=2, hours=11)
    assert calculate_booking_end(day, duration=2, pricing_model='NIGHTLY',
                                 booking_config={'checkOutTime': '10:30'}) == \
        midnight + timedelta(days=2, hours=10, minutes=30)
    assert calculate_booking_end(day, duration=2, pricing_model=PricingModel.DAILY) == \
        midnight + timedelta(days=1, hours=23)
    assert calculate_booking_end(day, duration=1, pricing_model=PricingModel.DAILY,
                                 booking_config={'accessEndTime': 'late'}) == \
        midnight + timedelta(hours=23)
    assert calculate_booking_end(day) == midnight + timedelta(days=1, hours=11)


def test_release_date_adds_hold_period(app):
    day = date(2030, 5, 10)
    midnight = datetime(2030, 5, 10)

    assert calculate_release_date(day, hours=[9]) == midnight + timedelta(hours=10 + 24)
    assert calculate_release_date(day, duration=1, pricing_model=PricingModel.NIGHTLY) == \
        midnight + timedelta(days=1, hours=11 + 48)
    assert calculate_release_date(day) == midnight + timedelta(days=1, hours=11 + 48)


def test_transaction_ids_are_unique():
    ids = {generate_transaction_id('payment') for _ in range(50)}

    assert len(ids) == 50
    assert all(tx_id.startswith('tx_') and tx_id.endswith('_payment') for tx_id in ids)
