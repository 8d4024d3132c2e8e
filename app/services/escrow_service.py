"""
Escrow Service
Holds guest payments, splits fees, releases payouts and processes refunds

Escrow is a payment status on the booking plus an append-only transaction
log. Gateway calls go through Stripe when the booking was paid with a
payment intent and PAYMENT_PROVIDER is 'stripe'; otherwise references are
simulated. Methods add to the session and leave the commit to the caller.
"""

import secrets
import time
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import func

from extensions import db
from app.models.booking import Booking, PaymentStatus, HandshakeStatus, DisputeStatus, CautionStatus, BookingStatus
from app.models.escrow_transaction import EscrowTransaction, TransactionType, TransactionStatus
from app.models.listing import PricingModel
from app.models.user import User
from app.services.booking_security import validate_refund_amount
from app.services.stripe_service import StripeService
from app.utils.errors import EscrowError, NotFoundError
from app.utils.money import round_money


REFUND_GUEST = 'REFUND_GUEST'
RELEASE_TO_HOST = 'RELEASE_TO_HOST'


def _token():
    return secrets.token_hex(5)


def generate_transaction_id(suffix):
    return f'tx_{int(time.time() * 1000)}_{_token()}_{suffix}'


def generate_gateway_reference():
    return f'SIM_{int(time.time() * 1000)}_{_token()}'


def _parse_time(value, default):
    """'HH:MM' -> (hour, minute)"""
    try:
        hour, minute = (value or default).split(':')[:2]
        return int(hour), int(minute)
    except (AttributeError, ValueError):
        hour, minute = default.split(':')
        return int(hour), int(minute)


def calculate_booking_end(booking_date, hours=None, duration=None, pricing_model=None, booking_config=None):
    """
    When the guest's use of the space ends

    Hourly: the end of the last booked hour.
    Nightly: check-out time on the morning after the last night.
    Daily: access end time on the last booked day.
    Anything else: 11:00 on date + duration.
    """
    config = booking_config or {}
    days = duration or 1
    start = datetime.combine(booking_date, datetime.min.time())

    if hours:
        return start + timedelta(hours=max(hours) + 1)

    model = pricing_model.value if isinstance(pricing_model, PricingModel) else pricing_model

    if model == PricingModel.NIGHTLY.value:
        hour, minute = _parse_time(config.get('checkOutTime'), current_app.config['DEFAULT_CHECK_OUT_TIME'])
        return start + timedelta(days=days, hours=hour, minutes=minute)

    if model == PricingModel.DAILY.value:
        hour, minute = _parse_time(config.get('accessEndTime'), current_app.config['DEFAULT_ACCESS_END_TIME'])
        return start + timedelta(days=days - 1, hours=hour, minutes=minute)

    return start + timedelta(days=days, hours=11)


def calculate_release_date(booking_date, hours=None, duration=None, pricing_model=None, booking_config=None):
    """Booking end plus the hold period for the pricing model"""
    release_hours = current_app.config['ESCROW_RELEASE_HOURS']
    end = calculate_booking_end(booking_date, hours, duration, pricing_model, booking_config)

    if hours:
        hold = release_hours['HOURLY']
    elif pricing_model:
        model = pricing_model.value if isinstance(pricing_model, PricingModel) else pricing_model
        hold = release_hours.get(model, release_hours['DEFAULT'])
    else:
        hold = release_hours['DEFAULT']

    return end + timedelta(hours=hold)


def release_date_for(booking):
    listing = booking.listing
    return calculate_release_date(
        booking.date,
        booking.hours,
        booking.duration,
        listing.pricing_model if listing else None,
        listing.booking_config if listing else None,
    )


def escrow_balance(booking):
    """Amount still held for a booking according to the transaction log"""
    balance = 0.0
    for tx in booking.transactions.filter_by(status=TransactionStatus.COMPLETED):
        if tx.type == TransactionType.GUEST_PAYMENT:
            balance += float(tx.amount)
        else:
            balance -= float(tx.amount)
    return round_money(balance)


class EscrowService:
    """Escrow operations on bookings"""

    @staticmethod
    def _record(booking, tx_type, amount, suffix, from_user_id=None, to_user_id=None,
                reference=None, metadata=None):
        meta = {'listing_id': booking.listing_id}
        meta.update(metadata or {})
        tx = EscrowTransaction(
            id=generate_transaction_id(suffix),
            booking_id=booking.id,
            type=tx_type,
            amount=round_money(amount),
            currency=current_app.config['CURRENCY'],
            status=TransactionStatus.COMPLETED,
            gateway_reference=reference or generate_gateway_reference(),
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            meta=meta,
            created_at=datetime.utcnow(),
        )
        db.session.add(tx)
        current_app.logger.info(
            f'Escrow {tx_type.value} of {tx.amount} for booking {booking.id} ({tx.gateway_reference})'
        )
        return tx

    @staticmethod
    def _uses_stripe(booking):
        return current_app.config['PAYMENT_PROVIDER'] == 'stripe' and bool(booking.payment_intent_id)

    @staticmethod
    def process_guest_payment(booking, guest_id, reference=None):
        """
        Move the guest's payment into escrow

        Args:
            booking: Booking being paid
            guest_id: Paying user
            reference: Gateway reference, generated when omitted

        Returns:
            The GUEST_PAYMENT transaction
        """
        if booking.status == BookingStatus.CANCELLED:
            raise EscrowError('Cannot pay for a cancelled booking')
        if booking.payment_status != PaymentStatus.PENDING:
            raise EscrowError(f'Booking is already {booking.payment_status.value}', status_code=409)

        tx = EscrowService._record(
            booking, TransactionType.GUEST_PAYMENT, booking.total_price, 'payment',
            from_user_id=guest_id, reference=reference,
            metadata={'guest_count': booking.guest_count},
        )

        booking.payment_status = PaymentStatus.ESCROW
        booking.payment_reference = tx.gateway_reference
        if booking.caution_fee and float(booking.caution_fee) > 0:
            booking.caution_status = CautionStatus.HELD
        booking.escrow_release_date = release_date_for(booking)
        db.session.flush()
        return tx

    @staticmethod
    def release_funds_to_host(booking, host_id, notes=None):
        """Pay the host, book the platform fee and return a held caution deposit"""
        if booking.payment_status != PaymentStatus.ESCROW:
            raise EscrowError(f'Booking funds are not in escrow ({booking.payment_status.value})')

        transactions = [
            EscrowService._record(
                booking, TransactionType.HOST_PAYOUT, booking.host_payout, 'payout',
                to_user_id=host_id, metadata={'kind': 'booking_payout', 'notes': notes},
            ),
            EscrowService._record(
                booking, TransactionType.SERVICE_FEE, booking.platform_fee, 'service',
                metadata={'kind': 'platform_fee'},
            ),
        ]

        if booking.caution_status == CautionStatus.HELD and float(booking.caution_fee or 0) > 0:
            transactions.append(EscrowService._record(
                booking, TransactionType.REFUND, booking.caution_fee, 'caution',
                to_user_id=booking.guest_id, metadata={'kind': 'caution_deposit'},
            ))
            booking.caution_status = CautionStatus.RELEASED
            booking.caution_released_at = datetime.utcnow()

        host = User.query.get(host_id)
        if host:
            host.wallet_balance = round_money(float(host.wallet_balance or 0) + float(booking.host_payout))

        booking.payment_status = PaymentStatus.RELEASED
        db.session.flush()
        return transactions

    @staticmethod
    def process_refund(booking, guest_id, amount, notes=None):
        """
        Refund part or all of the escrowed amount to the guest

        Whatever is not refunded is kept as a cancellation fee.
        """
        if booking.payment_status != PaymentStatus.ESCROW:
            raise EscrowError(f'Booking funds are not in escrow ({booking.payment_status.value})')

        amount = round_money(amount)
        balance = escrow_balance(booking)
        if not validate_refund_amount(booking, amount) or amount > balance:
            raise EscrowError(f'Invalid refund amount {amount}', details={'refundable': balance})

        reference = None
        if amount > 0 and EscrowService._uses_stripe(booking):
            result = StripeService.create_refund(booking.payment_intent_id, amount=amount,
                                                 reason='requested_by_customer',
                                                 idempotency_key=f'booking-{booking.id}-refund-{amount}')
            if not result['success']:
                raise EscrowError(f"Refund failed: {result['error']}", status_code=502)
            reference = result['refund_id']

        transactions = []
        if amount > 0:
            transactions.append(EscrowService._record(
                booking, TransactionType.REFUND, amount, 'refund',
                to_user_id=guest_id, reference=reference,
                metadata={'kind': 'booking_refund', 'original_amount': float(booking.total_price),
                          'notes': notes},
            ))

        retained = round_money(balance - amount)
        if retained > 0:
            transactions.append(EscrowService._record(
                booking, TransactionType.SERVICE_FEE, retained, 'cancellation',
                metadata={'kind': 'cancellation_fee'},
            ))

        if booking.caution_status == CautionStatus.HELD:
            booking.caution_status = CautionStatus.RELEASED
            booking.caution_released_at = datetime.utcnow()

        booking.refund_amount = amount
        booking.refund_processed = True
        booking.payment_status = PaymentStatus.REFUNDED
        db.session.flush()
        return transactions

    @staticmethod
    def claim_caution_fee(booking, amount, notes=None):
        """Pay up to the caution deposit to the host and return the rest to the guest"""
        if booking.caution_status != CautionStatus.HELD:
            raise EscrowError('No caution deposit is held for this booking')
        if booking.payment_status != PaymentStatus.ESCROW:
            raise EscrowError(f'Booking funds are not in escrow ({booking.payment_status.value})')
        if amount < 0:
            raise EscrowError('Claim amount cannot be negative')

        caution = float(booking.caution_fee or 0)
        claimed = round_money(min(amount, caution))
        returned = round_money(caution - claimed)
        host_id = booking.listing.host_id

        transactions = []
        if claimed > 0:
            transactions.append(EscrowService._record(
                booking, TransactionType.HOST_PAYOUT, claimed, 'claim',
                to_user_id=host_id, metadata={'kind': 'caution_claim', 'notes': notes},
            ))
        if returned > 0:
            transactions.append(EscrowService._record(
                booking, TransactionType.REFUND, returned, 'caution',
                to_user_id=booking.guest_id, metadata={'kind': 'caution_deposit'},
            ))

        if claimed == 0:
            booking.caution_status = CautionStatus.RELEASED
        elif returned == 0:
            booking.caution_status = CautionStatus.CLAIMED
        else:
            booking.caution_status = CautionStatus.PARTIAL_CLAIM
        booking.caution_claim_amount = claimed
        booking.caution_released_at = datetime.utcnow()
        db.session.flush()
        return transactions

    @staticmethod
    def get_escrow_transactions(booking_id=None):
        query = EscrowTransaction.query
        if booking_id is not None:
            query = query.filter_by(booking_id=booking_id)
        return query.order_by(EscrowTransaction.created_at.desc()).all()

    @staticmethod
    def get_platform_financials():
        """Totals over all completed transactions"""
        rows = db.session.query(
            EscrowTransaction.type, func.coalesce(func.sum(EscrowTransaction.amount), 0)
        ).filter(
            EscrowTransaction.status == TransactionStatus.COMPLETED
        ).group_by(EscrowTransaction.type).all()
        totals = {tx_type: float(total) for tx_type, total in rows}

        payments = totals.get(TransactionType.GUEST_PAYMENT, 0.0)
        released = totals.get(TransactionType.HOST_PAYOUT, 0.0)
        refunded = totals.get(TransactionType.REFUND, 0.0)
        revenue = totals.get(TransactionType.SERVICE_FEE, 0.0)

        return {
            'total_escrow': round_money(payments - released - refunded - revenue),
            'total_released': round_money(released),
            'total_revenue': round_money(revenue),
            'total_refunded': round_money(refunded),
            'pending_payouts': Booking.query.filter_by(payment_status=PaymentStatus.ESCROW).count(),
        }

    @staticmethod
    def is_eligible_for_release(booking, now):
        return (
            booking.payment_status == PaymentStatus.ESCROW
            and booking.handshake_status == HandshakeStatus.VERIFIED
            and booking.dispute_status != DisputeStatus.OPEN
            and booking.escrow_release_date is not None
            and booking.escrow_release_date <= now
        )

    @staticmethod
    def check_and_release_eligible_bookings(now=None):
        """Release every booking whose hold period is over; returns the count"""
        now = now or datetime.utcnow()
        released = 0
        for booking in Booking.query.filter_by(payment_status=PaymentStatus.ESCROW).all():
            if EscrowService.is_eligible_for_release(booking, now) and booking.listing:
                EscrowService.release_funds_to_host(booking, booking.listing.host_id)
                released += 1
        return released

    @staticmethod
    def resolve_dispute(booking, decision, admin_notes=None):
        """Admin decision on a disputed booking"""
        if decision not in (REFUND_GUEST, RELEASE_TO_HOST):
            raise EscrowError(f'Unknown decision: {decision}')

        if decision == REFUND_GUEST:
            EscrowService.process_refund(booking, booking.guest_id, escrow_balance(booking), notes=admin_notes)
        else:
            if not booking.listing:
                current_app.logger.error(f'Listing not found for booking {booking.id}')
                raise NotFoundError('Listing not found for booking')
            EscrowService.release_funds_to_host(booking, booking.listing.host_id, notes=admin_notes)

        booking.dispute_status = DisputeStatus.RESOLVED
        db.session.flush()
        return booking
