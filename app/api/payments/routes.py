"""
Payments Routes
Simulated gateway for development plus the Stripe integration
"""

from flask import Blueprint, jsonify, request, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from extensions import db, limiter
from app.models.booking import Booking, PaymentStatus
from app.models.user import User
from app.services import notification_service
from app.services.authorization import can_view_booking
from app.services.escrow_service import EscrowService, escrow_balance
from app.services.stripe_service import StripeService
from app.utils.money import format_money

payments_bp = Blueprint('payments', __name__)


def _notify_paid(booking):
    currency = current_app.config['CURRENCY']
    notification_service.add_notification(
        booking.guest_id, 'booking', 'Payment Successful',
        f'{format_money(booking.total_price, currency)} is held in escrow until after your booking.',
        metadata={'booking_id': booking.id},
    )
    notification_service.add_notification(
        booking.listing.host_id, 'booking', 'Booking Paid',
        f'Booking #{booking.id} for {booking.listing.title} has been paid. '
        f'Your payout is released after check-in.',
        metadata={'booking_id': booking.id},
    )


def _guest_booking(booking_id):
    current_user_id = int(get_jwt_identity())
    booking = Booking.query.get(booking_id)
    if not booking:
        return None, (jsonify({'error': 'Booking not found'}), 404)
    if booking.guest_id != current_user_id:
        return None, (jsonify({'error': 'Unauthorized'}), 403)
    return booking, None


@payments_bp.route('/bookings/<int:booking_id>/pay', methods=['POST'])
@jwt_required()
@limiter.limit("20 per hour")
def simulate_payment(booking_id):
    """Pay through the simulated gateway (PAYMENT_PROVIDER=simulated)"""
    if current_app.config['PAYMENT_PROVIDER'] != 'simulated':
        return jsonify({'error': 'Use the Stripe payment flow'}), 400

    booking, error = _guest_booking(booking_id)
    if error:
        return error

    tx = EscrowService.process_guest_payment(booking, booking.guest_id)
    _notify_paid(booking)
    db.session.commit()

    return jsonify({
        'message': 'Payment successful',
        'transaction': tx.to_dict(),
        'booking': booking.to_dict()
    }), 200


@payments_bp.route('/create-payment-intent', methods=['POST'])
@jwt_required()
def create_payment_intent():
    """Create Stripe payment intent for booking"""
    data = request.get_json() or {}

    booking_id = data.get('booking_id')
    if not booking_id:
        return jsonify({'error': 'booking_id is required'}), 400

    booking, error = _guest_booking(booking_id)
    if error:
        return error

    if booking.payment_status != PaymentStatus.PENDING:
        return jsonify({'error': 'Booking already paid'}), 400

    result = StripeService.create_payment_intent(
        amount=float(booking.total_price),
        metadata={
            'booking_id': booking.id,
            'listing_id': booking.listing_id,
            'guest_id': booking.guest_id
        },
        idempotency_key=f'booking-{booking.id}-intent-{booking.total_price}'
    )

    if not result['success']:
        return jsonify({'error': result.get('error', 'Payment creation failed')}), 502

    booking.payment_intent_id = result['payment_intent_id']
    db.session.commit()

    return jsonify({
        'client_secret': result['client_secret'],
        'payment_intent_id': result['payment_intent_id'],
        'amount': result['amount'],
        'currency': result['currency'],
        'booking_id': booking.id
    }), 200


@payments_bp.route('/confirm-payment', methods=['POST'])
@jwt_required()
def confirm_payment():
    """Check a payment intent with Stripe and move the money into escrow"""
    current_user_id = int(get_jwt_identity())
    data = request.get_json() or {}

    payment_intent_id = data.get('payment_intent_id')
    if not payment_intent_id:
        return jsonify({'error': 'payment_intent_id is required'}), 400

    booking = Booking.query.filter_by(payment_intent_id=payment_intent_id).first()
    if not booking:
        return jsonify({'error': 'Booking not found'}), 404

    if booking.guest_id != current_user_id:
        return jsonify({'error': 'Unauthorized'}), 403

    result = StripeService.retrieve_payment(payment_intent_id)

    if not result['success']:
        return jsonify({'error': result.get('error', 'Payment confirmation failed')}), 502

    if result['status'] != 'succeeded':
        return jsonify({
            'message': 'Payment not completed',
            'status': result['status']
        }), 200

    was_pending = booking.payment_status == PaymentStatus.PENDING
    StripeService.handle_payment_success({
        'id': payment_intent_id,
        'metadata': {'booking_id': booking.id}
    })
    if was_pending:
        _notify_paid(booking)
        db.session.commit()

    return jsonify({
        'message': 'Payment successful',
        'status': result['status'],
        'booking': booking.to_dict(include_listing=True)
    }), 200


@payments_bp.route('/webhook', methods=['POST'])
def stripe_webhook():
    """Handle Stripe webhooks"""
    try:
        payload = request.data
        sig_header = request.headers.get('Stripe-Signature')
        webhook_secret = current_app.config.get('STRIPE_WEBHOOK_SECRET')

        if not webhook_secret:
            return jsonify({'error': 'Webhook secret not configured'}), 500

        event = StripeService.verify_webhook_signature(payload, sig_header, webhook_secret)

        if not event:
            return jsonify({'error': 'Invalid signature'}), 400

        event_type = event['type']

        if event_type == 'payment_intent.succeeded':
            payment_intent = event['data']['object']
            result = StripeService.handle_payment_success(payment_intent)
            if not result['success']:
                current_app.logger.warning(f"Webhook ignored: {result['error']}")

        elif event_type == 'payment_intent.payment_failed':
            payment_intent = event['data']['object']
            StripeService.handle_payment_failed(payment_intent)

        return jsonify({'received': True}), 200

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Webhook error: {str(e)}')
        return jsonify({'error': str(e)}), 500


@payments_bp.route('/bookings/<int:booking_id>/transactions', methods=['GET'])
@jwt_required()
def booking_transactions(booking_id):
    """Escrow ledger for one booking"""
    user = User.query.get(int(get_jwt_identity()))
    booking = Booking.query.get(booking_id)

    if not booking:
        return jsonify({'error': 'Booking not found'}), 404

    if not can_view_booking(user, booking):
        return jsonify({'error': 'Unauthorized'}), 403

    transactions = EscrowService.get_escrow_transactions(booking.id)

    return jsonify({
        'transactions': [tx.to_dict() for tx in transactions],
        'escrow_balance': escrow_balance(booking),
        'payment_status': booking.payment_status.value
    }), 200
