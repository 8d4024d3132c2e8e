"""
Stripe Payment Service
Handles Stripe payment intents, refunds and webhooks for bookings
"""

import stripe
from flask import current_app


class StripeService:
    """Service for handling Stripe payments"""

    @staticmethod
    def initialize():
        """Initialize Stripe with API key"""
        stripe.api_key = current_app.config.get('STRIPE_SECRET_KEY')

    @staticmethod
    def create_payment_intent(amount, currency=None, metadata=None, idempotency_key=None):
        """
        Create a Stripe Payment Intent

        Args:
            amount: Amount in major units (e.g., 150.00)
            currency: Currency code (default: CURRENCY setting)
            metadata: Dict of metadata to attach to payment
            idempotency_key: Repeated calls with the same key return the same intent

        Returns:
            Result dict with client_secret and payment_intent_id
        """
        currency = (currency or current_app.config['CURRENCY']).lower()
        try:
            StripeService.initialize()

            payment_intent = stripe.PaymentIntent.create(
                amount=int(round(float(amount) * 100)),  # Convert to minor units
                currency=currency,
                metadata=metadata or {},
                automatic_payment_methods={'enabled': True},
                idempotency_key=idempotency_key,
            )

            return {
                'success': True,
                'client_secret': payment_intent.client_secret,
                'payment_intent_id': payment_intent.id,
                'amount': float(amount),
                'currency': currency
            }
        except stripe.error.StripeError as e:
            current_app.logger.error(f'Stripe error: {str(e)}')
            return {
                'success': False,
                'error': str(e)
            }

    @staticmethod
    def retrieve_payment(payment_intent_id):
        """
        Fetch the current state of a payment intent

        Returns:
            Result dict with status, amount and currency
        """
        try:
            StripeService.initialize()

            payment_intent = stripe.PaymentIntent.retrieve(payment_intent_id)

            return {
                'success': True,
                'status': payment_intent.status,
                'amount': payment_intent.amount / 100,
                'currency': payment_intent.currency
            }
        except stripe.error.StripeError as e:
            current_app.logger.error(f'Stripe error: {str(e)}')
            return {
                'success': False,
                'error': str(e)
            }

    @staticmethod
    def create_refund(payment_intent_id, amount=None, reason=None, idempotency_key=None):
        """
        Create a refund for a payment

        Args:
            payment_intent_id: The Payment Intent ID to refund
            amount: Amount to refund in major units (None for full refund)
            reason: Reason for refund
        """
        try:
            StripeService.initialize()

            refund_params = {
                'payment_intent': payment_intent_id,
            }

            if amount:
                refund_params['amount'] = int(round(float(amount) * 100))

            if reason:
                refund_params['reason'] = reason

            refund = stripe.Refund.create(idempotency_key=idempotency_key, **refund_params)

            return {
                'success': True,
                'refund_id': refund.id,
                'amount': refund.amount / 100,
                'status': refund.status
            }
        except stripe.error.StripeError as e:
            current_app.logger.error(f'Stripe error: {str(e)}')
            return {
                'success': False,
                'error': str(e)
            }

    @staticmethod
    def verify_webhook_signature(payload, signature, webhook_secret):
        """
        Verify Stripe webhook signature

        Returns:
            Event object if valid, None if invalid
        """
        try:
            event = stripe.Webhook.construct_event(
                payload, signature, webhook_secret
            )
            return event
        except ValueError as e:
            # Invalid payload
            current_app.logger.error(f'Invalid payload: {str(e)}')
            return None
        except stripe.error.SignatureVerificationError as e:
            # Invalid signature
            current_app.logger.error(f'Invalid signature: {str(e)}')
            return None

    @staticmethod
    def handle_payment_success(payment_intent):
        """
        Move the booking's payment into escrow after a successful charge

        Args:
            payment_intent: Payment Intent object from webhook
        """
        metadata = payment_intent.get('metadata', {})
        booking_id = metadata.get('booking_id')

        if not booking_id:
            return {'success': False, 'error': 'No booking_id in metadata'}

        # Import here to avoid circular imports
        from app.models.booking import Booking, PaymentStatus
        from app.services.escrow_service import EscrowService
        from extensions import db

        booking = Booking.query.get(int(booking_id))
        if not booking:
            return {'success': False, 'error': 'Booking not found'}

        if booking.payment_status != PaymentStatus.PENDING:
            # Stripe retries webhooks; the first delivery already settled it
            return {'success': True, 'booking_id': booking.id}

        booking.payment_intent_id = payment_intent['id']
        EscrowService.process_guest_payment(booking, booking.guest_id, reference=payment_intent['id'])
        db.session.commit()

        return {'success': True, 'booking_id': booking.id}

    @staticmethod
    def handle_payment_failed(payment_intent):
        """
        Log a failed charge; the booking stays pending so the guest can retry
        """
        metadata = payment_intent.get('metadata', {})
        booking_id = metadata.get('booking_id')

        if not booking_id:
            return {'success': False, 'error': 'No booking_id in metadata'}

        current_app.logger.warning(
            f"Payment failed for booking {booking_id}: {payment_intent.get('id')}"
        )
        return {'success': True, 'booking_id': int(booking_id)}
