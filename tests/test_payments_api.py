from unittest.mock import patch

from app.models.booking import BookingStatus, PaymentStatus
from app.models.notification import Notification


def test_simulated_payment(client, listing, guest, host, make_booking, auth_headers):
    booking = make_booking(listing, guest, status=BookingStatus.PENDING)

    response = client.post(f'/api/payments/bookings/{booking.id}/pay', headers=auth_headers(guest))

    assert response.status_code == 200
    data = response.get_json()
    assert data['transaction']['type'] == 'GUEST_PAYMENT'
    assert data['transaction']['amount'] == 160.0
    assert data['booking']['payment_status'] == 'Paid - Escrow'
    assert Notification.query.filter_by(user_id=host.id, title='Booking Paid').count() == 1


def test_simulated_payment_only_once(client, listing, guest, make_booking, auth_headers):
    booking = make_booking(listing, guest, paid=True)

    response = client.post(f'/api/payments/bookings/{booking.id}/pay', headers=auth_headers(guest))

    assert response.status_code == 409


def test_only_the_guest_pays(client, listing, guest, host, make_booking, auth_headers):
    booking = make_booking(listing, guest)

    assert client.post(f'/api/payments/bookings/{booking.id}/pay', headers=auth_headers(host)).status_code == 403
    assert client.post('/api/payments/bookings/999/pay', headers=auth_headers(guest)).status_code == 404


def test_simulated_route_is_off_with_stripe(app, client, listing, guest, make_booking, auth_headers):
    app.config['PAYMENT_PROVIDER'] = 'stripe'
    booking = make_booking(listing, guest)

    response = client.post(f'/api/payments/bookings/{booking.id}/pay', headers=auth_headers(guest))

    assert response.status_code == 400


def test_create_payment_intent(client, listing, guest, make_booking, auth_headers):
    booking = make_booking(listing, guest)
    result = {
        'success': True,
        'client_secret': 'pi_123_secret',
        'payment_intent_id': 'pi_123',
        'amount': 160.0,
        'currency': 'ngn',
    }

    with patch('app.api.payments.routes.StripeService.create_payment_intent', return_value=result) as create:
        response = client.post('/api/payments/create-payment-intent', json={'booking_id': booking.id},
                               headers=auth_headers(guest))

    assert response.status_code == 200
    assert response.get_json()['client_secret'] == 'pi_123_secret'
    assert booking.payment_intent_id == 'pi_123'
    assert create.call_args.kwargs['metadata']['booking_id'] == booking.id
    assert create.call_args.kwargs['idempotency_key'].startswith(f'booking-{booking.id}-intent')


def test_confirm_payment_moves_funds_into_escrow(client, listing, guest, make_booking, auth_headers):
    booking = make_booking(listing, guest)
    booking.payment_intent_id = 'pi_456'

    with patch('app.api.payments.routes.StripeService.retrieve_payment',
               return_value={'success': True, 'status': 'succeeded', 'amount': 160.0, 'currency': 'ngn'}):
        response = client.post('/api/payments/confirm-payment', json={'payment_intent_id': 'pi_456'},
                               headers=auth_headers(guest))
        repeat = client.post('/api/payments/confirm-payment', json={'payment_intent_id': 'pi_456'},
                             headers=auth_headers(guest))

    assert response.status_code == 200
    assert repeat.status_code == 200
    assert booking.payment_status == PaymentStatus.ESCROW
    assert booking.payment_reference == 'pi_456'
    assert booking.transactions.count() == 1


def test_confirm_payment_not_yet_succeeded(client, listing, guest, make_booking, auth_headers):
    booking = make_booking(listing, guest)
    booking.payment_intent_id = 'pi_789'

    with patch('app.api.payments.routes.StripeService.retrieve_payment',
               return_value={'success': True, 'status': 'processing', 'amount': 160.0, 'currency': 'ngn'}):
        response = client.post('/api/payments/confirm-payment', json={'payment_intent_id': 'pi_789'},
                               headers=auth_headers(guest))

    assert response.get_json()['status'] == 'processing'
    assert booking.payment_status == PaymentStatus.PENDING


def test_webhook_rejects_bad_signature(app, client):
    app.config['STRIPE_WEBHOOK_SECRET'] = 'whsec_test'

    with patch('app.api.payments.routes.StripeService.verify_webhook_signature', return_value=None):
        response = client.post('/api/payments/webhook', data=b'{}', headers={'Stripe-Signature': 'bad'})

    assert response.status_code == 400


def test_webhook_payment_succeeded(app, client, listing, guest, make_booking):
    app.config['STRIPE_WEBHOOK_SECRET'] = 'whsec_test'
    booking = make_booking(listing, guest)
    event = {
        'type': 'payment_intent.succeeded',
        'data': {'object': {'id': 'pi_hook', 'metadata': {'booking_id': str(booking.id)}}},
    }

    with patch('app.api.payments.routes.StripeService.verify_webhook_signature', return_value=event):
        response = client.post('/api/payments/webhook', data=b'{}', headers={'Stripe-Signature': 'sig'})

    assert response.get_json() == {'received': True}
    assert booking.payment_status == PaymentStatus.ESCROW
    assert booking.payment_intent_id == 'pi_hook'


def test_booking_ledger(client, listing, guest, make_user, make_booking, auth_headers):
    booking = make_booking(listing, guest, paid=True)

    response = client.get(f'/api/payments/bookings/{booking.id}/transactions', headers=auth_headers(guest))

    assert response.get_json()['escrow_balance'] == 160.0
    assert len(response.get_json()['transactions']) == 1
    assert client.get(f'/api/payments/bookings/{booking.id}/transactions',
                      headers=auth_headers(make_user())).status_code == 403
