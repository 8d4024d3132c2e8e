from datetime import timedelta

from app.models.booking import BookingStatus
from app.models.listing import ListingStatus
from tests.conftest import future_date


LISTING = {
    'title': 'Rooftop Terrace',
    'description': 'Open-air space for dinners',
    'space_type': 'terrace',
    'location': 'Victoria Island, Lagos',
    'address': '4 Ozumba Mbadiwe',
    'price': 250,
    'pricing_model': 'DAILY',
    'caution_fee': 100,
    'max_guests': 30,
    'cancellation_policy': 'Moderate',
}


def _register(client, **overrides):
    data = {
        'email': 'Ada@Example.com',
        'username': 'ada',
        'password': 'secret123',
        'first_name': 'Ada',
        'last_name': 'Obi',
    }
    data.update(overrides)
    return client.post('/api/auth/register', json=data)


def test_register_and_login(client):
    registered = _register(client, role='host')

    assert registered.status_code == 201
    user = registered.get_json()['user']
    assert user['email'] == 'ada@example.com'
    assert user['role'] == 'host'
    assert user['kyc_status'] == 'none'

    assert _register(client, username='other').status_code == 409
    assert _register(client, email='new@example.com').status_code == 409
    assert _register(client, email='').status_code == 400

    login = client.post('/api/auth/login', json={'email': 'ada@example.com', 'password': 'secret123'})
    assert login.status_code == 200
    token = login.get_json()['access_token']

    me = client.get('/api/auth/me', headers={'Authorization': f'Bearer {token}'})
    assert me.get_json()['user']['username'] == 'ada'

    bad = client.post('/api/auth/login', json={'email': 'ada@example.com', 'password': 'nope'})
    assert bad.status_code == 401


def test_configured_admin_email_registers_as_admin(client):
    response = _register(client, email='admin@example.com', username='boss')

    assert response.get_json()['user']['role'] == 'admin'
    assert response.get_json()['user']['is_admin']


def test_change_password(client, guest, auth_headers):
    wrong = client.post('/api/auth/change-password', json={'current_password': 'x', 'new_password': 'y'},
                        headers=auth_headers(guest))
    right = client.post('/api/auth/change-password',
                        json={'current_password': 'secret123', 'new_password': 'better456'},
                        headers=auth_headers(guest))

    assert wrong.status_code == 401
    assert right.status_code == 200
    assert guest.check_password('better456')


def test_become_host(client, guest, auth_headers):
    assert client.post('/api/listings/', json=LISTING, headers=auth_headers(guest)).status_code == 403

    response = client.post('/api/users/me/become-host', headers=auth_headers(guest))

    assert response.get_json()['user']['is_host']
    assert client.post('/api/listings/', json=LISTING, headers=auth_headers(guest)).status_code == 201


def test_unverified_host_listing_waits_for_kyc(client, make_user, auth_headers):
    new_host = make_user(host=True)

    response = client.post('/api/listings/', json=LISTING, headers=auth_headers(new_host))

    assert response.status_code == 201
    listing = response.get_json()['listing']
    assert listing['status'] == 'Pending KYC'
    assert listing['address'] == '4 Ozumba Mbadiwe'
    assert listing['cancellation_policy'] == 'Moderate'


def test_verified_host_listing_goes_to_approval(client, host, auth_headers):
    response = client.post('/api/listings/', json=LISTING, headers=auth_headers(host))

    assert response.get_json()['listing']['status'] == 'Pending Approval'


def test_listing_validation(client, host, auth_headers):
    missing = dict(LISTING, title='')
    free = dict(LISTING, price=0)
    bad_model = dict(LISTING, pricing_model='WEEKLY')

    for data in (missing, free, bad_model):
        assert client.post('/api/listings/', json=data, headers=auth_headers(host)).status_code == 400


def test_only_live_listings_are_public(client, make_listing, host, guest, auth_headers):
    live = make_listing()
    pending = make_listing(status=ListingStatus.PENDING_APPROVAL)

    public = client.get('/api/listings/').get_json()
    assert [item['id'] for item in public['listings']] == [live.id]
    assert 'address' not in public['listings'][0]

    assert client.get(f'/api/listings/{pending.id}').status_code == 404
    assert client.get(f'/api/listings/{pending.id}', headers=auth_headers(guest)).status_code == 404
    own = client.get(f'/api/listings/{pending.id}', headers=auth_headers(host)).get_json()
    assert own['listing']['address'] == '12 Admiralty Way'

    client.get(f'/api/listings/{live.id}')
    assert live.view_count == 1


def test_listing_filters(client, make_listing):
    make_listing(title='Cheap Desk', price=30, max_guests=1)
    make_listing(title='Hall', price=500, max_guests=100, location='Ikeja, Lagos')

    by_price = client.get('/api/listings/?max_price=50').get_json()['listings']
    by_guests = client.get('/api/listings/?guests=50').get_json()['listings']
    by_location = client.get('/api/listings/?location=ikeja').get_json()['listings']

    assert [item['title'] for item in by_price] == ['Cheap Desk']
    assert [item['title'] for item in by_guests] == ['Hall']
    assert [item['title'] for item in by_location] == ['Hall']
    assert client.get('/api/listings/?pricing_model=WEEKLY').status_code == 400


def test_update_rejected_listing_requeues_it(client, make_listing, host, make_user, auth_headers):
    listing = make_listing(status=ListingStatus.REJECTED, rejection_reason='Blurry photos')

    assert client.put(f'/api/listings/{listing.id}', json={'title': 'x'},
                      headers=auth_headers(make_user(host=True))).status_code == 403
    response = client.put(f'/api/listings/{listing.id}', json={'images': ['a.jpg']}, headers=auth_headers(host))

    assert response.get_json()['listing']['status'] == 'Pending Approval'
    assert listing.rejection_reason is None


def test_delete_listing_with_active_bookings(client, listing, guest, host, make_booking, auth_headers):
    booking = make_booking(listing, guest)

    assert client.delete(f'/api/listings/{listing.id}', headers=auth_headers(host)).status_code == 409

    booking.status = BookingStatus.CANCELLED
    response = client.delete(f'/api/listings/{listing.id}', headers=auth_headers(host))

    assert response.status_code == 200
    assert listing.status == ListingStatus.DELETED
    assert client.get(f'/api/listings/{listing.id}', headers=auth_headers(host)).status_code == 404


def test_availability_quote(client, make_listing):
    first = future_date()
    second = first + timedelta(days=1)
    listing = make_listing(availability={first.isoformat(): [9, 10], second.isoformat(): [9]})

    open_range = client.get(
        f'/api/listings/{listing.id}/availability?date_from={first}&date_to={second}'
    ).get_json()
    closed_range = client.get(
        f'/api/listings/{listing.id}/availability?date_from={first}&date_to={second + timedelta(days=1)}'
    ).get_json()

    assert open_range['available']
    assert open_range['pricing']['total'] == 270.0
    assert not closed_range['available']
    assert closed_range['pricing'] is None
    assert client.get(f'/api/listings/{listing.id}/availability').status_code == 400


def test_my_listings(client, make_listing, host, auth_headers):
    make_listing()
    make_listing(status=ListingStatus.DELETED)

    response = client.get('/api/listings/my-listings', headers=auth_headers(host))

    assert len(response.get_json()['listings']) == 1


def test_public_profile(client, host, make_listing):
    make_listing()

    response = client.get(f'/api/users/{host.id}').get_json()

    assert response['user']['kyc_verified'] is True
    assert len(response['listings']) == 1
    assert 'email' not in response['user']
