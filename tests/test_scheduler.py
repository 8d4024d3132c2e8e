from datetime import datetime, timedelta

from app.models.booking import BookingStatus, PaymentStatus, HandshakeStatus, DisputeStatus
from app.models.notification import Notification
from app.services import scheduler_service
from extensions import db
from tests.conftest import future_date


def _titles(user):
    return [n.title for n in Notification.query.filter_by(user_id=user.id).all()]


def _verified(booking):
    booking.handshake_status = HandshakeStatus.VERIFIED
    booking.status = BookingStatus.STARTED
    db.session.commit()
    return booking


def test_release_pays_out_after_hold_period(listing, guest, host, make_booking):
    booking = _verified(make_booking(listing, guest, paid=True))

    assert scheduler_service.check_and_release_eligible_bookings(
        booking.escrow_release_date - timedelta(hours=1)) == 0
    assert scheduler_service.check_and_release_eligible_bookings(booking.escrow_release_date) == 1

    assert booking.payment_status == PaymentStatus.RELEASED
    assert 'Payment Received' in _titles(host)


def test_release_does_not_wait_for_check_in(listing, guest, host, make_booking):
    booking = make_booking(listing, guest, paid=True)
    assert booking.handshake_status == HandshakeStatus.PENDING

    released = scheduler_service.check_and_release_eligible_bookings(datetime.utcnow() + timedelta(days=400))

    assert released == 1
    assert booking.payment_status == PaymentStatus.RELEASED
    assert float(host.wallet_balance) == 95.0


def test_release_skips_disputed_bookings(listing, guest, make_booking):
    disputed = _verified(make_booking(listing, guest, date=future_date(31), paid=True))
    disputed.dispute_status = DisputeStatus.OPEN
    db.session.commit()

    released = scheduler_service.check_and_release_eligible_bookings(datetime.utcnow() + timedelta(days=60))

    assert released == 0
    assert disputed.payment_status == PaymentStatus.ESCROW


def test_release_date_follows_listing_changes(listing, guest, make_booking):
    booking = make_booking(listing, guest, paid=True)
    original = booking.escrow_release_date

    listing.booking_config = {'accessEndTime': '18:00'}
    db.session.commit()
    scheduler_service.check_and_release_eligible_bookings(datetime.utcnow())

    assert booking.escrow_release_date == original - timedelta(hours=5)


def test_unanswered_requests_are_cancelled(listing, guest, host, make_booking):
    now = datetime.utcnow()
    stale = make_booking(listing, guest, status=BookingStatus.PENDING, created_at=now - timedelta(hours=25))
    fresh = make_booking(listing, guest, date=future_date(40), status=BookingStatus.PENDING,
                         created_at=now - timedelta(hours=23))

    assert scheduler_service.check_and_auto_cancel_pending_bookings(now) == 1

    assert stale.status == BookingStatus.CANCELLED
    assert stale.cancelled_by == 'system'
    assert stale.cancellation_reason == 'Auto-cancelled: Host did not respond within 24 hours'
    assert fresh.status == BookingStatus.PENDING
    assert 'Booking Request Expired' in _titles(guest)
    assert 'Booking Request Expired' in _titles(host)


def test_same_day_requests_get_a_shorter_window(listing, guest, make_booking):
    now = datetime.utcnow().replace(hour=12)
    booking = make_booking(listing, guest, date=now.date(), status=BookingStatus.PENDING,
                           created_at=now - timedelta(hours=5))

    assert scheduler_service.auto_cancel_window(booking, now) == (4, True)
    assert scheduler_service.check_and_auto_cancel_pending_bookings(now) == 1
    assert 'same-day booking policy' in booking.cancellation_reason


def test_auto_cancel_refunds_paid_requests_in_full(listing, guest, make_booking):
    now = datetime.utcnow()
    booking = make_booking(listing, guest, status=BookingStatus.PENDING, paid=True,
                           created_at=now - timedelta(hours=30))

    scheduler_service.check_and_auto_cancel_pending_bookings(now)

    assert booking.payment_status == PaymentStatus.REFUNDED
    assert float(booking.refund_amount) == 160.0
    notice = Notification.query.filter_by(user_id=guest.id, title='Booking Request Expired').one()
    assert notice.meta['refunded'] is True


def test_started_bookings_complete_after_they_end(listing, guest, host, make_booking):
    now = datetime.utcnow()
    finished = _verified(make_booking(listing, guest, date=now.date() - timedelta(days=2)))
    ongoing = _verified(make_booking(listing, guest, date=future_date(5)))

    assert scheduler_service.check_and_auto_complete_started_bookings(now) == 1

    assert finished.status == BookingStatus.COMPLETED
    assert ongoing.status == BookingStatus.STARTED
    assert 'Leave a Review' in _titles(guest)
    assert 'Booking Completed' in _titles(host)


def test_payout_notice_is_sent_once(listing, guest, host, make_booking):
    booking = make_booking(listing, guest, paid=True)
    now = booking.escrow_release_date - timedelta(hours=6)

    assert scheduler_service.check_and_notify_upcoming_payouts(now) == 1
    assert scheduler_service.check_and_notify_upcoming_payouts(now) == 0
    assert booking.payout_notified_at == now
    assert _titles(host).count('Payout Scheduled') == 1


def test_payout_notice_skips_disputed_bookings(listing, guest, host, make_booking):
    booking = make_booking(listing, guest, paid=True)
    booking.dispute_status = DisputeStatus.OPEN
    db.session.commit()

    assert scheduler_service.check_and_notify_upcoming_payouts(
        booking.escrow_release_date - timedelta(hours=6)) == 0
    assert 'Payout Scheduled' not in _titles(host)


def test_payout_notice_waits_for_the_window(listing, guest, make_booking):
    booking = make_booking(listing, guest, paid=True)

    assert scheduler_service.check_and_notify_upcoming_payouts(
        booking.escrow_release_date - timedelta(hours=30)) == 0


def test_run_scheduled_checks_reports_each_sweep(listing, guest, make_booking):
    now = datetime.utcnow()
    make_booking(listing, guest, status=BookingStatus.PENDING, created_at=now - timedelta(hours=48))

    result = scheduler_service.run_scheduled_checks(now)

    assert result == {'released': 0, 'cancelled': 1, 'completed': 0, 'payout_notices': 0}


def test_manual_triggers(listing, guest, make_booking):
    booking = _verified(make_booking(listing, guest, date=datetime.utcnow().date() - timedelta(days=5),
                                     paid=True))

    assert scheduler_service.trigger_manual_complete_check() == 1
    assert booking.status == BookingStatus.COMPLETED
    assert scheduler_service.trigger_manual_release_check() == 1
    assert booking.payment_status == PaymentStatus.RELEASED


def test_upcoming_releases(listing, guest, make_booking):
    later = make_booking(listing, guest, date=future_date(20), paid=True)
    sooner = make_booking(listing, guest, date=future_date(10), paid=True)
    now = sooner.escrow_release_date + timedelta(hours=1)

    releases = scheduler_service.get_upcoming_releases(now)

    assert [item['booking'].id for item in releases] == [sooner.id, later.id]
    assert releases[0]['is_overdue']
    assert releases[0]['hours_until_release'] == 0.0
    assert not releases[1]['is_overdue']
    assert releases[1]['hours_until_release'] == 10 * 24 - 1


def test_pending_bookings_near_deadline(listing, guest, make_booking):
    now = datetime.utcnow()
    urgent = make_booking(listing, guest, status=BookingStatus.PENDING, created_at=now - timedelta(hours=23))
    relaxed = make_booking(listing, guest, date=future_date(40), status=BookingStatus.PENDING,
                           created_at=now - timedelta(hours=2))
    make_booking(listing, guest, date=future_date(50), status=BookingStatus.PENDING,
                 created_at=now - timedelta(hours=30))

    pending = scheduler_service.get_pending_bookings_near_deadline(now)

    assert [item['booking'].id for item in pending] == [urgent.id, relaxed.id]
    assert pending[0]['is_urgent']
    assert round(pending[0]['hours_remaining'], 6) == 1.0
    assert not pending[1]['is_urgent']
    assert pending[1]['deadline_at'] == relaxed.created_at + timedelta(hours=24)


def test_background_scheduler_starts_once(app):
    try:
        assert scheduler_service.start_auto_release_scheduler(app, interval=3600)
        assert scheduler_service.is_scheduler_running()
        assert not scheduler_service.start_auto_release_scheduler(app, interval=3600)
    finally:
        assert scheduler_service.stop_auto_release_scheduler()

    assert not scheduler_service.is_scheduler_running()
    assert not scheduler_service.stop_auto_release_scheduler()


def test_cli_runs_a_single_pass(app, listing, guest, make_booking):
    make_booking(listing, guest, status=BookingStatus.PENDING,
                 created_at=datetime.utcnow() - timedelta(hours=25))

    result = app.test_cli_runner().invoke(args=['scheduler', 'run', '--once'])

    assert result.exit_code == 0
    assert 'cancelled=1' in result.output
