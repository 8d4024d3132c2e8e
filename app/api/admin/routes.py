"""
Admin Routes
"""

from flask import Blueprint, jsonify, request, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from app.models.user import User, UserRole, KYCStatus
from app.models.listing import Listing, ListingStatus
from app.models.booking import Booking, BookingStatus, DisputeStatus
from app.models.damage_report import DamageReport, DamageReportStatus
from extensions import db
from app.services import damage_report_service, notification_service, scheduler_service
from app.services.escrow_service import EscrowService, REFUND_GUEST, RELEASE_TO_HOST
from app.utils.decorators import admin_required

admin_bp = Blueprint('admin', __name__)


def _serialize_release(item):
    return {
        'booking': item['booking'].to_dict(),
        'listing_title': item['listing'].title if item['listing'] else None,
        'release_date': item['release_date'].isoformat(),
        'hours_until_release': round(item['hours_until_release'], 2),
        'is_overdue': item['is_overdue'],
    }


def _serialize_deadline(item):
    return {
        'booking': item['booking'].to_dict(),
        'listing_title': item['listing'].title if item['listing'] else None,
        'is_same_day_booking': item['is_same_day_booking'],
        'deadline_hours': item['deadline'],
        'hours_since_created': round(item['hours_since_created'], 2),
        'hours_remaining': round(item['hours_remaining'], 2),
        'is_urgent': item['is_urgent'],
        'deadline_at': item['deadline_at'].isoformat(),
    }


@admin_bp.route('/dashboard', methods=['GET'])
@jwt_required()
@admin_required()
def admin_dashboard():
    """Get admin dashboard statistics"""
    total_users = User.query.count()
    total_listings = Listing.query.filter(Listing.status != ListingStatus.DELETED).count()
    live_listings = Listing.query.filter_by(status=ListingStatus.LIVE).count()
    total_bookings = Booking.query.count()

    pending_bookings = Booking.query.filter_by(status=BookingStatus.PENDING).count()
    open_disputes = Booking.query.filter_by(dispute_status=DisputeStatus.OPEN).count()
    pending_kyc = User.query.filter_by(kyc_status=KYCStatus.PENDING).count()
    pending_listings = Listing.query.filter_by(status=ListingStatus.PENDING_APPROVAL).count()
    active_hosts = User.query.filter_by(is_host=True, is_active=True).count()

    recent_users = User.query.order_by(User.created_at.desc()).limit(10).all()
    recent_bookings = Booking.query.order_by(Booking.created_at.desc()).limit(10).all()

    return jsonify({
        'statistics': {
            'total_users': total_users,
            'total_listings': total_listings,
            'live_listings': live_listings,
            'total_bookings': total_bookings,
            'pending_bookings': pending_bookings,
            'open_disputes': open_disputes,
            'pending_kyc': pending_kyc,
            'pending_listings': pending_listings,
            'active_hosts': active_hosts
        },
        'financials': EscrowService.get_platform_financials(),
        'scheduler_running': scheduler_service.is_scheduler_running(),
        'recent_users': [user.to_dict() for user in recent_users],
        'recent_bookings': [booking.to_dict() for booking in recent_bookings]
    }), 200


# ===== ESCROW =====

@admin_bp.route('/financials', methods=['GET'])
@jwt_required()
@admin_required()
def financials():
    return jsonify(EscrowService.get_platform_financials()), 200


@admin_bp.route('/transactions', methods=['GET'])
@jwt_required()
@admin_required()
def transactions():
    """Escrow transaction log, newest first; ?booking_id= narrows it"""
    booking_id = request.args.get('booking_id', type=int)
    txs = EscrowService.get_escrow_transactions(booking_id)
    return jsonify({'transactions': [tx.to_dict() for tx in txs]}), 200


@admin_bp.route('/upcoming-releases', methods=['GET'])
@jwt_required()
@admin_required()
def upcoming_releases():
    releases = scheduler_service.get_upcoming_releases()
    return jsonify({'releases': [_serialize_release(item) for item in releases]}), 200


@admin_bp.route('/pending-deadlines', methods=['GET'])
@jwt_required()
@admin_required()
def pending_deadlines():
    pending = scheduler_service.get_pending_bookings_near_deadline()
    return jsonify({'bookings': [_serialize_deadline(item) for item in pending]}), 200


@admin_bp.route('/scheduler/release', methods=['POST'])
@jwt_required()
@admin_required()
def trigger_release():
    released = scheduler_service.trigger_manual_release_check()
    return jsonify({'message': f'Released {released} booking(s)', 'released': released}), 200


@admin_bp.route('/scheduler/complete', methods=['POST'])
@jwt_required()
@admin_required()
def trigger_complete():
    completed = scheduler_service.trigger_manual_complete_check()
    return jsonify({'message': f'Completed {completed} booking(s)', 'completed': completed}), 200


@admin_bp.route('/bookings/<int:booking_id>/resolve-dispute', methods=['POST'])
@jwt_required()
@admin_required()
def resolve_dispute(booking_id):
    """Refund the guest or release to the host"""
    booking = Booking.query.get(booking_id)

    if not booking:
        return jsonify({'error': 'Booking not found'}), 404

    if booking.dispute_status != DisputeStatus.OPEN:
        return jsonify({'error': 'Booking has no open dispute'}), 400

    data = request.get_json() or {}
    decision = data.get('decision')
    if decision not in (REFUND_GUEST, RELEASE_TO_HOST):
        return jsonify({'error': f'decision must be {REFUND_GUEST} or {RELEASE_TO_HOST}'}), 400

    open_reports = [report for report in booking.damage_reports if report.is_open]
    if open_reports:
        return jsonify({'error': 'Resolve the open damage report for this booking instead'}), 409

    EscrowService.resolve_dispute(booking, decision, data.get('admin_notes'))

    for user_id in (booking.guest_id, booking.listing.host_id):
        notification_service.add_notification(
            user_id, 'complaint', 'Dispute Resolved',
            f'The dispute on booking #{booking.id} was resolved: '
            f"{'refunded to guest' if decision == REFUND_GUEST else 'released to host'}.",
            metadata={'booking_id': booking.id, 'decision': decision},
        )
    db.session.commit()

    current_app.logger.info(f'Dispute on booking {booking.id} resolved with {decision}')

    return jsonify({
        'message': 'Dispute resolved',
        'booking': booking.to_dict()
    }), 200


# ===== DAMAGE REPORTS =====

@admin_bp.route('/damage-reports', methods=['GET'])
@jwt_required()
@admin_required()
def damage_reports():
    query = DamageReport.query
    status = request.args.get('status')
    if status:
        try:
            query = query.filter(DamageReport.status == DamageReportStatus(status))
        except ValueError:
            return jsonify({'error': f'Invalid status: {status}'}), 400

    reports = query.order_by(DamageReport.created_at.desc()).all()
    return jsonify({'reports': [report.to_dict() for report in reports]}), 200


@admin_bp.route('/damage-reports/<int:report_id>/resolve', methods=['POST'])
@jwt_required()
@admin_required()
def resolve_damage_report(report_id):
    """Approve a claim amount; it is paid from the caution deposit"""
    report = DamageReport.query.get(report_id)

    if not report:
        return jsonify({'error': 'Damage report not found'}), 404

    data = request.get_json() or {}
    if 'approved_amount' not in data:
        return jsonify({'error': 'approved_amount is required'}), 400

    damage_report_service.resolve_report(report, data['approved_amount'], data.get('admin_notes'))
    db.session.commit()

    return jsonify({
        'message': 'Damage report resolved',
        'report': report.to_dict()
    }), 200


@admin_bp.route('/damage-reports/<int:report_id>/escalate', methods=['POST'])
@jwt_required()
@admin_required()
def escalate_damage_report(report_id):
    report = DamageReport.query.get(report_id)

    if not report:
        return jsonify({'error': 'Damage report not found'}), 404

    data = request.get_json() or {}
    damage_report_service.escalate_report(report, data.get('admin_notes'))
    db.session.commit()

    return jsonify({
        'message': 'Damage report escalated',
        'report': report.to_dict()
    }), 200


# ===== LISTINGS =====

@admin_bp.route('/listings/pending', methods=['GET'])
@jwt_required()
@admin_required()
def pending_listings():
    listings = Listing.query.filter_by(status=ListingStatus.PENDING_APPROVAL)\
        .order_by(Listing.created_at.asc()).all()
    return jsonify({
        'listings': [listing.to_dict(include_host=True, include_private=True) for listing in listings]
    }), 200


@admin_bp.route('/listings/<int:listing_id>/approve', methods=['POST'])
@jwt_required()
@admin_required()
def approve_listing(listing_id):
    listing = Listing.query.get(listing_id)

    if not listing:
        return jsonify({'error': 'Listing not found'}), 404

    if listing.status != ListingStatus.PENDING_APPROVAL:
        return jsonify({'error': f'Listing is {listing.status.value}'}), 400

    listing.status = ListingStatus.LIVE
    listing.rejection_reason = None
    notification_service.add_notification(
        listing.host_id, 'platform_update', 'Listing Approved',
        f'"{listing.title}" is now live.',
        metadata={'listing_id': listing.id},
    )
    db.session.commit()

    return jsonify({
        'message': 'Listing approved',
        'listing': listing.to_dict(include_private=True)
    }), 200


@admin_bp.route('/listings/<int:listing_id>/reject', methods=['POST'])
@jwt_required()
@admin_required()
def reject_listing(listing_id):
    listing = Listing.query.get(listing_id)

    if not listing:
        return jsonify({'error': 'Listing not found'}), 404

    data = request.get_json() or {}
    reason = data.get('reason')
    if not reason:
        return jsonify({'error': 'Rejection reason is required'}), 400

    if listing.status not in (ListingStatus.PENDING_APPROVAL, ListingStatus.PENDING_KYC, ListingStatus.LIVE):
        return jsonify({'error': f'Listing is {listing.status.value}'}), 400

    listing.status = ListingStatus.REJECTED
    listing.rejection_reason = reason
    notification_service.add_notification(
        listing.host_id, 'platform_update', 'Listing Rejected',
        f'"{listing.title}" was not approved: {reason}',
        severity='warning', action_required=True,
        metadata={'listing_id': listing.id},
    )
    db.session.commit()

    return jsonify({
        'message': 'Listing rejected',
        'listing': listing.to_dict(include_private=True)
    }), 200


# ===== USERS =====

@admin_bp.route('/users', methods=['GET'])
@jwt_required()
@admin_required()
def get_all_users():
    """Get all users (admin only)"""
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', 20, type=int)

    users = User.query.order_by(User.created_at.desc())\
        .paginate(page=page, per_page=per_page, error_out=False)

    return jsonify({
        'users': [user.to_dict(include_email=True, include_kyc=True) for user in users.items],
        'total': users.total,
        'pages': users.pages,
        'current_page': page
    }), 200


@admin_bp.route('/users/<int:user_id>/make-admin', methods=['POST'])
@jwt_required()
@admin_required()
def make_user_admin(user_id):
    """Make a user admin"""
    user = User.query.get(user_id)

    if not user:
        return jsonify({'error': 'User not found'}), 404

    if user.is_admin:
        return jsonify({'message': 'User is already an admin'}), 200

    user.is_admin = True
    user.role = UserRole.ADMIN
    db.session.commit()

    return jsonify({
        'message': f'Successfully made {user.full_name} an admin',
        'user': user.to_dict(include_email=True)
    }), 200


@admin_bp.route('/users/<int:user_id>/remove-admin', methods=['POST'])
@jwt_required()
@admin_required()
def remove_user_admin(user_id):
    """Remove admin privileges from a user"""
    current_user_id = int(get_jwt_identity())

    # Prevent self-demotion
    if current_user_id == user_id:
        return jsonify({'error': 'Cannot remove your own admin privileges'}), 403

    user = User.query.get(user_id)

    if not user:
        return jsonify({'error': 'User not found'}), 404

    if not user.is_admin:
        return jsonify({'message': 'User is not an admin'}), 200

    user.is_admin = False
    user.role = UserRole.HOST if user.is_host else UserRole.GUEST
    db.session.commit()

    return jsonify({
        'message': f'Successfully removed admin privileges from {user.full_name}',
        'user': user.to_dict(include_email=True)
    }), 200


# ===== BROADCAST =====

@admin_bp.route('/broadcast', methods=['POST'])
@jwt_required()
@admin_required()
def broadcast():
    """Send a platform update notification to every active user"""
    data = request.get_json() or {}
    title = (data.get('title') or '').strip()
    message = (data.get('message') or '').strip()

    if not title or not message:
        return jsonify({'error': 'title and message are required'}), 400

    severity = data.get('severity', 'info')
    if severity not in notification_service.SEVERITIES:
        return jsonify({'error': f'Invalid severity: {severity}'}), 400

    recipients = notification_service.broadcast(
        title, message, int(get_jwt_identity()),
        severity=severity, action_required=bool(data.get('action_required', False)),
    )
    db.session.commit()

    current_app.logger.info(f'Broadcast "{title}" sent to {recipients} user(s)')

    return jsonify({
        'message': 'Broadcast sent',
        'recipients': recipients
    }), 201
