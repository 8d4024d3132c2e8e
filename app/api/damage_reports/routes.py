"""
Damage Report Routes
"""

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required, get_jwt_identity
from extensions import db
from app.models.booking import Booking
from app.models.damage_report import DamageReport
from app.models.user import User
from app.services import damage_report_service
from app.services.authorization import can_view_booking
from app.services.s3_service import store_files
from app.utils.errors import ServiceError

damage_reports_bp = Blueprint('damage_reports', __name__)


def _current_user():
    return User.query.get(int(get_jwt_identity()))


@damage_reports_bp.route('/', methods=['POST'])
@jwt_required()
def file_report():
    """
    Host reports damage against a booking's caution deposit

    Accepts JSON or multipart form data; images are uploaded from the
    'images' file field.
    """
    try:
        user = _current_user()

        if request.files:
            data = request.form
            images = store_files(request.files.getlist('images'), folder='damage-reports')
        else:
            data = request.get_json() or {}
            images = data.get('images') or []

        booking_id = data.get('booking_id')
        if not booking_id:
            return jsonify({'error': 'booking_id is required'}), 400

        booking = Booking.query.get(int(booking_id))
        if not booking:
            return jsonify({'error': 'Booking not found'}), 404

        report = damage_report_service.file_report(
            booking, user, data.get('description'), data.get('estimated_cost'), images
        )
        db.session.commit()

        current_app.logger.info(f'Damage report {report.id} filed on booking {booking.id} by host {user.id}')

        return jsonify({
            'message': 'Damage report filed',
            'report': report.to_dict()
        }), 201

    except ServiceError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except ValueError:
        db.session.rollback()
        return jsonify({'error': 'booking_id must be a number'}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Damage report failed: {str(e)}')
        return jsonify({'error': str(e)}), 500


@damage_reports_bp.route('/<int:report_id>', methods=['GET'])
@jwt_required()
def get_report(report_id):
    user = _current_user()
    report = DamageReport.query.get(report_id)

    if not report:
        return jsonify({'error': 'Damage report not found'}), 404

    if not can_view_booking(user, report.booking):
        return jsonify({'error': 'Unauthorized'}), 403

    return jsonify({'report': report.to_dict()}), 200


@damage_reports_bp.route('/booking/<int:booking_id>', methods=['GET'])
@jwt_required()
def get_booking_reports(booking_id):
    user = _current_user()
    booking = Booking.query.get(booking_id)

    if not booking:
        return jsonify({'error': 'Booking not found'}), 404

    if not can_view_booking(user, booking):
        return jsonify({'error': 'Unauthorized'}), 403

    reports = booking.damage_reports.order_by(DamageReport.created_at.desc()).all()

    return jsonify({
        'reports': [report.to_dict() for report in reports]
    }), 200


@damage_reports_bp.route('/<int:report_id>/respond', methods=['POST'])
@jwt_required()
def respond(report_id):
    """Guest accepts the claim or disputes it"""
    user = _current_user()
    report = DamageReport.query.get(report_id)

    if not report:
        return jsonify({'error': 'Damage report not found'}), 404

    data = request.get_json() or {}
    if 'accept' not in data:
        return jsonify({'error': 'accept is required'}), 400

    damage_report_service.respond_to_report(report, user, bool(data['accept']), data.get('response'))
    db.session.commit()

    return jsonify({
        'message': 'Response recorded',
        'report': report.to_dict()
    }), 200
