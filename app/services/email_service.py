"""
Email Service
Handles sending emails for booking notifications
"""

from flask import current_app
from flask_mail import Message
from extensions import mail

from app.utils.money import format_money


FOOTER = """
                <hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;">
                <p style="color: #999; font-size: 12px;">
                    This is an automated message. Please do not reply to this email.
                </p>
"""


def _button(path, label):
    url = f"{current_app.config.get('FRONTEND_URL', 'http://localhost:3000')}{path}"
    return f"""
                <div style="margin: 30px 0;">
                    <a href="{url}"
                       style="background-color: #FF5A5F; color: white; padding: 12px 30px;
                              text-decoration: none; border-radius: 5px; display: inline-block;">
                        {label}
                    </a>
                </div>
"""


def _wrap(body):
    return f"""
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
{body}
{FOOTER}
            </div>
        </body>
        </html>
        """


class EmailService:
    """Service for sending emails"""

    @staticmethod
    def send_email(to, subject, html_body, text_body=None):
        """Send an email"""
        try:
            msg = Message(
                subject=subject,
                recipients=[to] if isinstance(to, str) else to,
                html=html_body,
                body=text_body or html_body
            )
            mail.send(msg)
            return True
        except Exception as e:
            current_app.logger.error(f'Failed to send email: {str(e)}')
            return False

    @staticmethod
    def send_booking_confirmation(booking):
        """Tell the guest the host accepted the booking"""
        guest = booking.guest
        listing = booking.listing
        currency = current_app.config['CURRENCY']
        subject = f"Booking Confirmed - {listing.title}"
        html_body = _wrap(f"""
                <h2 style="color: #FF5A5F;">Booking Confirmed!</h2>
                <p>Hi {guest.first_name},</p>
                <p>Your booking has been confirmed by the host.</p>

                <div style="background-color: #f8f8f8; padding: 20px; border-radius: 5px; margin: 20px 0;">
                    <h3 style="margin-top: 0; color: #333;">{listing.title}</h3>
                    <p><strong>Location:</strong> {listing.location}</p>
                    <p><strong>Date:</strong> {booking.date.isoformat()}</p>
                    <p><strong>Guests:</strong> {booking.guest_count}</p>
                    <p><strong>Total Price:</strong> {format_money(booking.total_price, currency)}</p>
                    <p><strong>Check-in code:</strong> {booking.guest_code}</p>
                    <p><strong>Booking ID:</strong> #{booking.id}</p>
                </div>
{_button(f'/bookings/{booking.id}', 'View Booking Details')}
                <p style="color: #666; font-size: 14px;">
                    Show the check-in code to your host when you arrive.
                </p>""")
        return EmailService.send_email(guest.email, subject, html_body)

    @staticmethod
    def send_booking_request_to_host(booking):
        """Tell the host a new booking request is waiting"""
        guest = booking.guest
        listing = booking.listing
        host = listing.host
        currency = current_app.config['CURRENCY']
        subject = f"New Booking Request - {listing.title}"
        html_body = _wrap(f"""
                <h2 style="color: #FF5A5F;">New Booking Request</h2>
                <p>Hi {host.first_name},</p>
                <p>{guest.full_name} wants to book your space.</p>

                <div style="background-color: #f8f8f8; padding: 20px; border-radius: 5px; margin: 20px 0;">
                    <h3 style="margin-top: 0; color: #333;">{listing.title}</h3>
                    <p><strong>Date:</strong> {booking.date.isoformat()}</p>
                    <p><strong>Guests:</strong> {booking.guest_count}</p>
                    <p><strong>Your payout:</strong> {format_money(booking.host_payout, currency)}</p>
                    <p><strong>Booking ID:</strong> #{booking.id}</p>
                </div>
{_button(f'/host/bookings/{booking.id}', 'Respond to Request')}
                <p style="color: #666; font-size: 14px;">
                    Requests that are not answered in time are cancelled automatically.
                </p>""")
        return EmailService.send_email(host.email, subject, html_body)

    @staticmethod
    def send_cancellation_email(booking, user, is_host=False):
        """Send booking cancellation email"""
        listing = booking.listing
        currency = current_app.config['CURRENCY']
        subject = f"Booking Cancelled - {listing.title}"

        refund_line = ''
        if not is_host and booking.refund_amount:
            refund_line = f"<p><strong>Refund:</strong> {format_money(booking.refund_amount, currency)}</p>"

        html_body = _wrap(f"""
                <h2 style="color: #FF5A5F;">Booking Cancelled</h2>
                <p>Hi {user.first_name},</p>
                <p>The booking for <strong>{listing.title}</strong> on {booking.date.isoformat()} has been cancelled.</p>
                <p><strong>Reason:</strong> {booking.cancellation_reason or 'Not specified'}</p>
                {refund_line}""")
        return EmailService.send_email(user.email, subject, html_body)

    @staticmethod
    def send_payout_email(booking):
        """Tell the host the escrowed funds were released"""
        listing = booking.listing
        host = listing.host
        currency = current_app.config['CURRENCY']
        subject = f"Payment Released - {listing.title}"
        html_body = _wrap(f"""
                <h2 style="color: #FF5A5F;">Payment Released</h2>
                <p>Hi {host.first_name},</p>
                <p>{format_money(booking.host_payout, currency)} for booking #{booking.id} has been released to you.</p>
{_button('/host/earnings', 'View Earnings')}""")
        return EmailService.send_email(host.email, subject, html_body)
