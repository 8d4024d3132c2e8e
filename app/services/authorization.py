"""
Ownership checks shared by the booking, listing and damage report routes
"""


def can_view_booking(user, booking):
    if not user:
        return False
    if user.is_admin or booking.guest_id == user.id:
        return True
    return booking.listing is not None and booking.listing.host_id == user.id


def can_manage_booking_as_host(user, booking):
    if not user:
        return False
    if user.is_admin:
        return True
    return booking.listing is not None and booking.listing.host_id == user.id


def can_manage_listing(user, listing):
    if not user:
        return False
    return user.is_admin or listing.host_id == user.id
