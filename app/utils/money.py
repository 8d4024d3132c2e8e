from decimal import Decimal, ROUND_HALF_UP


def round_money(value):
    """Round to 2 decimals, halves away from zero"""
    return float(Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


def format_money(amount, currency='NGN'):
    return f'{currency} {amount:,.2f}'
