"""
Chat message screening

Keeps guests and hosts from moving the conversation (and the payment)
off the platform, and catches obviously abusive or spammy messages.
"""

import re

from flask import current_app


INAPPROPRIATE_KEYWORDS = [
    'scam', 'fraud', 'money laundering', 'drug', 'weapon', 'hate', 'kill', 'attack'
]

CONTACT_INFO_PATTERNS = [
    re.compile(r'\b[\w.-]+@[\w.-]+\.\w{2,4}\b', re.IGNORECASE),    # email
    re.compile(r'\b(\+?\d{1,3}[- ]?)?\d{10}\b'),                     # phone, 10 digits
    re.compile(r'\b(\+?\d{1,3}[- ]?)?\d{3}[- ]?\d{3}[- ]?\d{4}\b'),  # phone, formatted
    re.compile(r'whatsapp', re.IGNORECASE),
    re.compile(r'telegram', re.IGNORECASE),
    re.compile(r'phone number', re.IGNORECASE),
    re.compile(r'email address', re.IGNORECASE),
]

INAPPROPRIATE_CONTENT = 'inappropriate_content'
CONTACT_INFO_SHARING = 'contact_info_sharing'
SPAM = 'spam'


def check_message_safety(content):
    """
    Screen a chat message

    Returns:
        {'is_safe': True} or {'is_safe': False, 'flagged_reason': ...,
        'flagged_content': ...}. Keywords are checked first, then contact
        details, then length.
    """
    lower_content = content.lower()

    for keyword in INAPPROPRIATE_KEYWORDS:
        if keyword in lower_content:
            return {
                'is_safe': False,
                'flagged_reason': INAPPROPRIATE_CONTENT,
                'flagged_content': keyword,
            }

    for pattern in CONTACT_INFO_PATTERNS:
        if pattern.search(content):
            return {
                'is_safe': False,
                'flagged_reason': CONTACT_INFO_SHARING,
                'flagged_content': 'Potential contact information detected',
            }

    if len(content) > current_app.config.get('MAX_MESSAGE_LENGTH', 2000):
        return {
            'is_safe': False,
            'flagged_reason': SPAM,
            'flagged_content': 'Message too long',
        }

    return {'is_safe': True}
