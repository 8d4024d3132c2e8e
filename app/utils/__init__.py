"""
Shared helpers used by routes and services
"""
