"""
Authentication module for the diagnostic system.

This module provides authentication and authorization functionality including:
- Field worker self-registration
- Super admin creation of privileged accounts
- Password reset with single-use tokens
- JWT session tokens
- Role-based access control
"""
