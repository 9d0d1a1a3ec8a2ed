"""
Vetora Auth - Authentication Backend

Account, token and credential services for the Vetora platform.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are wired together in a single composition root
- All communication through defined interfaces

Modules:
- config: Infrastructure configuration
- users: User documents and vendor store registry
- auth: Tokens, passwords, role sync, errors
- middleware: Dual-mode JWT authentication
- biometric: WebAuthn challenge manager and request hardening
- oauth: Google, Apple and wallet sign-in bridges
- email: Outbound mail
- api: REST API interface
"""

__version__ = "1.0.0"
