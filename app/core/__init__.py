"""Core Business Logic Module

This module provides the invitation, role-resolution and authorization logic,
independent of the HTTP framework (only the session helpers in rbac.py
touch Flask).

Module Structure:
    - models.py             : Invitation and principal records, delegated roles
    - invitation_store.py   : File and in-memory invitation storage
    - invitation_service.py : Issue, validate and redeem invitations
    - app_roles.py          : Resolve a user's app roles on an application
    - connector.py          : Connector request/response contract
    - rbac.py               : Delegated-role authorization rules and session helpers
    - claims.py             : Extension attribute and claim naming
    - directory.py          : Directory capabilities consumed by the core
    - graph/                : Microsoft Graph implementation of the directory
    - validators.py         : Input validation

Usage Pattern:
    These modules are NOT auto-imported. Import explicitly when needed:
        from app.core.invitation_service import InvitationService
        from app.core.connector import InvitationConnector, RolesConnector
"""
