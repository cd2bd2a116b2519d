"""Identity platform API connectors and invitation administration.

To create the Flask app:
    from app.flask_app import create_app

To use the invitation lifecycle without Flask:
    from app.core.invitation_service import InvitationService
    from app.core.invitation_store import open_store
"""
# Note: We don't import flask_app by default to avoid the Flask dependency
# for CLI scripts that only use app.core
