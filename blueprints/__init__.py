"""
Blueprint registration for the business card service.

All blueprints are registered without URL prefixes; each route carries its full path.
"""

from __future__ import annotations


def register_blueprints(app):
    from blueprints.core import bp as core_bp
    from blueprints.card import bp as card_bp
    from blueprints.chat import bp as chat_bp
    from blueprints.admin import bp as admin_bp
    from blueprints.master import bp as master_bp

    app.register_blueprint(core_bp)
    app.register_blueprint(card_bp)
    app.register_blueprint(chat_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(master_bp)
