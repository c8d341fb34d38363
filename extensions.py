"""
Rate limiter and the lazily built AI gateway shared across blueprints.
"""

from __future__ import annotations

from flask import current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, default_limits=["300 per hour"])


class GatewayManager:
    """Lazy-loaded AIGateway stored on the current app."""

    KEY = "ai_gateway"

    @classmethod
    def get_gateway(cls):
        gateway = current_app.extensions.get(cls.KEY)
        if gateway is None:
            from ai_gateway import AIGateway
            gateway = AIGateway.from_config(current_app.config)
            current_app.extensions[cls.KEY] = gateway
        return gateway

