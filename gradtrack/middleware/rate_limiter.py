"""
Per-blueprint rate limits.

Each app's Limiter is created without a default limit in
``gradtrack._init_extensions``; this module attaches the milestone limit
once blueprints are registered. The limit string comes from
``MILESTONE_RATE_LIMIT`` so deployments can tune it.
"""

import logging

logger = logging.getLogger(__name__)

DEFAULT_MILESTONE_LIMIT = "60/minute"


def init_rate_limits(app, limiter):
    """Limit /api/v1/milestones per remote address; health probes stay exempt.

    Nothing is applied when RATELIMIT_ENABLED is false (the testing config).
    """
    if not app.config.get("RATELIMIT_ENABLED", True):
        logger.debug("Rate limits disabled for this app")
        return

    limit = app.config.get("MILESTONE_RATE_LIMIT", DEFAULT_MILESTONE_LIMIT)

    milestones = app.blueprints.get("milestones")
    if milestones is not None:
        limiter.limit(limit)(milestones)

    health = app.blueprints.get("health_bp")
    if health is not None:
        limiter.exempt(health)

    logger.info("Rate limits applied: milestones=%s", limit)
