"""Demo users for a fresh database (enabled with SEED_DEMO_DATA=true)."""
import logging

from training_portal.services.store import ProgressStore

logger = logging.getLogger(__name__)

DEMO_USERS = [
    {"user_id": "trainee@example.com", "name": "Demo Trainee", "position": "Trainee"},
    {"user_id": "bartender@example.com", "name": "Demo Bartender", "position": "Bartender"},
    {"user_id": "manager@example.com", "name": "Demo Manager", "position": "Manager"},
]


async def seed_demo_users(store: ProgressStore) -> int:
    """Register the demo users that are missing; returns how many were added."""
    existing = {state.identity.user_id for state, _ in await store.list_user_progress()}
    added = 0
    for user in DEMO_USERS:
        if user["user_id"] in existing:
            continue
        await store.register_user(**user)
        added += 1
    if added:
        logger.info("Seeded %d demo users", added)
    return added
