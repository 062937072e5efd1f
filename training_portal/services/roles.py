"""Position -> role mapping: only some positions are subject to training tracking."""
from training_portal.schemas.user import Role

TRACKED_POSITIONS = ["Bartender", "Trainee"]
NON_TRACKED_POSITIONS = ["Admin", "Manager", "Owner"]


def role_for_position(position: str | None) -> Role:
    """Unknown positions are not tracked."""
    if position in TRACKED_POSITIONS:
        return Role.TRACKED
    return Role.UNTRACKED


def get_tracked_positions() -> list[str]:
    return list(TRACKED_POSITIONS)


def get_non_tracked_positions() -> list[str]:
    return list(NON_TRACKED_POSITIONS)
