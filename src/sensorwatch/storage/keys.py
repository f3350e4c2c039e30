"""
Key names in the persistent store, grouped by owning component.

Only the owner writes a key family; any component may read.
"""

# Session Manager
SESSION = "session"
USER_ID = "session:user_id"
ROLE = "session:role"
PUSH_TOKEN = "session:push_token"

SESSION_KEYS = (SESSION, USER_ID, ROLE, PUSH_TOKEN)


# Sensor Poller
def sensor_cache(user_id: str) -> str:
    return f"sensors:{user_id}"


# Mute-State Store
def mute_prefix(user_id: str) -> str:
    return f"mute:{user_id}:"


def global_mute(user_id: str) -> str:
    return f"{mute_prefix(user_id)}global"


def sensor_mute(user_id: str, sensor_name: str) -> str:
    return f"{mute_prefix(user_id)}sensor:{sensor_name}"


def mute_index(user_id: str) -> str:
    """JSON list of every sensor mute key written for the user."""
    return f"{mute_prefix(user_id)}index"


def mute_pending(user_id: str) -> str:
    """JSON object of mute keys whose remote write has not succeeded."""
    return f"{mute_prefix(user_id)}pending"


# Notification Coordinator
def notification_log(user_id: str) -> str:
    return f"notifications:{user_id}"
