from .user import User
from .goal import Goal
from .checkin import CheckinResponse
from .activity import MoodEntry, ActivityCompletion
from .achievement import UserAchievement
from .notification_log import NotificationLog

__all__ = [
    "User",
    "Goal",
    "CheckinResponse",
    "MoodEntry",
    "ActivityCompletion",
    "UserAchievement",
    "NotificationLog",
]
