from phone_field_bonus.db.models.gamification_score_events import GamificationScoreEvent
from phone_field_bonus.db.models.site_settings import SiteSetting
from phone_field_bonus.db.models.user_custom_fields import UserCustomField
from phone_field_bonus.db.models.user_field_values import UserFieldValue
from phone_field_bonus.db.models.user_stats import UserStat
from phone_field_bonus.db.models.users import User

__all__ = [
    "GamificationScoreEvent",
    "SiteSetting",
    "User",
    "UserCustomField",
    "UserFieldValue",
    "UserStat",
]
