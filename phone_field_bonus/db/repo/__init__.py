from phone_field_bonus.db.repo.gamification_repo import GamificationRepo
from phone_field_bonus.db.repo.site_settings_repo import SiteSettingsRepo
from phone_field_bonus.db.repo.user_custom_fields_repo import UserCustomFieldsRepo
from phone_field_bonus.db.repo.user_field_values_repo import UserFieldValuesRepo
from phone_field_bonus.db.repo.user_stats_repo import UserStatsRepo
from phone_field_bonus.db.repo.users_repo import UsersRepo

__all__ = [
    "GamificationRepo",
    "SiteSettingsRepo",
    "UserCustomFieldsRepo",
    "UserFieldValuesRepo",
    "UserStatsRepo",
    "UsersRepo",
]
