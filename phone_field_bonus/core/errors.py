class PhoneBonusError(Exception):
    pass


class UserNotFoundError(PhoneBonusError):
    def __init__(self, user_id: int) -> None:
        super().__init__(f"user {user_id} not found")
        self.user_id = user_id


class TransientAwardError(PhoneBonusError):
    pass
