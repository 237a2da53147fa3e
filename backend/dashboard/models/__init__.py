from dashboard.models.user import Session, User

__all__ = ["Session", "User"]
