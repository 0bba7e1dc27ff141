from app.models.daily_usage import DailyUsage

__all__ = [
    "DailyUsage",
]
