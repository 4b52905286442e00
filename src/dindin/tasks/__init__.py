"""Background task interfaces."""
from dindin.tasks.celery_app import celery_app
from dindin.tasks.reminders import send_goal_reminders, send_income_and_expense_reminders

__all__ = ["celery_app", "send_goal_reminders", "send_income_and_expense_reminders"]
