"""Expose handler routers for convenient imports."""
from dindin.bot.handlers import dialog, goals, reports, setup, start

__all__ = ["dialog", "goals", "reports", "setup", "start"]
