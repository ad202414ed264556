from . import contacts, emails, learning, notifications, tasks

__all__ = ["contacts", "emails", "learning", "notifications", "tasks"]
