"""
Notifications app.

Stores user-facing notifications and delivers them by email. Callers pick
a notification type and pass template data; rendering happens here, from
the templates seeded on NotificationType.
"""
