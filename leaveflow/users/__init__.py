"""User directory — Employee model, leave balance counters, reliever lookup."""

from leaveflow.users.models import Employee

__all__ = ["Employee"]
