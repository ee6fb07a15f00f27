"""Notification rule evaluation and delivery lifecycle tracking."""
