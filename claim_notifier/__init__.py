"""Claim notifier: decides which claims get a notification and enqueues them."""

__version__ = "1.0.0"
