"""Retry policies for store conflicts and notification delivery."""

from invitations.resilience.retry import conflict_retrying, delivery_retrying

__all__ = ["conflict_retrying", "delivery_retrying"]
