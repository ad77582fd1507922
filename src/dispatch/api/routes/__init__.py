"""Route group exports."""

from . import clients, drivers, health, notifications, orders

__all__ = ["orders", "drivers", "clients", "notifications", "health"]
