from .reader import RosterError, read_roster

__all__ = ["RosterError", "read_roster"]
