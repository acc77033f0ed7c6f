from .relay_manager import relay_manager, RelayManager

__all__ = ["relay_manager", "RelayManager"]
