from polychat.events.bus import EventBus

__all__ = ["EventBus"]
