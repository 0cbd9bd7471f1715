from .realtime import RealtimeStatusRead

__all__ = ["RealtimeStatusRead"]
