from .sms import router as sms_router

__all__ = [
    'sms_router',
]
