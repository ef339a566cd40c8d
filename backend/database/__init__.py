from .connection import get_db, engine, AsyncSessionLocal, init_db, Base

# Import SMS models to ensure they are registered with Base
from .sms_models import (
    SMSTemplateDB, SMSCommunicationDB, CustomerDB, EmergencyContactDB
)

__all__ = [
    'get_db', 'engine', 'AsyncSessionLocal', 'init_db', 'Base',
    'SMSTemplateDB', 'SMSCommunicationDB', 'CustomerDB', 'EmergencyContactDB',
]
