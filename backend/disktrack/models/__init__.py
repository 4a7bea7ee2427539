from .units import Unit, Warranty
from .returns import ReturnRecord, ReturnWarranty
from .inquiries import Inquiry
from .files import BillFile
from .auth import User, SessionToken
from .security import RateLimitHit

__all__ = [
    'Unit', 'Warranty',
    'ReturnRecord', 'ReturnWarranty',
    'Inquiry',
    'BillFile',
    'User', 'SessionToken',
    'RateLimitHit',
]
