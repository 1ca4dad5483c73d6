from .tenancy import Store
from .auth import User, SessionToken
from .registers import CashRegisterSession, CashRegisterSnapshot
from .cash import CashMovement, Payment, SettlementRecord, VarianceRecord

__all__ = [
    'Store',
    'User', 'SessionToken',
    'CashRegisterSession', 'CashRegisterSnapshot',
    'CashMovement', 'Payment', 'SettlementRecord', 'VarianceRecord',
]
