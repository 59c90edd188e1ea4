from .suppliers import Supplier, SupplierAdvance, AdvanceRecoveryLine
from .batches import CoffeeBatch, QualityAssessment
from .finance import PaymentRecord, CashTransaction, CashBalance
from .approvals import ApprovalRequest
from .follow_ups import FollowUpTask, DayBookEntry

__all__ = [
    'Supplier', 'SupplierAdvance', 'AdvanceRecoveryLine',
    'CoffeeBatch', 'QualityAssessment',
    'PaymentRecord', 'CashTransaction', 'CashBalance',
    'ApprovalRequest',
    'FollowUpTask', 'DayBookEntry',
]
