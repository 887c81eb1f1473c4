from .tenancy import Company, Branch
from .accounts import FinancialAccount, FinancialTransaction, BalanceAlert
from .expenses import ExpenseCategory, Vendor
from .registers import CashRegisterSession, SessionAccountMovement, CashMovement
from .sales import Sale, SaleItem, SalePayment
from .inventory import Product, BranchStock, InventoryMovement
from .documents import DocumentSequence

__all__ = [
    'Company', 'Branch',
    'FinancialAccount', 'FinancialTransaction', 'BalanceAlert',
    'ExpenseCategory', 'Vendor',
    'CashRegisterSession', 'SessionAccountMovement', 'CashMovement',
    'Sale', 'SaleItem', 'SalePayment',
    'Product', 'BranchStock', 'InventoryMovement',
    'DocumentSequence',
]
