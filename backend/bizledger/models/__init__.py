from .tenancy import BusinessUnit, Customer
from .staff import Employee
from .catalog import Service
from .sales import Sale, SaleItem, Payment
from .commissions import CommissionTransaction
from .documents import DocumentSequence

__all__ = [
    'BusinessUnit', 'Customer',
    'Employee',
    'Service',
    'Sale', 'SaleItem', 'Payment',
    'CommissionTransaction',
    'DocumentSequence',
]
