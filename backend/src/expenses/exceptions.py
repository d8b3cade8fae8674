"""Exceptions spécifiques au module Dépenses."""

from typing import List

from src.core.exceptions import ConflictException, InvalidStateException, NotFoundException

class ExpenseNotFoundException(NotFoundException):
    def __init__(self, expense_id: int):
        super().__init__(f"Dépense avec ID {expense_id} non trouvée.")
        self.expense_id = expense_id

class ExpenseAlreadyBilledException(ConflictException):
    """Levée lorsqu'une dépense a déjà été rattachée à une facture."""
    def __init__(self, expense_ids: List[int]):
        ids = ", ".join(str(expense_id) for expense_id in expense_ids)
        super().__init__(f"Dépense(s) déjà facturée(s): {ids}.")
        self.expense_ids = expense_ids

class ExpenseNotBillableException(InvalidStateException):
    def __init__(self, expense_id: int, reason: str):
        super().__init__(f"La dépense ID {expense_id} ne peut pas être facturée: {reason}.")
        self.expense_id = expense_id
