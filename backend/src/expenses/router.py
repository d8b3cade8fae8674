import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, status, Query, Path, Body, Response

from .models import ExpenseCreate, ExpenseRead, ExpenseUpdate
from .dependencies import ExpenseServiceDep

from src.core.exceptions import NotFoundException, ConflictException, InvalidStateException

logger = logging.getLogger(__name__)

expense_router = APIRouter(tags=["Expenses"])

def handle_expense_service_errors(e: Exception):
    if isinstance(e, HTTPException):
        raise e
    if isinstance(e, NotFoundException):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, ConflictException):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, InvalidStateException):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    logger.error(f"[Expense API] Unexpected error: {e}", exc_info=True)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Erreur interne (dépenses).")

@expense_router.post("/expenses", response_model=ExpenseRead, status_code=status.HTTP_201_CREATED, summary="Enregistrer une dépense")
async def create_expense(service: ExpenseServiceDep, expense_in: ExpenseCreate):
    try:
        return await service.create_expense(expense_in)
    except Exception as e:
        handle_expense_service_errors(e)

@expense_router.get("/expenses", response_model=List[ExpenseRead], summary="Lister les dépenses")
async def list_expenses(
    response: Response,
    service: ExpenseServiceDep,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    project_id: Optional[int] = Query(None, ge=1),
    is_billable: Optional[bool] = Query(None),
    is_billed: Optional[bool] = Query(None),
):
    try:
        expenses, total = await service.list_expenses(
            limit=limit, offset=offset, project_id=project_id, is_billable=is_billable, is_billed=is_billed
        )
        end_range = offset + len(expenses) - 1 if expenses else offset
        response.headers["Content-Range"] = f"expenses {offset}-{end_range}/{total}"
        return expenses
    except Exception as e:
        handle_expense_service_errors(e)

@expense_router.get("/expenses/{expense_id}", response_model=ExpenseRead, summary="Récupérer une dépense")
async def get_expense(service: ExpenseServiceDep, expense_id: int = Path(..., ge=1)):
    try:
        return await service.get_expense(expense_id)
    except Exception as e:
        handle_expense_service_errors(e)

@expense_router.patch("/expenses/{expense_id}", response_model=ExpenseRead, summary="Modifier une dépense non facturée")
async def update_expense(service: ExpenseServiceDep, expense_id: int = Path(..., ge=1), expense_in: ExpenseUpdate = Body(...)):
    logger.info(f"API update_expense: ID={expense_id}")
    try:
        return await service.update_expense(expense_id, expense_in)
    except Exception as e:
        handle_expense_service_errors(e)

@expense_router.get("/projects/{project_id}/billable-expenses", response_model=List[ExpenseRead], summary="Dépenses refacturables non facturées d'un projet")
async def list_billable_expenses(service: ExpenseServiceDep, project_id: int = Path(..., ge=1)):
    try:
        return await service.list_billable_unbilled(project_id)
    except Exception as e:
        handle_expense_service_errors(e)
