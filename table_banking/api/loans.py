"""
Loan endpoints
"""

from fastapi import APIRouter, Depends, status

from .auth import LendingSystem, get_current_user, get_lending_system
from .schemas import (
    CreateLoanRequest, LoanDecisionRequest, loan_to_response, payment_to_response,
    summary_to_response
)


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_loan(
    request: CreateLoanRequest,
    user_id: str = Depends(get_current_user),
    system: LendingSystem = Depends(get_lending_system)
):
    """Request a loan for yourself, or for a member as admin/treasurer"""
    loan = system.loan_manager.create_loan_request(user_id, request.to_loan_request())
    return {
        "loan": loan_to_response(loan),
        "message": "Loan request created successfully"
    }


@router.get("/{loan_id}")
async def get_loan(
    loan_id: str,
    user_id: str = Depends(get_current_user),
    system: LendingSystem = Depends(get_lending_system)
):
    """Get loan details"""
    return loan_to_response(system.loan_manager.view_loan(user_id, loan_id))


@router.post("/{loan_id}/approve")
async def decide_loan(
    loan_id: str,
    request: LoanDecisionRequest,
    user_id: str = Depends(get_current_user),
    system: LendingSystem = Depends(get_lending_system)
):
    """Approve or reject a pending loan"""
    if request.action == "approve":
        loan = system.loan_manager.approve_loan(user_id, loan_id, request.disbursement_date)
    else:
        loan = system.loan_manager.reject_loan(user_id, loan_id, request.reason)
    return {
        "loan": loan_to_response(loan),
        "message": f"Loan {request.action}d successfully"
    }


@router.post("/{loan_id}/repair")
async def repair_schedule(
    loan_id: str,
    user_id: str = Depends(get_current_user),
    system: LendingSystem = Depends(get_lending_system)
):
    """Finish activation of an approved loan whose schedule is missing"""
    return loan_to_response(system.loan_manager.repair_schedule(user_id, loan_id))


@router.get("/{loan_id}/payments")
async def get_loan_payments(
    loan_id: str,
    user_id: str = Depends(get_current_user),
    system: LendingSystem = Depends(get_lending_system)
):
    """Get the repayment schedule and its payment status"""
    payments = system.loan_manager.view_loan_payments(user_id, loan_id)
    return {"payments": [payment_to_response(p) for p in payments]}


@router.get("/{loan_id}/summary")
async def get_loan_summary(
    loan_id: str,
    user_id: str = Depends(get_current_user),
    system: LendingSystem = Depends(get_lending_system)
):
    """Totals paid, penalties and outstanding balance"""
    system.loan_manager.view_loan(user_id, loan_id)
    return summary_to_response(system.loan_manager.get_loan_summary(loan_id))
