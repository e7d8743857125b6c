"""
Loan payment endpoints
"""

from fastapi import APIRouter, Depends

from .auth import LendingSystem, get_current_user, get_lending_system
from .schemas import RecordPaymentRequest, loan_to_response, payment_to_response


router = APIRouter()


@router.post("/{payment_id}/record")
async def record_payment(
    payment_id: str,
    request: RecordPaymentRequest,
    user_id: str = Depends(get_current_user),
    system: LendingSystem = Depends(get_lending_system)
):
    """Record repayment of one installment"""
    payment = system.loan_manager.record_payment(
        user_id, payment_id, request.amount, request.payment_date
    )
    loan = system.loan_manager.require_loan(payment.loan_id)
    return {
        "payment": payment_to_response(payment),
        "loan": loan_to_response(loan),
        "message": "Payment recorded successfully"
    }
