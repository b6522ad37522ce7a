from typing import Optional

from fastapi import Header, HTTPException

from storefront.adapters.mock_payment import MockPaymentAdapter


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """The session layer in front of the API forwards the signed-in user as X-User-Id."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail={"code": "unauthorized", "message": "Sign in required"})
    return x_user_id


def get_payment_gateway():
    return MockPaymentAdapter()
