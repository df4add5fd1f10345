from fastapi import Depends, HTTPException, status

from quoteflow.middleware.auth import get_current_user


def require_roles(*allowed_roles: str):
    """
    FastAPI dependency factory for role-based access control.

    Usage:
        @router.post("/{quote_request_id}/responses")
        async def submit(
            current_user: dict = Depends(get_current_user),
            _auth: None = Depends(require_roles("supplier")),
        ):
    """
    async def check_role(current_user: dict = Depends(get_current_user)):
        if current_user["role"] not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": {
                        "code": "INSUFFICIENT_PERMISSIONS",
                        "message": (
                            f"Role '{current_user['role']}' cannot perform this action. "
                            f"Required: {allowed_roles}"
                        ),
                    }
                },
            )
        return None

    return check_role


async def get_current_supplier_id(current_user: dict = Depends(get_current_user)) -> str:
    """Supplier identity from the token; supplier tokens must carry supplier_id."""
    if current_user["role"] != "supplier" or not current_user.get("supplier_id"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": {
                    "code": "INSUFFICIENT_PERMISSIONS",
                    "message": "A supplier account is required for this action",
                }
            },
        )
    return current_user["supplier_id"]
