"""
Signup, login and logout endpoints
"""

from fastapi import APIRouter, Depends, Request, Response, status

from .auth import BankingSystem, extract_session_token, get_banking_system
from .schemas import LoginRequest, SignupRequest, user_to_dict
from ..users import AuthResult


router = APIRouter()


def _set_session_cookie(response: Response, system: BankingSystem, result: AuthResult) -> None:
    response.set_cookie(
        system.config.session_cookie_name,
        result.token,
        max_age=system.config.session_ttl_days * 24 * 60 * 60,
        path="/",
        httponly=True,
        samesite="strict"
    )


@router.post("/signup", status_code=status.HTTP_201_CREATED)
def signup(
    request: SignupRequest,
    response: Response,
    system: BankingSystem = Depends(get_banking_system)
):
    """Register a new user and start a session"""
    result = system.users.signup(request.to_signup_data())
    _set_session_cookie(response, system, result)
    return {"user": user_to_dict(result.user), "token": result.token}


@router.post("/login")
def login(
    request: LoginRequest,
    response: Response,
    system: BankingSystem = Depends(get_banking_system)
):
    """Log in; any previous session of the user is revoked"""
    result = system.users.login(request.email, request.password)
    _set_session_cookie(response, system, result)
    return {"user": user_to_dict(result.user), "token": result.token}


@router.post("/logout")
def logout(
    http_request: Request,
    response: Response,
    system: BankingSystem = Depends(get_banking_system)
):
    """End the current session"""
    cookie_name = system.config.session_cookie_name
    token = extract_session_token(http_request, cookie_name)
    result = system.users.logout(token)

    # The cookie is cleared even when revocation could not be verified
    response.delete_cookie(cookie_name, path="/", httponly=True, samesite="strict")
    return {"success": result.success, "message": result.message}
