"""
api/routes/v1/register.py -- Self-service email/password registration.

Routes:
  POST /api/v1/register -- create an account; 201 on success

Validation and duplicate failures come back as 400 with the error envelope
(see the AuthError handler in api/main.py).
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from api.models import RegisterRequest, RegisterResponse
from auth.registration import register_user
from auth.store import UserStore
from core.config import get_settings

router = APIRouter()


@router.post("/register", response_model=RegisterResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    user_store: UserStore = request.app.state.user_store
    register_user(
        user_store,
        name=body.name,
        email=body.email,
        password=body.password,
        min_password_length=get_settings().min_password_length,
    )
    return RegisterResponse(message="User registered successfully.")
