"""
Pydantic models for auth request validation.

Defines schemas for registration, login and the password reset flow.
"""

from pydantic import BaseModel, Field, EmailStr


class RegisterRequest(BaseModel):
    """Request body for user registration."""
    username: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., description="8-12 chars with upper, lower, digit and special")


class LoginRequest(BaseModel):
    """Request body for user login."""
    email: EmailStr
    password: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    """Request body for starting a password reset."""
    email: EmailStr


class VerifyResetOtpRequest(BaseModel):
    """Request body for checking a reset code."""
    email: EmailStr
    otp: str = Field(..., min_length=4, max_length=10, pattern=r"^\d+$")


class ResetPasswordRequest(BaseModel):
    """Request body for setting a new password."""
    resetToken: str = Field(..., min_length=1)
    newPassword: str
