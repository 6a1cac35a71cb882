"""
Request DTOs for registration endpoints.

RegisterRequest            — POST /auth/register
VerifyRegistrationRequest  — POST /auth/register/verify
ResendOtpRequest           — POST /auth/register/resend-otp
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register.

    Sellers must also supply ``phone_number`` and ``country``.
    """

    model_config = ConfigDict(populate_by_name=True)

    email: str
    name: str = Field(min_length=2)
    user_type: Literal["user", "seller"] = "user"
    phone_number: Optional[str] = Field(default=None, min_length=10)
    country: Optional[str] = Field(default=None, min_length=2)

    @model_validator(mode="after")
    def seller_contact_details(self) -> "RegisterRequest":
        if self.user_type == "seller" and (not self.phone_number or not self.country):
            raise ValueError("phone_number and country are required for sellers")
        return self


class VerifyRegistrationRequest(BaseModel):
    """Request body for POST /auth/register/verify.

    ``otp`` is checked by the verifier itself, so a malformed code gets the
    same typed error as any other OTP denial.
    """

    model_config = ConfigDict(populate_by_name=True)

    email: str
    otp: str


class ResendOtpRequest(BaseModel):
    """Request body for POST /auth/register/resend-otp."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
