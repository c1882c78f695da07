"""
Request bodies. Field names follow the JSON the web client sends (camelCase).
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RegisterRequest(_Body):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=1)
    confirm_password: Optional[str] = Field(None, alias="confirmPassword")

    @model_validator(mode="after")
    def _passwords_match(self) -> "RegisterRequest":
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("Passwords do not match")
        return self


class LoginRequest(_Body):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(_Body):
    refresh_token: str = Field(..., min_length=1, alias="refreshToken")


class LogoutRequest(_Body):
    refresh_token: Optional[str] = Field(None, alias="refreshToken")


class ForgotPasswordRequest(_Body):
    email: EmailStr


class ResetPasswordRequest(_Body):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    confirm_password: Optional[str] = Field(None, alias="confirmPassword")

    @model_validator(mode="after")
    def _passwords_match(self) -> "ResetPasswordRequest":
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("Passwords do not match")
        return self


class ChangePasswordRequest(_Body):
    current_password: str = Field(..., min_length=1, alias="currentPassword")
    new_password: str = Field(..., min_length=1, alias="newPassword")
    confirm_password: Optional[str] = Field(None, alias="confirmPassword")

    @model_validator(mode="after")
    def _passwords_match(self) -> "ChangePasswordRequest":
        if self.confirm_password is not None and self.confirm_password != self.new_password:
            raise ValueError("Passwords do not match")
        return self


class UpdateUserRequest(_Body):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    avatar: Optional[str] = Field(None, max_length=2048)
