from datetime import date
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class CamelModel(BaseModel):
    # Mobile clients post phone numbers and codes as JSON numbers.
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)


class SignupData(CamelModel):
    owner_name: Optional[str] = Field(default=None, alias="ownerName")
    restaurant_name: Optional[str] = Field(default=None, alias="restaurantName")


class SendOtpIn(CamelModel):
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")


class VerifyOtpIn(CamelModel):
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    otp: Optional[str] = None
    signup_data: Optional[SignupData] = Field(default=None, alias="signupData")


class RefreshIn(CamelModel):
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")


class LogoutIn(CamelModel):
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")


class ProfileUpdateIn(CamelModel):
    owner_name: Optional[str] = Field(default=None, alias="ownerName")
    restaurant_name: Optional[str] = Field(default=None, alias="restaurantName")
    email: Optional[str] = Field(default=None, max_length=255)


class UserSignupData(CamelModel):
    name: Optional[str] = Field(default=None, max_length=200)


class UserVerifyOtpIn(CamelModel):
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    otp: Optional[str] = None
    signup_data: Optional[UserSignupData] = Field(default=None, alias="signupData")


class UserProfileUpdateIn(CamelModel):
    name: Optional[str] = Field(default=None, max_length=200)
    email: Optional[str] = Field(default=None, max_length=255)
    gender: Optional[str] = Field(default=None, max_length=20)
    dob: Optional[date] = None
    preference: Optional[str] = Field(default=None, max_length=255)
