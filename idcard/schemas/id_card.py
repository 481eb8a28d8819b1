"""
ID Card Schemas
Pydantic value objects for card face parameters and preview responses
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


DateInput = Union[datetime, date, str]


class FrontCardParams(BaseModel):
    """Parameters for the front face of an ID card"""
    model_config = ConfigDict(frozen=True)

    full_name: str = Field(..., validation_alias=AliasChoices("full_name", "fullName"),
                           description="Employee name, printed uppercase")
    designation: Optional[str] = Field(None, description="Job title printed under the name")
    gender: Optional[Gender] = Field(None, description="male, female or other")
    phone: Optional[str] = Field(None, description="Employee phone number")
    blood_group: Optional[str] = Field(None, validation_alias=AliasChoices("blood_group", "bloodGroup"))
    dob: Optional[DateInput] = Field(None, description="Date of birth, ISO-8601")
    photo: Optional[str] = Field(None, validation_alias=AliasChoices("photo", "photoDataUrl", "photo_data_url"),
                                 description="Photo URL, data URL or asset path")
    logo: Optional[str] = Field(None, validation_alias=AliasChoices("logo", "logoSrc", "logo_src"),
                                description="Logo URL or asset path; defaults to the configured logo")

    @field_validator("gender", mode="before")
    @classmethod
    def normalize_gender(cls, v: Any) -> Optional[str]:
        """Unknown gender values are treated as absent"""
        if isinstance(v, Gender) or v is None:
            return v
        if isinstance(v, str):
            value = v.strip().lower()
            if value in {g.value for g in Gender}:
                return value
        return None


class BackCardParams(BaseModel):
    """Parameters for the back face of an ID card"""
    model_config = ConfigDict(frozen=True)

    emergency_contact_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("emergency_contact_name", "emergencyContactName", "emergencyName"))
    emergency_contact_number: Optional[str] = Field(
        None, validation_alias=AliasChoices("emergency_contact_number", "emergencyContactNumber", "emergencyNumber"))
    blood_group: Optional[str] = Field(None, validation_alias=AliasChoices("blood_group", "bloodGroup"))
    address: Optional[str] = Field(None, description="Pre-joined residential address")
    joining_date: Optional[str] = Field(None, validation_alias=AliasChoices("joining_date", "joiningDate"),
                                        description="Display-formatted joining date")
    expire_date: Optional[str] = Field(None, validation_alias=AliasChoices("expire_date", "expireDate"),
                                       description="Display-formatted expiry date")
    logo: Optional[str] = Field(None, validation_alias=AliasChoices("logo", "logoSrc", "logo_src"))


class CombinedCardParams(BaseModel):
    """Parameters for both faces of an ID card"""
    model_config = ConfigDict(frozen=True)

    front: FrontCardParams
    back: BackCardParams


class CardPreviewResponse(BaseModel):
    """Data URL previews of a generated card"""
    front: str = Field(..., description="Front face PNG as a data URL")
    back: str = Field(..., description="Back face PNG as a data URL")
    combined: str = Field(..., description="Side-by-side PNG as a data URL")
    joining_date: Optional[str] = None
    expire_date: Optional[str] = None
    generated_at: datetime
