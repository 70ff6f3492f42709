"""Type-safe job payload and result definitions."""

import enum
from datetime import date, datetime
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from typing import Dict, List, Optional, Union


class Tone(str, enum.Enum):
    PROFESSIONAL = "professional"
    FIRM = "firm"
    CONCILIATORY = "conciliatory"
    ASSERTIVE = "assertive"
    DIPLOMATIC = "diplomatic"
    URGENT = "urgent"


class ItemizedMedicalExpense(BaseModel):
    description: str
    amount: float = Field(ge=0)


class Damages(BaseModel):
    """Damages breakdown claimed in the letter."""
    medical: Optional[float] = Field(default=None, ge=0)
    lost_wages: Optional[float] = Field(default=None, ge=0)
    property_damage: Optional[float] = Field(default=None, ge=0)
    pain_and_suffering: Optional[float] = Field(default=None, ge=0)
    itemized_medical: Optional[List[ItemizedMedicalExpense]] = None
    other: Optional[Dict[str, float]] = None
    notes: Optional[str] = None

    @field_validator("other")
    @classmethod
    def _other_amounts_non_negative(cls, value):
        if value:
            for label, amount in value.items():
                if amount < 0:
                    raise ValueError(f"Damage amount for '{label}' must be non-negative")
        return value

    def total(self) -> float:
        amounts = [
            self.medical,
            self.lost_wages,
            self.property_damage,
            self.pain_and_suffering,
        ]
        total = sum(a for a in amounts if a is not None)
        if self.other:
            total += sum(self.other.values())
        return total


class LetterGenerationJob(BaseModel):
    """Job payload for demand letter generation."""
    letter_id: str = Field(min_length=1)
    firm_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)

    # Case information
    case_type: str = Field(min_length=1)
    incident_date: Union[date, str]
    incident_description: str = Field(min_length=10)
    location: Optional[str] = None

    # Parties
    client_name: str = Field(min_length=1)
    client_contact: Optional[str] = None
    defendant_name: str = Field(min_length=1)
    defendant_address: Optional[str] = None

    damages: Damages = Field(default_factory=Damages)

    # Supporting material
    document_ids: Optional[List[str]] = None
    template_id: Optional[str] = None
    template_content: Optional[str] = None

    # Customization
    special_instructions: Optional[str] = None
    tone: Optional[Tone] = None
    temperature: Optional[float] = Field(default=None, ge=0, le=1)
    max_tokens: Optional[int] = Field(default=None, ge=100, le=4096)

    class Config:
        json_schema_extra = {
            "example": {
                "letter_id": "ltr_123",
                "firm_id": "firm_1",
                "user_id": "user_7",
                "case_type": "personal_injury",
                "incident_date": "2024-03-14",
                "incident_description": "Rear-end collision at a red light on Main St.",
                "client_name": "Jane Roe",
                "defendant_name": "Acme Logistics LLC",
                "damages": {"medical": 5000, "lost_wages": 2000, "pain_and_suffering": 10000},
            }
        }


class TokenUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    @model_validator(mode="after")
    def _fill_total(self):
        # Providers may report only input and output counts
        if not self.total_tokens:
            self.total_tokens = self.input_tokens + self.output_tokens
        return self


class StructuredError(BaseModel):
    """Actionable description of a generation failure."""
    title: str
    reason: str
    probable_cause: str
    suggested_action: str

    class Config:
        # Letter metadata keys are camelCase
        alias_generator = to_camel
        populate_by_name = True


class GenerationResult(BaseModel):
    """Value returned by the orchestrator for every job, success or not."""
    success: bool
    letter_id: str
    content: str = ""
    usage: Optional[TokenUsage] = None
    cost: Optional[float] = None
    error: Optional[StructuredError] = None
    generated_at: datetime
