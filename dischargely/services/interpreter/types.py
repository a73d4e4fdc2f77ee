"""Input/output types for discharge document generation."""

from dataclasses import dataclass


@dataclass
class ClerkingNotes:
    """Raw clerking notes as pasted by the clinician."""

    content: str


@dataclass
class DischargeDocuments:
    """Structured output parsed from the model response."""

    summary: str
    discharge_plan: str
    raw_response: str = ""
