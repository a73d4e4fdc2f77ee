"""LLM interpretation service.

Quick start:
    from dischargely.services.interpreter import DischargeSummaryInterpreter, ClerkingNotes

    interpreter = DischargeSummaryInterpreter()
    documents = await interpreter.interpret(ClerkingNotes(content=notes))
    print(documents.summary, documents.discharge_plan)
"""

from .base import BaseInterpreter, InterpreterError
from .discharge import DischargeSummaryInterpreter
from .types import ClerkingNotes, DischargeDocuments

__all__ = [
    "BaseInterpreter",
    "ClerkingNotes",
    "DischargeDocuments",
    "DischargeSummaryInterpreter",
    "InterpreterError",
]
