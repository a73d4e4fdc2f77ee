"""Discharge summary interpreter: clerking notes in, summary and plan out."""

from .base import BaseInterpreter
from .types import ClerkingNotes, DischargeDocuments

SUMMARY_MARKER = "DISCHARGE SUMMARY:"
PLAN_MARKER = "DISCHARGE PLAN:"


class DischargeSummaryInterpreter(BaseInterpreter[ClerkingNotes, DischargeDocuments]):
    """Generates a hospital discharge summary and discharge plan from clerking notes."""

    max_tokens: int = 2500

    def get_system_prompt(self) -> str:
        return f"""You are a clinical documentation AI assistant. Your task is to read and understand raw medical clerk notes (including patient history, physical exam findings, test results, treatment plans, and hospital course), and generate a clear, concise, and professionally written hospital discharge summary followed by a discharge plan.

The discharge summary should include the following structured sections:
1. Patient Information: name, age, gender, and hospital ID if available.
2. Date of Admission & Discharge
3. Admitting Diagnosis
4. Hospital Course: major clinical events, treatments, procedures, and how the patient's condition evolved.
5. Investigations: key lab results and imaging findings that influenced care.
6. Treatment Given: surgeries, medications, therapies, or interventions.
7. Discharge Medications
8. Follow-Up Plan: next steps, outpatient follow-up, red flag symptoms.
9. Condition on Discharge
10. Consultations: specialist input if any.
11. Additional Notes: relevant social, psychological, or compliance factors.

The discharge plan should list, as short bullet points, the actions for the patient, GP and community teams after discharge: medication changes, follow-up appointments, outstanding results, safety-netting advice.

RULES:
- Use professional medical language, but keep it readable for clinicians and discharge planners.
- Infer missing but obvious details only when clinically appropriate.
- Never hallucinate. If something is missing or unclear, leave it blank or state that it is not documented.

OUTPUT FORMAT (use exactly this structure, no commentary):
{SUMMARY_MARKER}
<the discharge summary>
{PLAN_MARKER}
<the discharge plan>"""

    def format_input(self, input_data: ClerkingNotes) -> str:
        return input_data.content.strip()

    def parse_output(self, response_text: str) -> DischargeDocuments:
        """Split the reply on the section markers.

        A reply without the plan marker is treated as a summary only.
        """
        text = response_text.strip()
        summary_part, sep, plan_part = text.partition(PLAN_MARKER)
        if not sep:
            summary_part, plan_part = text, ""

        summary = summary_part.strip()
        if summary.startswith(SUMMARY_MARKER):
            summary = summary[len(SUMMARY_MARKER):].strip()

        return DischargeDocuments(
            summary=summary or text,
            discharge_plan=plan_part.strip(),
            raw_response=response_text,
        )
