"""
Prompt assembly for demand letter generation

Builds:
- Case summary and party information
- Damages breakdown with totals
- Supporting document context
- Tone guidance and special instructions
"""

import math
from datetime import date
from typing import Dict, List, Optional

from ..schemas.jobs import Damages, LetterGenerationJob, Tone

DEFAULT_TEMPLATE_INSTRUCTIONS = "Use standard demand letter format"

# Share of the model input budget available to supporting documents
DOCUMENT_CONTEXT_SHARE = 0.3

TONE_GUIDANCE: Dict[Tone, str] = {
    Tone.PROFESSIONAL: "Use a measured, professional tone that is courteous but clear about the client's position.",
    Tone.FIRM: "Use a firm tone that states the demand plainly and leaves no doubt about the consequences of non-payment.",
    Tone.CONCILIATORY: "Use a conciliatory tone that invites a prompt, amicable resolution without litigation.",
    Tone.ASSERTIVE: "Use an assertive tone that emphasizes liability and the strength of the client's claim.",
    Tone.DIPLOMATIC: "Use a diplomatic tone that acknowledges the other side's perspective while pressing the claim.",
    Tone.URGENT: "Use an urgent tone that stresses the response deadline and the need for immediate action.",
}

SYSTEM_PROMPT = """You are an experienced personal injury attorney drafting demand letters on behalf of a law firm.

Write a complete, ready-to-review demand letter addressed to the responsible party.

Instructions:
- State the facts of the incident accurately, using only the information provided
- Establish liability and explain how the incident caused the client's damages
- Present the damages breakdown and the total amount demanded
- Set a clear deadline for a response
- Do not invent facts, amounts, dates or names that are not in the case information
- Output only the letter text, without commentary"""


def estimate_tokens(text: str) -> int:
    """
    Estimate token count

    Args:
        text: Text to count tokens for

    Returns:
        Approximate token count (1 token ~ 4 characters)
    """
    return math.ceil(len(text) / 4)


def _money(amount: float) -> str:
    return f"${amount:,.2f}"


def build_case_summary(job: LetterGenerationJob) -> str:
    incident_date = job.incident_date
    if isinstance(incident_date, date):
        incident_date = incident_date.isoformat()

    summary = f"## Case Type: {job.case_type}\n\n"
    summary += f"**Incident Date:** {incident_date}\n\n"
    if job.location:
        summary += f"**Location:** {job.location}\n\n"
    summary += f"**Incident Description:**\n{job.incident_description}\n\n"
    return summary


def build_party_info(
    name: str,
    address: Optional[str] = None,
    contact: Optional[str] = None,
) -> str:
    info = name
    if address:
        info += f"\n{address}"
    if contact:
        info += f"\n{contact}"
    return info


def build_damages_breakdown(damages: Damages) -> str:
    """Markdown breakdown of every claimed amount with the grand total."""
    breakdown = "## Damages Breakdown\n\n"
    total = 0.0

    if damages.itemized_medical:
        medical_total = sum(item.amount for item in damages.itemized_medical)
        breakdown += "### Medical Expenses\n"
        for item in damages.itemized_medical:
            breakdown += f"- {item.description}: {_money(item.amount)}\n"
        breakdown += f"**Total Medical:** {_money(medical_total)}\n\n"
        total += medical_total
    elif damages.medical:
        breakdown += f"### Medical Expenses: {_money(damages.medical)}\n\n"
        total += damages.medical

    for label, amount in (
        ("Lost Wages", damages.lost_wages),
        ("Property Damage", damages.property_damage),
        ("Pain and Suffering", damages.pain_and_suffering),
    ):
        if amount:
            breakdown += f"### {label}: {_money(amount)}\n\n"
            total += amount

    if damages.other:
        breakdown += "### Other Damages\n"
        for label, amount in damages.other.items():
            breakdown += f"- {label}: {_money(amount)}\n"
            total += amount
        breakdown += "\n"

    breakdown += f"---\n**TOTAL DAMAGES: {_money(total)}**\n\n"

    if damages.notes:
        breakdown += f"**Notes:** {damages.notes}\n\n"

    return breakdown


def build_documents_context(documents: List[Dict[str, str]], max_tokens: int) -> str:
    """
    Concatenate supporting document text within a token budget

    Args:
        documents: Items with ``title`` and ``text`` keys
        max_tokens: Budget for the whole section

    Returns:
        Markdown section; the last document that does not fit is truncated
    """
    if not documents:
        return "No supporting documents provided."

    context = "## Supporting Documents\n\n"
    used = estimate_tokens(context)

    for doc in documents:
        header = f"### {doc['title']}\n"
        text = doc.get("text") or "[Text extraction pending or failed]"
        section = f"{header}{text}\n\n---\n\n"
        tokens = estimate_tokens(section)

        if used + tokens > max_tokens:
            remaining = max_tokens - used - estimate_tokens(header)
            if remaining > 100:
                context += f"{header}{text[:remaining * 4]}\n[...truncated for length]\n\n---\n\n"
            break

        context += section
        used += tokens

    return context


def build_system_prompt(tone: Optional[Tone] = None) -> str:
    guidance = TONE_GUIDANCE[tone or Tone.PROFESSIONAL]
    return f"{SYSTEM_PROMPT}\n\nTone: {guidance}"


def build_user_prompt(
    job: LetterGenerationJob,
    documents_context: str,
    template_content: Optional[str] = None,
) -> str:
    client = build_party_info(job.client_name, contact=job.client_contact or "To be provided")
    defendant = build_party_info(job.defendant_name, address=job.defendant_address)

    return f"""Draft a demand letter for the following case.

{build_case_summary(job)}
## Client
{client}

## Responsible Party
{defendant}

{build_damages_breakdown(job.damages)}
{documents_context}

## Template Instructions
{template_content or DEFAULT_TEMPLATE_INSTRUCTIONS}

## Special Instructions
{job.special_instructions or 'None'}"""


def build_messages(
    job: LetterGenerationJob,
    documents: List[Dict[str, str]],
    template_content: Optional[str],
    max_input_tokens: int,
) -> List[Dict[str, str]]:
    """Chat messages for one generation request."""
    documents_context = build_documents_context(
        documents, int(max_input_tokens * DOCUMENT_CONTEXT_SHARE)
    )
    return [
        {"role": "system", "content": build_system_prompt(job.tone)},
        {"role": "user", "content": build_user_prompt(job, documents_context, template_content)},
    ]


def estimate_messages_tokens(messages: List[Dict[str, str]]) -> int:
    return sum(estimate_tokens(m["content"]) for m in messages)
