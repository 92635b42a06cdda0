"""Tutor instructions, subject catalog and fixed user-facing texts."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Subject:
    id: str
    name: str
    description: str


SUBJECTS: tuple[Subject, ...] = (
    Subject("financial-accounting", "Financial Accounting", "Journal, Ledger, Final Accounts"),
    Subject("cost-accounting", "Cost Accounting", "Job, Process, CVP Analysis"),
    Subject("managerial-accounting", "Managerial Accounting", "Budgeting, Decision Making"),
    Subject("business-finance", "Business Finance", "TVM, Capital Budgeting"),
    Subject("taxation", "Taxation", "Income Tax, Sales Tax"),
    Subject("auditing", "Auditing", "Internal Controls, Vouching"),
    Subject("economics", "Economics", "Micro & Macro Economics"),
    Subject("banking", "Banking & Finance", "Central Banks, Commercial Banking"),
)

INITIAL_SUGGESTIONS: tuple[str, ...] = (
    "Prepare a Journal Entry for starting business with cash $50,000.",
    "Calculate the Break-Even Point if Fixed Cost is $10,000.",
    "Explain the difference between Accrual and Cash Basis.",
    "What are the Golden Rules of Accounting?",
)

CONCEPT_SUGGESTIONS: tuple[str, ...] = (
    "Depreciation vs Amortization",
    "Matching Principle",
    "Going Concern Concept",
    "Contra Asset Account",
    "Capital vs Revenue Expenditure",
)

SYSTEM_INSTRUCTION = """\
You are a professional Accounting Homework Solver AI for Commerce and Business \
students (B.Com, BS Commerce, CA, ACCA, ICMA, MBA).

Your Core Rules:
1. Always solve numericals step-by-step.
2. First write the given data.
3. Then write the formula.
4. Then show complete working.
5. Then give the final answer clearly.
6. Use proper accounting format with headings. For Journal Entries, Ledgers, \
and Balance Sheets, use Markdown tables.
7. For standard theory questions and concept explanations:
   - Start with a clear **Definition**.
   - Then provide a **Detailed Explanation** in simple terms.
   - Then provide a distinct **Practical Example** (use a numerical example if possible).
   - Then list 3-5 **Key Exam Points**.
8. Use simple student-friendly English.
9. If the question is unclear or data is missing, ask for correction.
10. **File/Image Handling**: If an image or file (PDF, CSV, Text) is uploaded:
    - **Carefully analyze the content**.
    - **Book/Document Context**: If the user uploads a book or document and asks \
a question, **answer specifically using the content of that document**.
    - If asked to "solve Question X from the uploaded file", locate that specific \
question in the document and solve it step-by-step.
    - If asked to summarize or explain a topic from the book, use the provided \
text as the primary source.
    - If it's a problem statement, solve it following the rules above.
    - If it's data (like a trial balance or list of transactions), use it to \
perform the requested task.
11. **EXAM NOTE MODE**: If the user's prompt starts with "Exam Note:", provide a \
**concise, high-yield summary** suitable for last-minute revision.
   - **Limit response to 150 words.**
   - Use bullet points.
   - Highlight keywords in **bold**.
   - Focus strictly on scoring points and definitions.
   - Skip long examples/introductions.
12. Never skip steps in numericals.
13. Behave like a polite, patient accounting teacher.

Formatting Requirements:
- Use Markdown tables for numerical data.
- Bold key terms and final answers.
- Use '$' or appropriate currency symbols consistently.
- For Journal Entries, use columns: Date | Particulars | L.F. | Dr. ($) | Cr. ($).
"""

SUMMARY_PROMPT = (
    "Please provide a concise summary of our conversation so far. Highlight any "
    "numerical problems solved and key accounting theory concepts we discussed."
)

OCR_PROMPT = (
    "Perform OCR: Transcribe all text from this image exactly as it appears. "
    "Return ONLY the extracted text, no introductory or concluding remarks. "
    "If there is no legible text, say so."
)

IMAGE_FALLBACK_TEXT = "Here is the visual representation you requested."
EMPTY_RESPONSE_TEXT = (
    "I analyzed the input but couldn't generate a text response. "
    "Please try clarifying your question."
)
ERROR_RESPONSE_TEXT = (
    "I encountered an error while processing your request. Please try again."
)


def find_subject(name_or_id: str) -> Subject | None:
    """Look up a catalog subject by id or case-insensitive name."""
    needle = name_or_id.strip().lower()
    for subject in SUBJECTS:
        if needle in (subject.id, subject.name.lower()):
            return subject
    return None


def with_subject_context(text: str, topic: str | None) -> str:
    """Prefix the prompt with the active subject when one is selected."""
    if not topic:
        return text
    return f"[Subject: {topic}] {text}"


def concept_prompt(concept: str) -> str:
    """Request text for one of :data:`CONCEPT_SUGGESTIONS`."""
    return f"Explain the concept of {concept} with a practical example."
