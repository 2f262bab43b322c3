from __future__ import annotations

from textwrap import dedent

SYSTEM_PROMPT_PIPELINE = (
    "You extract pharmaceutical pipeline data from web page text. You extract "
    "every product regardless of layout or formatting and always answer with "
    "valid JSON."
)

THERAPEUTIC_AREAS = (
    "Cardiology, Pulmonology, Oncology, Vaccines, Inflammation & Immunology, "
    "Internal Medicine, Immunology, Neurology, Rare Diseases, Cancer, "
    "Cardiometabolic Health, Neuroscience, Other Specialties, Eye Care, "
    "Respiratory, Metabolic, Infectious Disease, Ophthalmology, Antiviral, "
    "Nephrology, Hematology, Diabetes, Genetic Medicine, Women's Health, "
    "Critical Care, Hepatology, Endocrinology, Neuromuscular, Gastrointestinal, "
    "Bone Health, Pain, Reproductive Medicine, Urology, Maternal Health, "
    "Gastroenterology, Allergy, Autoimmune, Joint Health, Animal Health, "
    "Anticoagulant, HIV, Depression, Psychiatry, Dermatology, Miscellaneous"
)

STAGES = "1, 2, 3, Filed, Approved, Registration, Submission, Marketed, Preclinical"

USER_PROMPT_PIPELINE = dedent(
    """
    Analyse this PHARMACEUTICAL PIPELINE page content and extract ONLY
    drugs/molecules in clinical development or approved.

    SOURCE URL: {source_url}

    CONTENT:
    [CONTENT_START]
    {content}
    [CONTENT_END]

    EXTRACT:
    - Drugs and molecules (e.g. "Pembrolizumab", "PF-07321332", "BNT162b2")
    - Biologics (antibodies, therapeutic vaccines), gene and cell therapies
    - Veterinary medicines
    - Anything in clinical development (Phase I/II/III) or approved

    DO NOT EXTRACT:
    - Cosmetics, personal hygiene or mass-consumer products
    - Food or nutritional supplements
    - Medical devices

    FIELDS:
    - name: drug / molecule name
    - category: the closest therapeutic area from this list:
      {areas}
    - stage: the closest of: {stages}

    CONVERSIONS:
    - "Phase I" -> "1", "Phase II" -> "2", "Phase III" -> "3"
    - "Approved" / "Marketed" -> "Approved"
    - "Preclinical" -> "Preclinical"

    RULES:
    1. Extract EVERY pharmaceutical product found.
    2. If the page is not a pharmaceutical pipeline, return {{"products": []}}.
    3. Do not invent data.
    4. JSON only, no extra text.

    JSON:
    {{"products": [{{"name": "...", "category": "...", "stage": "..."}}]}}
    """
).strip()


def build_user_prompt(content: str, source_url: str) -> str:
    return USER_PROMPT_PIPELINE.format(
        content=content,
        source_url=source_url,
        areas=THERAPEUTIC_AREAS,
        stages=STAGES,
    )
