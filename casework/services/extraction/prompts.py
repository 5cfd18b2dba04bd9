"""Prompts used by the LLM extraction backend."""

from casework.schemas.enums import DocumentCategory

SYSTEM_PROMPT = (
    "You are a paralegal assistant for a personal injury law firm. You read case "
    "documents and return precise structured data. Never invent facts; use null "
    "for anything the document does not state. Respond with JSON only."
)

CLASSIFICATION_PROMPT = """Classify the document below into exactly one category.

## Categories
- MEDICAL_RECORDS: clinical notes, consultation or operative reports, discharge summaries, imaging results
- MEDICAL_BILLS: itemized statements, invoices, EOBs, billing summaries
- POLICE_REPORT: traffic collision or incident reports, officer narratives
- PHOTOS: descriptions of injury, vehicle or scene photographs
- WAGE_DOCUMENTATION: pay stubs, employment verification, lost wage letters
- INSURANCE_CORRESPONDENCE: letters from insurers, claim correspondence
- WITNESS_STATEMENT: written or transcribed witness accounts
- EXPERT_REPORT: medical expert opinions, reconstruction or vocational reports
- PRIOR_MEDICAL_RECORDS: medical records dated before the incident
- LIEN_LETTER: letters of protection, medical liens, subrogation notices
- OTHER: anything else

## Output
{
  "category": "CATEGORY_NAME",
  "subcategory": "more specific type or null",
  "confidence": 0.0-1.0,
  "documentDate": "YYYY-MM-DD or null",
  "providerName": "provider or author or null"
}"""

MEDICAL_RECORDS_PROMPT = """Extract every medical visit from these records.

## Output
{
  "patient": {"name": "...", "dateOfBirth": "YYYY-MM-DD"},
  "visits": [
    {
      "date": "YYYY-MM-DD",
      "providerName": "Dr. Name",
      "facilityName": "Clinic or hospital",
      "visitType": "ER / Follow-up / Physical therapy / ...",
      "chiefComplaint": "...",
      "diagnoses": [{"icd10Code": "M54.5", "description": "...", "bodyPart": "lumbar spine"}],
      "treatmentProvided": "...",
      "proceduresPerformed": ["..."],
      "painScore": "0-10 or null",
      "painLocation": "...",
      "charge": 0.00,
      "assessment": "...",
      "plan": "...",
      "prognosis": "...",
      "permanencyStatements": "MMI / permanent and stationary statements, or null",
      "gapReason": "reason given for any break in treatment before this visit, or null"
    }
  ],
  "imagingSummary": [
    {"date": "YYYY-MM-DD", "type": "MRI / X-ray / CT", "bodyPart": "...", "impression": "..."}
  ],
  "preExistingConditions": ["..."],
  "futureTreatmentRecommendations": ["..."]
}

## Rules
1. List every visit; do not summarize visits together
2. Dates in YYYY-MM-DD
3. Copy ICD-10 codes exactly as written"""

MEDICAL_BILLS_PROMPT = """Extract all billing information from these medical bills.

## Output
{
  "provider": {"name": "...", "address": "...", "npi": "..."},
  "charges": [
    {
      "dateOfService": "YYYY-MM-DD",
      "cptCode": "99213",
      "description": "...",
      "amountBilled": 150.00,
      "insurancePaid": 80.00,
      "balanceDue": 20.00
    }
  ],
  "otherExpenses": [
    {"date": "YYYY-MM-DD", "description": "mileage, medication, equipment", "amount": 25.00}
  ],
  "summary": {"totalBilled": 1500.00, "totalPaid": 800.00, "totalDue": 100.00}
}

## Rules
1. One entry per line item; do not round amounts
2. Amounts are numbers without currency symbols"""

POLICE_REPORT_PROMPT = """Extract the key facts from this police or collision report.

## Output
{
  "reportInfo": {"reportNumber": "...", "dateOfIncident": "YYYY-MM-DD", "agency": "..."},
  "location": {"address": "...", "city": "...", "state": "..."},
  "parties": [
    {"role": "Driver 1", "name": "...", "insurance": {"company": "...", "policyNumber": "..."}, "citationsIssued": ["..."]}
  ],
  "narrative": "officer narrative",
  "faultDetermination": {"atFaultParty": "...", "violations": ["..."]},
  "witnesses": [{"name": "...", "statement": "..."}]
}"""

WAGE_DOCUMENTATION_PROMPT = """Extract employment and wage loss information.

## Output
{
  "employer": {"name": "...", "address": "..."},
  "employee": {"name": "...", "position": "..."},
  "compensation": {"payType": "Hourly / Salary", "baseRate": 25.00, "averageWeeklyGross": 1000.00},
  "missedWork": {"startDate": "YYYY-MM-DD", "returnDate": "YYYY-MM-DD or null", "totalDaysMissed": 15},
  "wageLoss": {"dailyRate": 200.00, "totalDaysMissed": 15, "totalWageLoss": 3000.00},
  "lineItems": [{"date": "YYYY-MM-DD", "description": "...", "amount": 200.00}]
}

## Rules
1. Compute totalWageLoss only when the document gives enough data
2. Amounts are numbers without currency symbols"""

EXTRACTION_PROMPTS = {
    DocumentCategory.MEDICAL_RECORDS: MEDICAL_RECORDS_PROMPT,
    DocumentCategory.PRIOR_MEDICAL_RECORDS: MEDICAL_RECORDS_PROMPT,
    DocumentCategory.MEDICAL_BILLS: MEDICAL_BILLS_PROMPT,
    DocumentCategory.POLICE_REPORT: POLICE_REPORT_PROMPT,
    DocumentCategory.WAGE_DOCUMENTATION: WAGE_DOCUMENTATION_PROMPT,
}
