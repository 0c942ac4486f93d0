"""
Generate a ten-consultation sample file for trying out a Full Review.

The output mimics text pasted from the clinical system: a "Date / Consultation
Text" header, a date-stamped opening line per consultation, then tab-separated
fields. The sample mixes face to face and telephone encounters, prescribing
and non-prescribing consultations, test requests, and one did-not-attend.

Usage:
    python scripts/generate_samples.py                       # writes data/sample_full.txt
    python scripts/generate_samples.py --rapid               # first two only, data/sample_rapid.txt
"""

import argparse
from pathlib import Path

CLINICIAN = "GI (Dr)"
PRACTICE = "City Square Medical Group"

SAMPLE_CONSULTATIONS = [
    {
        "date": "17-Dec-2024 09:15",
        "type": "Face to face consultation",
        "problem": "Hypertension review (Follow-up)",
        "history": [
            "Regular medication review",
            "BP readings at home averaging 135/85",
            "Compliant with medication, no side effects reported",
            "Regular exercise 3x per week",
        ],
        "examination": ["BP: 132/84 mmHg", "Heart rate: 72 bpm regular", "Chest clear", "No peripheral oedema"],
        "plan": ["Continue amlodipine 5mg OD", "Repeat BP in 3 months", "Discussed QRISK score - stable"],
    },
    {
        "date": "17-Dec-2024 10:30",
        "type": "Telephone consultation",
        "problem": "Upper respiratory tract infection (First)",
        "history": [
            "3 days sore throat, runny nose",
            "Low grade fever yesterday (37.8C)",
            "No breathlessness, no chest pain",
            "Non-smoker",
        ],
        "plan": [
            "Reassurance - likely viral URTI",
            "Self-care advice given, adequate fluids and rest",
            "Safety net - contact if worsening or not improving in 7 days",
        ],
    },
    {
        "date": "17-Dec-2024 11:45",
        "type": "Face to face consultation",
        "problem": "Type 2 Diabetes Mellitus - annual review (Follow-up)",
        "history": [
            "Metformin 500mg BD - good compliance",
            "Home glucose monitoring - fasting 6-7 mmol/L",
            "No hypoglycaemic episodes",
            "Feet - no numbness or pain",
        ],
        "examination": ["Weight: 82kg (BMI 28.5)", "BP: 138/82", "Feet examined - normal sensation, pulses present"],
        "test_request": ["HbA1c", "Renal function (U&E)", "Lipid profile", "Blood test results to be reviewed in 2 weeks"],
        "plan": ["Continue current medication", "Referred to dietitian", "Annual retinal screening booked"],
    },
    {
        "date": "17-Dec-2024 14:15",
        "type": "Face to face consultation",
        "problem": "Pityriasis versicolor (First)",
        "history": ["Itchy scalp and discolouration in central scalp", "No red flags or skin breaks"],
        "medication": [
            "Clotrimazole 2% cream Apply Twice A Day 40 gram",
            "Ketoconazole 2% shampoo Apply two times per week for 4 weeks",
        ],
    },
    {
        "date": "17-Dec-2024 15:20",
        "type": "Face to face consultation",
        "problem": "Asthma review (Follow-up)",
        "history": [
            "Using salbutamol inhaler 2-3 times per week",
            "No recent exacerbations, no night symptoms",
            "Peak flow diary reviewed - stable",
        ],
        "examination": ["Chest clear, good air entry bilaterally", "Peak flow: 420 L/min (predicted 450)"],
        "plan": ["Asthma well controlled", "Review in 6 months", "Written asthma action plan provided"],
    },
    {
        "date": "17-Dec-2024 16:00",
        "type": "Face to face consultation",
        "problem": "Ankle sprain (First)",
        "history": [
            "Twisted left ankle yesterday playing football",
            "Unable to weight bear initially, can now walk with limp",
            "No previous ankle injuries",
        ],
        "examination": [
            "Left ankle: moderate swelling lateral aspect",
            "No bony tenderness",
            "Ottawa ankle rules - low probability fracture",
        ],
        "plan": [
            "Grade 2 ankle sprain",
            "Prescribed ibuprofen 400mg TDS for 5 days, take with food",
            "Physiotherapy referral if not improving in 2 weeks",
            "Return if unable to weight bear",
        ],
    },
    {
        "date": "18-Dec-2024 09:30",
        "type": "Telephone consultation",
        "problem": "Depression - follow up (Follow-up)",
        "history": [
            "Review 4 weeks after starting sertraline 50mg",
            "Mood improved significantly, sleep better",
            "No suicidal thoughts",
            "Some initial nausea - now settled",
        ],
        "plan": ["Continue sertraline 50mg", "PHQ-9 improved from 18 to 9", "Review in 8 weeks", "Safety net advice given"],
    },
    {
        "date": "18-Dec-2024 10:15",
        "type": "Telephone consultation",
        "problem": "Chest pain follow-up (Follow-up)",
        "history": ["Did not answer - two attempts, left voicemail asking patient to call back"],
        "plan": ["Text message sent", "Reception to rebook if patient calls"],
    },
    {
        "date": "18-Dec-2024 10:45",
        "type": "Face to face consultation",
        "problem": "Eczema (First)",
        "history": [
            "Itchy rash on flexor surfaces for 3 weeks",
            "Tried over-counter moisturiser - minimal effect",
            "Family history of atopy",
        ],
        "examination": ["Dry, scaly patches on antecubital and popliteal fossae", "No signs of infection"],
        "medication": [
            "Emollient cream - apply liberally TDS and after washing",
            "Hydrocortisone 1% cream - apply BD to affected areas for 7 days",
        ],
        "plan": ["Review in 2 weeks", "Safety net - return if signs of infection"],
    },
    {
        "date": "18-Dec-2024 11:30",
        "type": "Face to face consultation",
        "problem": "Contraception discussion (First)",
        "history": [
            "Request for contraception advice",
            "Regular cycles, non-smoker, no history of VTE",
            "Discussed options: COCP, POP, implant, IUD",
        ],
        "examination": ["BP: 118/74", "BMI: 23"],
        "plan": [
            "Prescribed combined oral contraceptive pill - 3 months supply",
            "Explained missed pill rules and side effects",
            "Follow up in 3 months or sooner if problems",
        ],
    },
]

FIELDS = (
    ("problem", "Problem"),
    ("history", "History"),
    ("examination", "Examination"),
    ("test_request", "Test Request"),
    ("medication", "Medication"),
    ("plan", "Plan"),
)


def format_consultations(consultations: list[dict]) -> str:
    lines = []
    for consultation in consultations:
        lines.append("Date\t\tConsultation Text")
        lines.append(f"{consultation['date']}\t\t{consultation['type']} ({PRACTICE})  {CLINICIAN}")
        for key, label in FIELDS:
            value = consultation.get(key)
            if not value:
                continue
            entries = [value] if isinstance(value, str) else value
            lines.append(f"{label}\t\t{entries[0]}")
            lines.extend(f"\t\t{entry}" for entry in entries[1:])
        lines.append("")
    return "\n".join(lines)


def main():
    parser = argparse.ArgumentParser(description="Generate sample consultation data")
    parser.add_argument("--rapid", action="store_true", help="Only the first two consultations")
    parser.add_argument("--output", type=str, default=None, help="Output file path")
    args = parser.parse_args()

    consultations = SAMPLE_CONSULTATIONS[:2] if args.rapid else SAMPLE_CONSULTATIONS
    default_name = "sample_rapid.txt" if args.rapid else "sample_full.txt"
    output_path = Path(args.output) if args.output else Path(__file__).parent.parent / "data" / default_name
    output_path.parent.mkdir(parents=True, exist_ok=True)

    output_path.write_text(format_consultations(consultations), encoding="utf-8")
    print(f"Generated {output_path} with {len(consultations)} consultations")


if __name__ == "__main__":
    main()
