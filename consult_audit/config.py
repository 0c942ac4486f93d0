"""Configuration constants, paths, and thresholds.

Values come from the environment, with a project-root .env read first when
present. Engine classes only use these as constructor defaults.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).parent.parent

# existing environment variables win over .env entries
load_dotenv(BASE_DIR / ".env")


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# ---------------------------------------------------------------------------
# Judgment capability
# ---------------------------------------------------------------------------
ANTHROPIC_API_KEY = os.environ.get("ANTHROPIC_API_KEY", "")
JUDGE_MODEL = os.environ.get("JUDGE_MODEL", "claude-sonnet-4-6")
JUDGE_TEMPERATURE = float(os.environ.get("JUDGE_TEMPERATURE", "0.0"))
JUDGE_MAX_TOKENS = int(os.environ.get("JUDGE_MAX_TOKENS", "500"))
JUDGE_TIMEOUT_SECONDS = float(os.environ.get("JUDGE_TIMEOUT_SECONDS", "60"))
JUDGE_MAX_RETRIES = int(os.environ.get("JUDGE_MAX_RETRIES", "1"))
REQUESTS_PER_MINUTE = int(os.environ.get("REQUESTS_PER_MINUTE", "45"))  # Tier 1 limit is 50
GUIDANCE_POLICY = os.environ.get("GUIDANCE_POLICY", "strict")

# ---------------------------------------------------------------------------
# Review sizing
# ---------------------------------------------------------------------------
BATCH_SIZE = int(os.environ.get("BATCH_SIZE", "10"))
RAPID_REVIEW_RECORDS = 2
FULL_REVIEW_MIN_RECORDS = 10
FULL_REVIEW_MAX_RECORDS = int(os.environ.get("FULL_REVIEW_MAX_RECORDS", "20"))
EVIDENCE_SNIPPET_CHARS = 200

# ---------------------------------------------------------------------------
# PII guard
# ---------------------------------------------------------------------------
NAME_DETECTION_CHAR_LIMIT = int(os.environ.get("NAME_DETECTION_CHAR_LIMIT", "8000"))
AUTO_ANONYMIZE_NAMES = _env_bool("AUTO_ANONYMIZE_NAMES", False)

# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------
ASSESSMENT_STORE_PATH = Path(
    os.environ.get("ASSESSMENT_STORE_PATH", str(BASE_DIR / "output" / "assessments.jsonl"))
)
PERSISTENCE_TIMEOUT_SECONDS = float(os.environ.get("PERSISTENCE_TIMEOUT_SECONDS", "30"))
