"""Central configuration, constants, retry policies, and shared column definitions."""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from .backoff import BackoffPolicy, RetryPolicy

# =============================================================================
# Forge (Drupal.org) Connection Settings
# =============================================================================
FORGE_BASE_URL = "https://www.drupal.org"
SEARCH_PATH = "/project/issues/search"
FEED_PATH = "/project/issues/search/rss"
TIMEZONE = "UTC"

# Non-browser client identities; Drupal.org lets command-line tools through
# where browser-like agents get challenged.
CLIENT_IDENTITIES: Sequence[str] = (
    "curl/8.7.1",
    "curl/8.6.0",
    "Wget/1.21.3",
    "Wget/1.21.1",
    "curl/8.5.0",
)

SEARCH_TIMEOUT_SECONDS = 25.0
FEED_TIMEOUT_SECONDS = 20.0
DETAIL_TIMEOUT_SECONDS = 15.0
WARMUP_TIMEOUT_SECONDS = 10.0

FEED_ACCEPT_HEADER = "application/rss+xml, application/xml, text/xml"
DETAIL_ACCEPT_HEADER = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"

# =============================================================================
# Pacing (seconds)
# =============================================================================
REQUEST_DELAY_RANGE: tuple[float, float] = (1.0, 3.0)  # before every forge request
DETAIL_PAUSE_RANGE: tuple[float, float] = (0.5, 1.0)  # after each detail-page fetch
WARMUP_PAUSE = 2.0

# Between criteria: max(BASE - successes * STEP, FLOOR) + U(0, JITTER)
CRITERIA_DELAY_BASE = 15.0
CRITERIA_DELAY_STEP = 1.0
CRITERIA_DELAY_FLOOR = 5.0
CRITERIA_DELAY_JITTER = 5.0
# Extra cooldown after every Nth successful criterion
COOLDOWN_EVERY = 5
COOLDOWN_RANGE: tuple[float, float] = (10.0, 20.0)

SUMMARY_AFTER_CALL_RANGE: tuple[float, float] = (1.0, 2.0)
SUMMARY_BETWEEN_ISSUES_RANGE: tuple[float, float] = (2.0, 3.0)
CONSOLIDATE_AFTER_CALL_RANGE: tuple[float, float] = (2.0, 5.0)
CONSOLIDATE_RETRY_COOLDOWN = 30.0

# =============================================================================
# Retry Policies (one per call site)
# =============================================================================
SEARCH_RETRY = RetryPolicy(
    attempts=3,
    transient=BackoffPolicy(kind="linear", base=5.0, jitter=3.0),
)
FEED_RETRY = RetryPolicy(
    attempts=2,
    transient=BackoffPolicy(kind="linear", base=5.0, jitter=3.0),
)
DETAIL_RETRY = RetryPolicy(
    attempts=2,
    transient=BackoffPolicy(kind="linear", base=5.0, jitter=3.0),
)
WARMUP_RETRY = RetryPolicy(attempts=1, transient=BackoffPolicy(kind="linear", base=0.0))
# 403 on both search and feed: wait 2, 5, then 20 minutes before giving up
BLOCKED_RETRY = RetryPolicy(
    attempts=3,
    transient=BackoffPolicy(kind="linear", base=0.0),
    blocked=BackoffPolicy(kind="schedule", schedule=(120.0, 300.0, 1200.0)),
)
SUMMARY_RETRY = RetryPolicy(
    attempts=3,
    transient=BackoffPolicy(kind="linear", base=1.0),
    rate_limited=BackoffPolicy(kind="exponential", base=1.0, factor=2.0),
)
CONSOLIDATE_RETRY = RetryPolicy(
    attempts=5,
    transient=BackoffPolicy(kind="linear", base=2.0, cap=10.0),
    rate_limited=BackoffPolicy(kind="exponential", first=5.0, base=3.0, factor=2.0, jitter=5.0),
    overloaded=BackoffPolicy(kind="exponential", first=15.0, base=10.0, factor=2.0, jitter=5.0),
)

# =============================================================================
# Generative AI Provider (Gemini)
# =============================================================================
GEMINI_API_URL = (
    "https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-flash:generateContent"
)
API_KEY_ENV_VAR = "GEMINI_API_KEY"
AI_TIMEOUT_SECONDS = 60.0
SUMMARY_MAX_OUTPUT_TOKENS = 500
CONSOLIDATE_MAX_OUTPUT_TOKENS = 400
GENERATION_TEMPERATURE = 0.1

# =============================================================================
# Artifacts
# =============================================================================
RESULTS_DIR = "results"
ISSUES_PREFIX = "wcag-detailed-issues_"
SUMMARIES_PREFIX = "wcag-issue-summaries_"
CONSOLIDATED_PREFIX = "wcag-acr-consolidated_"
REPORT_PREFIX = "drupal-openacr_"
SEARCH_URLS_PREFIX = "wcag-search-urls_"
ARTIFACT_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M"

ISSUE_COLUMNS: Sequence[str] = (
    "WCAG SC",
    "Issue ID",
    "Issue Title",
    "Issue URL",
    "Project",
    "Status",
    "Priority",
    "Component",
    "Version",
    "Reporter",
    "Created",
    "Updated",
    "Comments",
    "Has Fork",
    "Last Commenter",
    "Extracted At",
)

SUMMARY_COLUMNS: Sequence[str] = (
    "Issue ID",
    "ACR Note",
    "Developer Note",
    "Title Assessment",
    "WCAG Assessment",
    "User Aliases",
    "Processed At",
)

CONSOLIDATED_COLUMNS: Sequence[str] = (
    "WCAG SC",
    "ACR Assessment",
    "ACR Summary",
    "Issue Count",
    "Issue IDs",
    "Processed At",
)

SEARCH_URL_COLUMNS: Sequence[str] = ("WCAG SC", "Criterion", "Level", "Search URL", "Feed URL")

# =============================================================================
# Assessment Vocabulary
# =============================================================================
SUPPORTED = "SUPPORTED"
PARTIALLY_SUPPORTED = "PARTIALLY_SUPPORTED"
NOT_SUPPORTED = "NOT_SUPPORTED"
NOT_APPLICABLE = "NOT_APPLICABLE"
REQUIRES_REVIEW = "REQUIRES_REVIEW"
ERROR = "ERROR"
UNKNOWN = "UNKNOWN"

ASSESSMENT_LEVELS: Sequence[str] = (SUPPORTED, PARTIALLY_SUPPORTED, NOT_SUPPORTED, NOT_APPLICABLE)

# Free-text spellings the model sometimes returns; compared after upper-casing
# and collapsing spaces/hyphens to underscores
ASSESSMENT_ALIASES: dict[str, str] = {
    "PARTIALLY_SUPPORTED": PARTIALLY_SUPPORTED,
    "PARTIALLY_SUPPORTS": PARTIALLY_SUPPORTED,
    "PARTIAL": PARTIALLY_SUPPORTED,
    "NOT_SUPPORTED": NOT_SUPPORTED,
    "DOES_NOT_SUPPORT": NOT_SUPPORTED,
    "UNSUPPORTED": NOT_SUPPORTED,
    "NOT_APPLICABLE": NOT_APPLICABLE,
    "N/A": NOT_APPLICABLE,
    "NA": NOT_APPLICABLE,
    "SUPPORTED": SUPPORTED,
    "SUPPORTS": SUPPORTED,
    "FULLY_SUPPORTED": SUPPORTED,
}

ADHERENCE_BY_ASSESSMENT: dict[str, str] = {
    SUPPORTED: "supports",
    PARTIALLY_SUPPORTED: "partially-supports",
    NOT_SUPPORTED: "does-not-support",
    NOT_APPLICABLE: "not-applicable",
    REQUIRES_REVIEW: "not-evaluated",
    ERROR: "not-evaluated",
}
DEFAULT_ADHERENCE = "not-evaluated"

# =============================================================================
# Report Rendering
# =============================================================================
TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
HEADER_TEMPLATE = "report-header.yaml"
FOOTER_TEMPLATE = "report-footer.yaml"
TABLES_FILE = "acr-tables.yaml"
FOLD_THRESHOLD = 80


class ConfigurationError(RuntimeError):
    """Raised when a stage cannot start because of missing configuration."""


class MissingCredentialError(ConfigurationError):
    """Raised when the AI provider API key cannot be resolved."""


class MissingInputError(ConfigurationError):
    """Raised when a stage's input artifact cannot be found."""


@dataclass(slots=True)
class AppSettings:
    results_dir: Path = Path(RESULTS_DIR)
    env_file: Path = Path(".env")
    tables_file: Path = Path(TABLES_FILE)
    template_dir: Path = TEMPLATE_DIR


SETTINGS = AppSettings()


def read_env_file(path: Path) -> dict[str, str]:
    """Parse a ``KEY=value`` file, ignoring blanks and ``#`` comments."""
    data: dict[str, str] = {}
    if not path.exists():
        return data
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if key.startswith("export "):
            key = key[len("export ") :].strip()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
            value = value[1:-1]
        data[key] = value
    return data


def load_api_key(env_file: Path | None = None, environ: dict[str, str] | None = None) -> str:
    """Resolve the Gemini API key from the environment, then a local ``.env`` file.

    Raises
    ------
    MissingCredentialError
        If neither source provides a non-empty value.
    """
    env = os.environ if environ is None else environ
    value = (env.get(API_KEY_ENV_VAR) or "").strip()
    if value:
        return value
    file_values = read_env_file(env_file or SETTINGS.env_file)
    value = (file_values.get(API_KEY_ENV_VAR) or "").strip()
    if value:
        return value
    raise MissingCredentialError(
        f"{API_KEY_ENV_VAR} is not set; export it or add it to {env_file or SETTINGS.env_file}"
    )
