"""Static WCAG tables: criterion catalog, tier membership, report overrides.

Forge tags (``wcag1410``) and dotted numbers (``1.4.10``) are related through
the explicit catalog below; there is no positional split of the digits.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from .models import Criterion

logger = logging.getLogger(__name__)

TIERS: tuple[str, ...] = ("A", "AA", "AAA")
DEFAULT_TIER = "AA"

# =============================================================================
# Catalog (WCAG 2.2, plus 4.1.1 which the document schema still lists)
# =============================================================================
_CATALOG: tuple[tuple[str, str, str], ...] = (
    # Level A
    ("1.1.1", "Non-text Content", "A"),
    ("1.2.1", "Audio-only and Video-only (Prerecorded)", "A"),
    ("1.2.2", "Captions (Prerecorded)", "A"),
    ("1.2.3", "Audio Description or Media Alternative (Prerecorded)", "A"),
    ("1.3.1", "Info and Relationships", "A"),
    ("1.3.2", "Meaningful Sequence", "A"),
    ("1.3.3", "Sensory Characteristics", "A"),
    ("1.4.1", "Use of Color", "A"),
    ("1.4.2", "Audio Control", "A"),
    ("2.1.1", "Keyboard", "A"),
    ("2.1.2", "No Keyboard Trap", "A"),
    ("2.1.4", "Character Key Shortcuts", "A"),
    ("2.2.1", "Timing Adjustable", "A"),
    ("2.2.2", "Pause, Stop, Hide", "A"),
    ("2.3.1", "Three Flashes or Below Threshold", "A"),
    ("2.4.1", "Bypass Blocks", "A"),
    ("2.4.2", "Page Titled", "A"),
    ("2.4.3", "Focus Order", "A"),
    ("2.4.4", "Link Purpose (In Context)", "A"),
    ("2.5.1", "Pointer Gestures", "A"),
    ("2.5.2", "Pointer Cancellation", "A"),
    ("2.5.3", "Label in Name", "A"),
    ("2.5.4", "Motion Actuation", "A"),
    ("3.1.1", "Language of Page", "A"),
    ("3.2.1", "On Focus", "A"),
    ("3.2.2", "On Input", "A"),
    ("3.2.6", "Consistent Help", "A"),
    ("3.3.1", "Error Identification", "A"),
    ("3.3.2", "Labels or Instructions", "A"),
    ("3.3.7", "Redundant Entry", "A"),
    ("4.1.1", "Parsing", "A"),
    ("4.1.2", "Name, Role, Value", "A"),
    # Level AA
    ("1.2.4", "Captions (Live)", "AA"),
    ("1.2.5", "Audio Description (Prerecorded)", "AA"),
    ("1.3.4", "Orientation", "AA"),
    ("1.3.5", "Identify Input Purpose", "AA"),
    ("1.4.3", "Contrast (Minimum)", "AA"),
    ("1.4.4", "Resize Text", "AA"),
    ("1.4.5", "Images of Text", "AA"),
    ("1.4.10", "Reflow", "AA"),
    ("1.4.11", "Non-text Contrast", "AA"),
    ("1.4.12", "Text Spacing", "AA"),
    ("1.4.13", "Content on Hover or Focus", "AA"),
    ("2.4.5", "Multiple Ways", "AA"),
    ("2.4.6", "Headings and Labels", "AA"),
    ("2.4.7", "Focus Visible", "AA"),
    ("2.4.11", "Focus Not Obscured (Minimum)", "AA"),
    ("2.5.7", "Dragging Movements", "AA"),
    ("2.5.8", "Target Size (Minimum)", "AA"),
    ("3.1.2", "Language of Parts", "AA"),
    ("3.2.3", "Consistent Navigation", "AA"),
    ("3.2.4", "Consistent Identification", "AA"),
    ("3.3.3", "Error Suggestion", "AA"),
    ("3.3.4", "Error Prevention (Legal, Financial, Data)", "AA"),
    ("3.3.8", "Accessible Authentication (Minimum)", "AA"),
    ("4.1.3", "Status Messages", "AA"),
    # Level AAA
    ("1.2.6", "Sign Language (Prerecorded)", "AAA"),
    ("1.2.7", "Extended Audio Description (Prerecorded)", "AAA"),
    ("1.2.8", "Media Alternative (Prerecorded)", "AAA"),
    ("1.2.9", "Audio-only (Live)", "AAA"),
    ("1.3.6", "Identify Purpose", "AAA"),
    ("1.4.6", "Contrast (Enhanced)", "AAA"),
    ("1.4.7", "Low or No Background Audio", "AAA"),
    ("1.4.8", "Visual Presentation", "AAA"),
    ("1.4.9", "Images of Text (No Exception)", "AAA"),
    ("2.1.3", "Keyboard (No Exception)", "AAA"),
    ("2.2.3", "No Timing", "AAA"),
    ("2.2.4", "Interruptions", "AAA"),
    ("2.2.5", "Re-authenticating", "AAA"),
    ("2.2.6", "Timeouts", "AAA"),
    ("2.3.2", "Three Flashes", "AAA"),
    ("2.3.3", "Animation from Interactions", "AAA"),
    ("2.4.8", "Location", "AAA"),
    ("2.4.9", "Link Purpose (Link Only)", "AAA"),
    ("2.4.10", "Section Headings", "AAA"),
    ("2.4.12", "Focus Not Obscured (Enhanced)", "AAA"),
    ("2.4.13", "Focus Appearance", "AAA"),
    ("2.5.5", "Target Size (Enhanced)", "AAA"),
    ("2.5.6", "Concurrent Input Mechanisms", "AAA"),
    ("3.1.3", "Unusual Words", "AAA"),
    ("3.1.4", "Abbreviations", "AAA"),
    ("3.1.5", "Reading Level", "AAA"),
    ("3.1.6", "Pronunciation", "AAA"),
    ("3.2.5", "Change on Request", "AAA"),
    ("3.3.5", "Help", "AAA"),
    ("3.3.6", "Error Prevention (All)", "AAA"),
    ("3.3.9", "Accessible Authentication (Enhanced)", "AAA"),
)


def _tag_for(num: str) -> str:
    return "wcag" + num.replace(".", "")


CRITERIA: tuple[Criterion, ...] = tuple(
    Criterion(code=_tag_for(num), num=num, name=name, tier=tier) for num, name, tier in _CATALOG
)
CRITERIA_BY_CODE: dict[str, Criterion] = {c.code: c for c in CRITERIA}
CRITERIA_BY_NUM: dict[str, Criterion] = {c.num: c for c in CRITERIA}

# =============================================================================
# Report Overrides
# =============================================================================
# Always rendered as "not-applicable" regardless of the upstream assessment
FORCED_NOT_APPLICABLE: frozenset[str] = frozenset(
    {"1.2.1", "1.2.3", "1.2.4", "1.2.5", "1.4.2", "2.1.4", "2.2.1", "2.2.2", "2.3.1", "2.5.4", "4.1.1"}
)

# WCAG 2.2 additions the report catalog (2.4 edition, WCAG 2.1) cannot hold yet
EXCLUDED_FROM_REPORT: frozenset[str] = frozenset(
    {"2.4.11", "2.4.12", "2.4.13", "2.5.7", "2.5.8", "3.2.6", "3.3.7"}
)

POSITIVE_STATEMENTS: Mapping[str, str] = {
    # Level A
    "1.1.1": "Images and form elements have text alternatives that adequately describe the purpose and meaning",
    "1.2.1": "Prerecorded audio and video are presented with captions, transcripts, or links to equivalent content",
    "1.2.2": "Audio recordings and videos with sound have synchronized captions",
    "1.2.3": "Audio description is provided for pre-recorded video",
    "1.3.1": "The meaning conveyed by visual elements is the same when communicated programmatically for assistive technology users",
    "1.3.2": "Keyboard users navigate the page in the same order the content is presented (top down, left to right)",
    "1.3.3": "Descriptions and instructions don't rely on visual cues, like color or position",
    "1.4.1": "Links and form elements use more than color (underlines, outlines) to convey state",
    "1.4.2": "Users can pause or stop automated audio/video and control its volume in the UI",
    "2.1.1": "Interactive elements are navigable and usable with keyboard commands",
    "2.1.2": "Users can move focus to/from interactive elements with keyboard alone",
    "2.1.4": "Custom character shortcuts are scoped to a focus event, use modifier keys, or can be customized or disabled",
    "2.2.1": "Users can turn off or modify timers or time limits",
    "2.2.2": "Users can pause animations or auto-updating content",
    "2.3.1": "Pages don't have flashing content that exceeds flashing content thresholds",
    "2.4.1": "Users can skip repeated navigation elements and go straight to main content",
    "2.4.2": "Web pages have a descriptive title",
    "2.4.3": "Focusable elements appear in the same order the content is presented (top down, left to right)",
    "2.4.4": "Screen reader users can determine a link's purpose by its text and surrounding context",
    "2.5.1": "Alternative methods using tap or a click are provided for path-based gestures (scrolling, drawing, zooming the page)",
    "2.5.2": "Users can dismiss, cancel, or undo single-pointer actions",
    "2.5.3": "Interactive elements have a programmatically derived accessible name that begins with or matches its visible label",
    "2.5.4": "Motion actuation functionality can be disabled to prevent accidental triggering",
    "3.1.1": "Pages have a 'lang' attribute that identifies the main language used for content",
    "3.2.1": "No major changes to the page that could disorient users are made on focus",
    "3.2.2": "No major changes to the page that could disorient users are made when a field changes value, unless the change is expected",
    "3.3.1": "Error messages are provided in text",
    "3.3.2": "Fields for user input have text labels or instructions",
    "4.1.1": "Parsing of markup does not cause errors for assistive technologies",
    "4.1.2": "Interactive elements have a programmatically derived accessible name, role, and value/state",
    # Level AA
    "1.2.4": "Live audio/video feeds have captions",
    "1.2.5": "Meaningful information that's not conveyed in dialogue is described in captions",
    "1.3.4": "On a mobile device, the site is fully functional whether in portrait or landscape orientation",
    "1.3.5": "Form inputs are correctly labeled for screen reader users",
    "1.4.3": "Text and links meet and often exceed minimum color contrast requirements",
    "1.4.4": "The site remains legible and fully functional when users zoom the screen by 200% or more",
    "1.4.5": "Text is only baked into an image when it needs to be, like for the site logo",
    "1.4.10": "The site uses responsive development techniques so that content and functionality are retained regardless of device or viewport size (mobile, tablet, desktop)",
    "1.4.11": "Form elements and buttons meet and often exceed minimum color contrast requirements",
    "1.4.12": "Line height, letter, paragraph, and word spacing meet size requirements relative to font size",
    "1.4.13": "Tooltips, which appear on hover and focus, persist until the user moves the pointer or focus elsewhere",
    "2.4.5": "Users can reach pages by using search, global navigation, sidebar navigation, or links within page content",
    "2.4.6": "Headings and labels are accurately described",
    "2.4.7": "Interactive elements have a visible focus state when navigating by keyboard",
    "2.4.11": "Interactive elements are at least partially visible (not obscured by other content) when focused",
    "2.5.7": "When dragging actions are required, users have an alternate, single-pointer action like tap or click to perform the same task",
    "2.5.8": "Interactive elements are at least 24x24 pixels or have sufficient space around them to prevent errant clicks, unless they're part of a sentence",
    "3.1.2": "Sections of content that do not use the main page language have a 'lang' attribute that identifies the language used",
    "3.2.3": "Navigation elements appear in the same location and order across the site",
    "3.2.4": "Interactive elements with the same function have the same name, role, and behavior",
    "3.3.3": "Corrective actions are suggested when users make an input error",
    "3.3.4": "Forms that collect user data can be reviewed and confirmed or corrected",
    "4.1.3": "Status messages are announced to users without having to focus on status message content",
    # Level AAA
    "1.2.6": "Sign Language interpretation is provided for audio content",
    "1.2.7": "Extended audio description is provided for video content where pauses in dialogue are insufficient",
    "1.2.8": "A full text alternative is provided for pre-recorded synchronized media",
    "1.2.9": "Audio-only live content has alternative access methods",
    "1.3.6": "The purpose of user interface components can be programmatically determined",
    "1.4.6": "Text has a contrast ratio of at least 7:1 with its background",
    "1.4.7": "Audio content has minimal or no background noise to aid comprehension",
    "1.4.8": "Text presentation can be customized without loss of content or functionality",
    "1.4.9": "Images of text are used only for decoration or when essential to the information",
    "2.1.3": "All page functionality is available from a keyboard without requiring specific timings",
    "2.2.3": "Timing is not an essential part of the event or activity",
    "2.2.4": "Interruptions can be postponed or suppressed by the user",
    "2.2.5": "When a session expires, the user can continue without loss of data",
    "2.2.6": "Users are warned of the duration of inactivity that will cause data loss",
    "2.3.2": "Web pages do not contain content that flashes more than three times in any one second period",
    "2.3.3": "Animation from interactions can be disabled unless essential to functionality",
    "2.4.8": "Information about the user's location within a website is available",
    "2.4.9": "Link purpose can be identified from link text alone",
    "2.4.10": "Section headings are used to organize content",
    "2.5.5": "The size of the target for pointer inputs is at least 44 by 44 CSS pixels",
    "2.5.6": "Input mechanisms are available for users who cannot perform complex gestures",
    "3.1.3": "The meaning of unusual words, phrases, idioms, and abbreviations can be determined",
    "3.1.4": "The expansion or explanation of abbreviations can be determined",
    "3.1.5": "Reading level is lower secondary education level or supplemental content is available",
    "3.1.6": "The pronunciation of words where meanings is ambiguous can be determined",
    "3.2.5": "Changes of context are initiated only by user request or a mechanism is available to turn off such changes",
    "3.3.5": "Context-sensitive help is available",
    "3.3.6": "Error prevention mechanisms are provided for submissions that are irreversible or financial",
}


def to_dotted(code: str | None) -> str:
    """Convert a forge tag to its dotted number.

    Dotted input is returned unchanged. Tags missing from the catalog are
    returned verbatim with a warning rather than guessed at.
    """
    if not code:
        return ""
    text = str(code).strip()
    if text in CRITERIA_BY_NUM:
        return text
    criterion = CRITERIA_BY_CODE.get(text.lower())
    if criterion is not None:
        return criterion.num
    logger.warning("Unknown criterion code %r; keeping it verbatim", text)
    return text


def tier_of(num: str, tiers: Mapping[str, str] | None = None) -> str:
    """Return ``A``, ``AA`` or ``AAA`` for a dotted number; unknown numbers land in ``AA``."""
    lookup = tiers if tiers is not None else {c.num: c.tier for c in CRITERIA}
    return lookup.get(num, DEFAULT_TIER)


def get_criterion(code: str) -> Criterion | None:
    text = (code or "").strip().lower()
    return CRITERIA_BY_CODE.get(text) or CRITERIA_BY_NUM.get(text)


def select_criteria(codes: Iterable[str] | None = None) -> list[Criterion]:
    """Resolve a subset of the catalog by tag or dotted number (all when ``codes`` is empty)."""
    if not codes:
        return list(CRITERIA)
    selected: list[Criterion] = []
    for code in codes:
        criterion = get_criterion(code)
        if criterion is None:
            raise ValueError(f"Unknown WCAG criterion: {code}")
        if criterion not in selected:
            selected.append(criterion)
    return selected
