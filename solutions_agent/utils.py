import re
import unicodedata


def normalize_text(text: str) -> str:
    """Purpose: Normalize free-form text for stable matching.
    Inputs/Outputs: Input is a raw string; output is a lowercase ASCII-only string with
        diacritics removed and whitespace collapsed.
    Side Effects / State: None; pure function.
    Dependencies: Uses unicodedata and regex; called by catalog record parsing.
    Failure Modes: Returns an empty string when input is falsy.
    If Removed: Key synonyms in catalog records no longer compare equal.
    Testing Notes: "Short_Description" and "short description" normalize alike.
    """
    # Normalize to lowercase and strip diacritics for consistent matching.
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    cleaned = re.sub(r"[^a-z0-9\s]+", " ", stripped)
    return re.sub(r"\s+", " ", cleaned).strip()


def normalize_key(text: str) -> str:
    """Purpose: Produce a compact key so camelCase, snake_case and spaced names compare equal.
    Inputs/Outputs: Input is a raw key; output is the normalized key with spaces removed.
    Side Effects / State: None; pure function.
    If Removed: Record field lookup by synonym fails.
    Testing Notes: "shortDescription", "short_description" and "Short Description"
        all become "shortdescription".
    """
    # Collapse normalization output into a compact key.
    return normalize_text(text).replace(" ", "")
