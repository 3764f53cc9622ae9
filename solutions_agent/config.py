from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


@dataclass(frozen=True)
class Settings:
    """Configuration container for the provider, catalog, and session limits."""
    gemini_api_key: str
    gemini_model: str
    max_output_tokens: int
    internet_max_output_tokens: int
    temperature: float
    top_p: float
    frequency_penalty: float
    presence_penalty: float
    catalog_backend: str
    catalog_path: Path
    mongodb_uri: str
    mongodb_db: str
    mongodb_collection: str
    mongodb_companies_collection: str
    prompts_dir: Path
    max_turns: int
    history_window: int
    readiness_window: int
    max_sessions: int
    session_ttl_seconds: float
    max_message_length: int

    @property
    def is_configured(self) -> bool:
        return bool(self.gemini_api_key.strip())


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables and filesystem paths.
    Dependencies: Uses os.getenv and BASE_DIR for packaged defaults.
    Failure Modes: Invalid numeric env values raise ValueError. A missing
        GEMINI_API_KEY is not an error here; the completion client raises
        ConfigurationError on first use.
    If Removed: The app cannot configure the provider, catalog or limits.
    Testing Notes: Verify defaults and overrides via monkeypatched environment.
    """
    # Resolve catalog and prompt paths, then build Settings.
    catalog_path = os.getenv("CATALOG_PATH")
    if catalog_path:
        catalog_file = Path(catalog_path)
    else:
        catalog_file = (BASE_DIR / "data" / "sample_catalog.json").resolve()

    prompts_dir = (BASE_DIR / "prompts").resolve()

    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.0-flash"),
        max_output_tokens=int(os.getenv("MAX_OUTPUT_TOKENS", "1000")),
        internet_max_output_tokens=int(os.getenv("INTERNET_MAX_OUTPUT_TOKENS", "1200")),
        temperature=float(os.getenv("TEMPERATURE", "0.7")),
        top_p=float(os.getenv("TOP_P", "0.9")),
        frequency_penalty=float(os.getenv("FREQUENCY_PENALTY", "0.1")),
        presence_penalty=float(os.getenv("PRESENCE_PENALTY", "0.1")),
        catalog_backend=os.getenv("CATALOG_BACKEND", "json").strip().lower(),
        catalog_path=catalog_file,
        mongodb_uri=os.getenv("MONGODB_URI", ""),
        mongodb_db=os.getenv("MONGODB_DB", "solutionshub"),
        mongodb_collection=os.getenv("MONGODB_COLLECTION", "solutions"),
        mongodb_companies_collection=os.getenv("MONGODB_COMPANIES_COLLECTION", "companies"),
        prompts_dir=prompts_dir,
        max_turns=int(os.getenv("MAX_TURNS", "20")),
        history_window=int(os.getenv("HISTORY_WINDOW", "10")),
        readiness_window=int(os.getenv("READINESS_WINDOW", "6")),
        max_sessions=int(os.getenv("MAX_SESSIONS", "1000")),
        session_ttl_seconds=float(os.getenv("SESSION_TTL_SECONDS", "86400")),
        max_message_length=int(os.getenv("MAX_MESSAGE_LENGTH", "1000")),
    )
