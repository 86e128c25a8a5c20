import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
DEFAULT_ACCEPT_LANGUAGE = "en-US,en;q=0.9"
DEFAULT_LLM_MODEL = "gpt-4o"
# Pages are cut to this many characters before being sent to the model.
DEFAULT_MAX_HTML_LENGTH = 150_000


def _flag(value: Optional[str], default: bool = False) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


@dataclass(frozen=True)
class PipelineSettings:
    """Knobs for one listing-details run. Build with `from_env()` in production."""

    timeout: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT
    accept: str = DEFAULT_ACCEPT
    accept_language: str = DEFAULT_ACCEPT_LANGUAGE
    proxy: Optional[str] = None
    debug: bool = False
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    llm_model: str = DEFAULT_LLM_MODEL
    max_html_length: int = DEFAULT_MAX_HTML_LENGTH
    llm_concurrent: bool = True
    google_maps_api_key: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PipelineSettings":
        env = os.environ if environ is None else environ
        return cls(
            timeout=float(env.get("LISTING_HTTP_TIMEOUT") or 30.0),
            user_agent=_blank_to_none(env.get("LISTING_USER_AGENT")) or DEFAULT_USER_AGENT,
            accept_language=_blank_to_none(env.get("LISTING_ACCEPT_LANGUAGE")) or DEFAULT_ACCEPT_LANGUAGE,
            proxy=_blank_to_none(env.get("LISTING_HTTP_PROXY")),
            debug=_flag(env.get("LISTING_DEBUG")),
            openai_api_key=_blank_to_none(env.get("OPENAI_API_KEY")),
            openai_base_url=_blank_to_none(env.get("OPENAI_BASE_URL")),
            llm_model=_blank_to_none(env.get("LISTING_LLM_MODEL")) or DEFAULT_LLM_MODEL,
            max_html_length=int(env.get("LISTING_LLM_MAX_HTML") or DEFAULT_MAX_HTML_LENGTH),
            llm_concurrent=_flag(env.get("LISTING_LLM_CONCURRENT"), default=True),
            google_maps_api_key=_blank_to_none(env.get("GOOGLE_MAPS_API_KEY")),
        )

    @property
    def llm_enabled(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def geocoding_enabled(self) -> bool:
        return bool(self.google_maps_api_key)
