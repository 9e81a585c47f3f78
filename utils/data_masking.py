# utils/data_masking.py
"""
Secret masking for anything serverpilot writes to its logs.

Admin command lines, assistant requests and REST URLs can carry the admin
password or an API key. Everything passes through mask_secrets() before it
reaches a log handler.
"""

import re
from typing import Dict, Iterable, Optional


# Pre-compiled regex patterns for masking
MASKING_PATTERNS = {
    "password_option": re.compile(r"(?i)(--(?:admin)?password(?:file)?[=\s]+)(\S+)"),
    "as_admin_password": re.compile(r"(?i)(AS_ADMIN_(?:NEW)?PASSWORD\s*=\s*)(\S+)"),
    "api_key": re.compile(r"(?i)((?:api[_-]?key|apikey)[\s:=]+)([A-Za-z0-9_-]{8,})"),
    "bearer_token": re.compile(r"(?i)(bearer\s+)([A-Za-z0-9._-]{8,})"),
    "password_in_url": re.compile(r"(://[^:/\s]+:)([^@\s]+)(@)"),
}


class SecretMasker:
    """Masks known secrets and secret-shaped substrings."""

    def __init__(self, secrets: Optional[Iterable[str]] = None):
        # Very short values would mask random substrings of ordinary output
        self.secrets = [s for s in (secrets or []) if s and len(s) >= 3]
        self.masking_stats: Dict[str, int] = {name: 0 for name in MASKING_PATTERNS}
        self.masking_stats["explicit"] = 0

    def mask(self, text: str) -> str:
        """Apply all masking rules to a string."""
        if not text or not isinstance(text, str):
            return text

        masked_text = text
        for secret in self.secrets:
            if secret in masked_text:
                self.masking_stats["explicit"] += masked_text.count(secret)
                masked_text = masked_text.replace(secret, "***")

        for name, pattern in MASKING_PATTERNS.items():
            def _sub(match, _name=name):
                self.masking_stats[_name] += 1
                groups = match.groups()
                if len(groups) == 3:
                    return f"{groups[0]}***{groups[2]}"
                return f"{groups[0]}***"

            masked_text = pattern.sub(_sub, masked_text)

        return masked_text

    def get_masking_stats(self) -> Dict[str, int]:
        return self.masking_stats.copy()


def mask_secrets(text: str, secrets: Optional[Iterable[str]] = None) -> str:
    """Convenience wrapper around SecretMasker for one-off strings."""
    return SecretMasker(secrets).mask(text)
