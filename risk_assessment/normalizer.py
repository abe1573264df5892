"""
Risk Assessment Core - Risk Level Normalization.

Admins type risk levels as free text ("low risk", "MEDIUM",
"High - refer"). The normalizer folds them onto the canonical
tokens by substring, checked in a fixed priority order:

    "low"            -> Low
    "mod" or "med"   -> Moderate
    "high"           -> High

Anything else is returned unchanged and is treated as unknown
by the matcher. Empty input becomes "Unknown".
"""

from typing import Optional

from .types import UNKNOWN_RISK_LEVEL, RiskLevel


class RiskLevelNormalizer:
    """Canonicalizes free-text risk levels."""

    def normalize(self, text: Optional[str]) -> str:
        if text is None:
            return UNKNOWN_RISK_LEVEL
        if not text.strip():
            return UNKNOWN_RISK_LEVEL

        lowered = text.lower()

        if "low" in lowered:
            return RiskLevel.LOW.value
        if "mod" in lowered or "med" in lowered:
            return RiskLevel.MODERATE.value
        if "high" in lowered:
            return RiskLevel.HIGH.value

        return text

    def to_enum(self, text: Optional[str]) -> Optional[RiskLevel]:
        """Canonical enum member, or None when the text is not recognised."""
        normalized = self.normalize(text)
        try:
            return RiskLevel.parse(normalized)
        except ValueError:
            return None

    def is_canonical(self, text: Optional[str]) -> bool:
        return text is not None and text in {level.value for level in RiskLevel}


_default_normalizer = RiskLevelNormalizer()


def normalize_risk_level(text: Optional[str]) -> str:
    """Module-level convenience wrapper."""
    return _default_normalizer.normalize(text)
