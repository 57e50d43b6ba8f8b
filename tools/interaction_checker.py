"""
Drug Interaction Checker Tool
Asks the LLM for an advisory on potential interactions in the medication list
"""

import logging
from typing import List, Optional, Tuple

from pydantic import ValidationError

from api.schemas.medication import Medication, InteractionResult
from services.llm_service import LLMService


logger = logging.getLogger(__name__)


INTERACTION_SYSTEM_PROMPT = """You are a clinical pharmacology assistant.
Review the medication list for potential drug-drug interactions.
Be concise and practical. This advisory is informational and does not replace a pharmacist."""

INTERACTION_SCHEMA = {
    "has_interactions": True,
    "summary": "One or two sentence overview",
    "details": [
        {
            "description": "What the interaction is",
            "severity": "Mild | Moderate | Severe",
            "management": "What the patient should do",
            "interacting_drugs": ["Drug A", "Drug B"]
        }
    ]
}


def medication_fingerprint(medications: List[Medication]) -> Tuple[str, ...]:
    """Ordered "name dosage" labels; the advisory depends on nothing else"""
    return tuple(f"{m.name} {m.dosage}" for m in medications)


class InteractionChecker:
    """
    Advisory client for drug-drug interactions

    Failures never propagate: an unconfigured provider, network errors and
    malformed replies all come back as None ("no advisory available").
    """

    def __init__(self, llm: Optional[LLMService] = None):
        self._llm = llm

    @property
    def llm(self) -> LLMService:
        if self._llm is None:
            from services.llm_service import llm_service
            self._llm = llm_service
        return self._llm

    def build_prompt(self, medications: List[Medication]) -> str:
        lines = "\n".join(f"- {label}" for label in medication_fingerprint(medications))
        return f"Check these medications for interactions:\n{lines}"

    async def check(self, medications: List[Medication]) -> Optional[InteractionResult]:
        """
        Check the medication list for interactions

        Args:
            medications: Current medications

        Returns:
            InteractionResult, or None with fewer than two medications or on failure
        """
        if len(medications) < 2:
            return None

        try:
            data = await self.llm.generate_json(
                self.build_prompt(medications),
                schema_hint=INTERACTION_SCHEMA,
                system_prompt=INTERACTION_SYSTEM_PROMPT
            )
            result = InteractionResult.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Interaction advisory returned an unexpected shape: {e}")
            return None
        except Exception as e:
            logger.error(f"Interaction advisory failed: {e}")
            return None

        logger.info(
            f"Interaction advisory for {len(medications)} medications: "
            f"{len(result.details)} interaction(s)"
        )
        return result


class InteractionMonitor:
    """
    Re-runs the advisory only when the medication list actually changed
    """

    def __init__(self, checker: Optional[InteractionChecker] = None):
        self.checker = checker or interaction_checker
        self._fingerprint: Optional[Tuple[str, ...]] = None
        self.last_result: Optional[InteractionResult] = None

    async def refresh(self, medications: List[Medication]) -> Optional[InteractionResult]:
        fingerprint = medication_fingerprint(medications)
        if fingerprint == self._fingerprint:
            return self.last_result

        self.last_result = await self.checker.check(medications)
        # A missing advisory is retried on the next refresh
        self._fingerprint = fingerprint if self.last_result is not None else None
        return self.last_result

    def reset(self):
        self._fingerprint = None
        self.last_result = None


# Singleton instances
interaction_checker = InteractionChecker()
interaction_monitor = InteractionMonitor(interaction_checker)


async def check_interactions(medications: List[Medication]) -> Optional[InteractionResult]:
    """Convenience function to check interactions"""
    return await interaction_checker.check(medications)
