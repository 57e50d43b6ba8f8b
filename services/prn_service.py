"""
PRN Service
Gating for as-needed medications: minimum interval and daily maximum
"""

import logging
from typing import Dict, Optional
from datetime import datetime, timedelta

from config import DocumentKeys
from api.schemas.medication import PRNConfig, PRNCheck
from services.storage_service import SnapshotStore, snapshot_store


logger = logging.getLogger(__name__)


class PRNNotAllowedError(ValueError):
    """An as-needed dose was requested too soon or over the daily maximum"""

    def __init__(self, check: PRNCheck):
        super().__init__(check.reason or "Dose not allowed right now")
        self.check = check


def _rolled_over(config: PRNConfig, now: datetime) -> PRNConfig:
    """Reset the daily counter when the day has changed"""
    if config.last_reset_date != now.date():
        return config.model_copy(update={"taken_today": 0, "last_reset_date": now.date()})
    return config


def can_take_prn(config: PRNConfig, now: datetime) -> PRNCheck:
    """Check whether an as-needed dose may be taken at `now`"""
    config = _rolled_over(config, now)
    remaining = max(config.max_per_day - config.taken_today, 0)

    if config.taken_today >= config.max_per_day:
        tomorrow = datetime.combine(now.date() + timedelta(days=1), datetime.min.time())
        return PRNCheck(
            can_take=False,
            reason=f"Daily maximum of {config.max_per_day} doses reached",
            next_available_time=tomorrow,
            remaining_today=0
        )

    if config.last_taken is not None:
        next_time = config.last_taken + timedelta(hours=config.min_interval_hours)
        if now < next_time:
            return PRNCheck(
                can_take=False,
                reason=f"Minimum interval of {config.min_interval_hours:g} hours not met",
                next_available_time=next_time,
                remaining_today=remaining
            )

    return PRNCheck(can_take=True, remaining_today=remaining)


def record_prn_dose(config: PRNConfig, now: datetime) -> PRNConfig:
    """Return the config updated for a dose taken at `now`"""
    config = _rolled_over(config, now)
    return config.model_copy(update={
        "taken_today": config.taken_today + 1,
        "last_taken": now
    })


class PRNService:
    """
    Persists PRN configs and applies the gate
    """

    def __init__(self, store: Optional[SnapshotStore] = None):
        self.store = store or snapshot_store

    def _load_all(self) -> Dict[str, PRNConfig]:
        raw = self.store.load(DocumentKeys.PRN_CONFIGS, {})
        configs = {}
        for med_id, data in (raw or {}).items():
            try:
                configs[med_id] = PRNConfig.model_validate(data)
            except ValueError as e:
                logger.warning(f"Dropping unreadable PRN config for {med_id}: {e}")
        return configs

    def _save_all(self, configs: Dict[str, PRNConfig]) -> None:
        self.store.save(
            DocumentKeys.PRN_CONFIGS,
            {med_id: c.model_dump(mode="json") for med_id, c in configs.items()}
        )

    def get_config(self, medication_id: str) -> Optional[PRNConfig]:
        return self._load_all().get(medication_id)

    def is_prn(self, medication_id: str) -> bool:
        return self.get_config(medication_id) is not None

    def save_config(self, config: PRNConfig) -> PRNConfig:
        configs = self._load_all()
        configs[config.medication_id] = config
        self._save_all(configs)
        return config

    def remove_config(self, medication_id: str) -> None:
        configs = self._load_all()
        if configs.pop(medication_id, None) is not None:
            self._save_all(configs)

    def check(self, medication_id: str, now: datetime) -> PRNCheck:
        config = self.get_config(medication_id) or PRNConfig(medication_id=medication_id)
        return can_take_prn(config, now)

    def record_dose(self, medication_id: str, now: datetime) -> PRNConfig:
        """
        Record an as-needed dose

        Raises:
            PRNNotAllowedError: when the gate refuses the dose
        """
        config = self.get_config(medication_id) or PRNConfig(medication_id=medication_id)
        check = can_take_prn(config, now)
        if not check.can_take:
            raise PRNNotAllowedError(check)

        updated = record_prn_dose(config, now)
        self.save_config(updated)
        logger.info(f"PRN dose recorded for {medication_id} ({updated.taken_today}/{updated.max_per_day} today)")
        return updated
