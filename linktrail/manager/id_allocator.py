"""
IDAllocator – claims globally unique short IDs.

Rules:
    - Alias given: reject with AliasConflict if a link already uses it,
      otherwise claim it with a conditional write. Losing the conditional
      write to a concurrent claimant is also an AliasConflict.
    - No alias: the first candidate is the plain hash of the destination URL.
      If it is taken, later candidates hash "url|<random salt>", so shortening
      the same URL again costs one or two claims no matter how often it was
      shortened before. After `max_attempts` candidates the allocator gives
      up with AllocationExhausted.
    - Words the HTTP layer routes on (RESERVED_IDS) are never handed out.

Claims go through LinkRecordRepository.create (put-if-absent), so two
requests can never both believe they own the same ID.
"""

import dataclasses
import logging
import secrets
from typing import Optional

from ..config import settings
from ..errors import AliasConflict, AllocationExhausted
from ..models import LinkRecord
from ..storage.repository import LinkRecordRepository
from .strategies import BaseStrategy, get_strategy_from_config

logger = logging.getLogger(__name__)

# Path segments under /api/ that belong to other routes.
RESERVED_IDS = frozenset({"urls", "shorten", "bulk-shorten"})


class IDAllocator:
    def __init__(
        self,
        repository: LinkRecordRepository,
        strategy: Optional[BaseStrategy] = None,
        max_attempts: Optional[int] = None,
    ):
        self.repository = repository
        self.strategy = strategy or get_strategy_from_config()
        self.max_attempts = max_attempts if max_attempts is not None else settings.MAX_ALLOCATION_ATTEMPTS

    def candidate(self, url: str, attempt: int = 0) -> str:
        salt = secrets.token_hex(8) if attempt else ""
        return self.strategy.generate(url, salt=salt)

    def allocate(self, record: LinkRecord, alias: Optional[str] = None) -> str:
        """
        Claim an ID for `record` and write it.

        Args:
            record (LinkRecord): Link to store; its `short_id` is replaced by the claimed ID.
            alias (Optional[str]): Vanity ID requested by the caller.

        Returns:
            str: The claimed short ID.

        Raises:
            AliasConflict: The alias is already taken.
            AllocationExhausted: No free candidate within `max_attempts`.
        """
        if alias:
            if self.repository.exists(alias):
                raise AliasConflict("Alias already in use. Please choose a different one.")
            if not self.repository.create(dataclasses.replace(record, short_id=alias)):
                raise AliasConflict("Alias already in use. Please choose a different one.")
            return alias

        for attempt in range(self.max_attempts):
            candidate = self.candidate(record.original_url, attempt)
            if candidate in RESERVED_IDS:
                continue
            if self.repository.create(dataclasses.replace(record, short_id=candidate)):
                return candidate
            logger.debug("Candidate %s for %s is taken (attempt %d)", candidate, record.original_url, attempt)

        logger.error("No free short id for %s after %d attempts", record.original_url, self.max_attempts)
        raise AllocationExhausted(
            f"Could not allocate a short id after {self.max_attempts} attempts"
        )
