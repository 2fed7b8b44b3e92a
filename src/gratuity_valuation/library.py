"""
gratuity_valuation/library.py - Decrement Rate Table Library

Holds the rate table documents fetched for a valuation and resolves the
mortality, withdrawal and ill-health tables referenced by a demographic
basis.

A reference that cannot be resolved does not stop the valuation: the axis
is valued with an all-zero table and a warning names the missing id so the
run can be reviewed.

Author: Actuarial Pipeline Project
License: MIT
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
import logging

from .decrements import DemographicAssumptions, RateTable
from .plan_config import RateTableDocument

logger = logging.getLogger(__name__)


class RateTableRepository:
    """
    Id-keyed store of rate table documents.

    Documents may be passed as RateTableDocument models or as raw dicts
    carrying `_id`/`id`, `startingAge`, `value`, `rateType` and
    `decrementRateName`.
    """

    def __init__(self, documents: Iterable[Union[RateTableDocument, Dict[str, Any]]] = ()):
        self._documents: Dict[str, RateTableDocument] = {}
        for doc in documents:
            self.add(doc)

    def add(self, document: Union[RateTableDocument, Dict[str, Any]]) -> None:
        if not isinstance(document, RateTableDocument):
            document = RateTableDocument.model_validate(document)
        self._documents[document.id] = document

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, rate_id: object) -> bool:
        return str(rate_id) in self._documents

    def list_ids(self) -> List[str]:
        return list(self._documents.keys())

    def get(self, rate_id: Optional[str]) -> Optional[RateTable]:
        """Rate table for an id, or None."""
        if rate_id is None:
            return None
        doc = self._documents.get(str(rate_id))
        return doc.to_rate_table() if doc is not None else None

    def get_many(self, rate_ids: Iterable[Optional[str]]) -> Dict[str, RateTable]:
        """Batch lookup: only the ids that were found appear in the result."""
        found = {}
        for rate_id in rate_ids:
            table = self.get(rate_id)
            if table is not None:
                found[str(rate_id)] = table
        return found

    def resolve(self, demographics: DemographicAssumptions
                ) -> Tuple[RateTable, RateTable, RateTable]:
        """
        Resolve (mortality, withdrawal, ill-health) tables for a basis.

        Missing references degrade to all-zero tables with a warning.
        """
        references = (
            ('mortality', demographics.mortality_rate_id),
            ('withdrawal', demographics.withdrawal_rate_id),
            ('ill-health', demographics.ill_health_rate_id),
        )
        found = self.get_many(rate_id for _, rate_id in references)

        tables = []
        for axis, rate_id in references:
            table = found.get(str(rate_id)) if rate_id is not None else None
            if table is None:
                logger.warning(
                    f"Rate table {rate_id!r} for {axis} not found among "
                    f"{len(self)} fetched tables - valuing {axis} decrements as zero"
                )
                table = RateTable.zeros(rate_type=axis)
            tables.append(table)

        return tables[0], tables[1], tables[2]
