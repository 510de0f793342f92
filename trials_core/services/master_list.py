# trials_core/services/master_list.py
"""
Master list of pattern codes.

Lookup is case-insensitive on the trimmed pattern code. Inactive cards
stay searchable but never seed a new trial card.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from django.db import transaction

from trials_core.models import MasterCard
from trials_core.permissions import authorize
from trials_core.workflows.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def find_by_pattern_code(pattern_code: str, *, active_only: bool = False) -> Optional[MasterCard]:
    code = (pattern_code or "").strip()
    if not code:
        return None

    qs = MasterCard.objects.filter(pattern_code__iexact=code)
    if active_only:
        qs = qs.filter(is_active=True)
    return qs.first()


def get_by_pattern_code(pattern_code: str) -> MasterCard:
    code = (pattern_code or "").strip()
    if not code:
        raise ValidationError({"pattern_code": "This field is required."})

    card = find_by_pattern_code(code)
    if card is None:
        raise NotFoundError(f"No master card for pattern code {code}.")
    return card


def trial_targets(pattern_code: str) -> Dict[str, Any]:
    """
    Target chemistry and mechanical properties for a new trial card, taken
    from the active master card. Empty when there is none.
    """
    card = find_by_pattern_code(pattern_code, active_only=True)
    if card is None:
        return {}

    targets: Dict[str, Any] = {}
    if card.chemical_composition:
        targets["chemical_composition"] = dict(card.chemical_composition)
    tensile = card.target_tensile()
    if tensile:
        targets["tensile"] = tensile
    return targets


def set_active(card_id, is_active: bool, actor) -> MasterCard:
    authorize(actor, "manage_master_list")

    with transaction.atomic():
        try:
            card = MasterCard.objects.select_for_update().get(pk=card_id)
        except (MasterCard.DoesNotExist, ValueError, TypeError):
            raise NotFoundError(f"Master card {card_id} not found.")

        if card.is_active != is_active:
            card.is_active = is_active
            card.save(update_fields=["is_active", "updated_at"])
            logger.info(
                "Master card %s %s by %s",
                card.pattern_code,
                "activated" if is_active else "deactivated",
                actor,
            )
    return card


def _clean_ids(ids: Iterable[Any]) -> List[int]:
    if isinstance(ids, (str, bytes)) or not isinstance(ids, (list, tuple)) or not ids:
        raise ValidationError({"ids": "Provide a non-empty list of ids."})

    out: List[int] = []
    for value in ids:
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise ValidationError({"ids": f"Invalid id: {value!r}"})
        text = str(value).strip()
        if not text.isdecimal():
            raise ValidationError({"ids": f"Invalid id: {value!r}"})
        out.append(int(text))
    return sorted(set(out))


def bulk_delete(ids: Iterable[Any], actor) -> int:
    """
    Delete the listed master cards. Trial cards keep their copied targets.
    Unknown ids are ignored; NotFoundError if none of them exist.
    """
    authorize(actor, "manage_master_list")
    wanted = _clean_ids(ids)

    with transaction.atomic():
        qs = MasterCard.objects.select_for_update().filter(pk__in=wanted)
        codes = list(qs.values_list("pattern_code", flat=True))
        if not codes:
            raise NotFoundError("None of the listed master cards exist.")
        deleted, _ = MasterCard.objects.filter(pk__in=wanted).delete()

    logger.warning("Master cards deleted by %s: %s", actor, ", ".join(sorted(codes)))
    return deleted
