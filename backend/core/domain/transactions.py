"""
core.domain.transactions — Helpers for safe state transitions.

Every state-changing service method runs inside ``transaction.atomic``
and reads the row it is about to change through ``lock_for_update``.
Write-once fields (validation timestamps) are additionally written with
``compare_and_set`` so that, of two concurrent writers, exactly one
succeeds even on backends where ``select_for_update`` is a no-op
(SQLite).

Usage::

    from core.domain.transactions import compare_and_set, lock_for_update

    with transaction.atomic():
        case = lock_for_update(Case, case_id)
        ...
        if not compare_and_set(
            Case, case.pk,
            expected={"dir_village_validated_at__isnull": True},
            changes={"dir_village_validated_at": now, ...},
        ):
            raise AlreadyValidated()
"""

from __future__ import annotations

from typing import Any, Mapping, TypeVar

from django.db import models

from core.domain.exceptions import NotFound

M = TypeVar("M", bound=models.Model)


def lock_for_update(model_class: type[M], pk: Any) -> M:
    """
    Acquire a row-level lock on the given model instance.

    Convenience wrapper around ``select_for_update().get(pk=pk)``
    that must be called inside an ``atomic()`` block.

    Args:
        model_class: The Django model class.
        pk:          Primary key value.

    Returns:
        The locked model instance.

    Raises:
        NotFound: If no row with that PK exists.
    """
    try:
        return model_class.objects.select_for_update().get(pk=pk)
    except model_class.DoesNotExist:
        raise NotFound(f"{model_class.__name__} with pk={pk} does not exist.")


def compare_and_set(
    model_class: type[models.Model],
    pk: Any,
    *,
    expected: Mapping[str, Any],
    changes: Mapping[str, Any],
) -> bool:
    """
    Apply ``changes`` to row ``pk`` only if it still matches ``expected``.

    Issues a single ``UPDATE ... WHERE pk = %s AND <expected>``.

    Returns:
        ``True`` if the row was updated, ``False`` if another writer got
        there first (or the row no longer matches).
    """
    updated = model_class.objects.filter(pk=pk, **expected).update(**changes)
    return updated == 1
