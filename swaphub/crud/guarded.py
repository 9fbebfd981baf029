"""
Compare-and-swap writes for versioned aggregates.

Every mutable row carries a ``version`` column. A transition is written as a
single UPDATE pinned to the id, the version that was read and the status the
caller validated against; if another writer got there first no row matches
and the caller must treat the transition as lost.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def guarded_update(
    db: Session,
    entity,
    *,
    values: Dict[str, Any],
    state_field: Optional[str] = None,
    expected_state: Optional[str] = None,
) -> bool:
    """
    Apply ``values`` to ``entity`` only if it is unchanged since it was read.

    Rows without a status (lock rows) pass no ``state_field`` and are pinned
    on id and version alone.

    Returns True when exactly one row was updated. The in-session instance is
    expired either way so later attribute access sees the stored row.
    """
    model = type(entity)
    changes = dict(values)
    changes["version"] = entity.version + 1

    query = db.query(model).filter(model.id == entity.id, model.version == entity.version)
    if state_field is not None:
        query = query.filter(getattr(model, state_field) == expected_state)
    updated = query.update(changes, synchronize_session=False)
    db.expire(entity)

    if updated != 1:
        logger.info(
            "Guarded update lost on %s id=%s (expected %s=%s)",
            model.__tablename__,
            entity.id,
            state_field,
            expected_state,
        )
        return False
    return True
