"""
Single-row insert/update with bounded retry.

Every write the ingestion pipeline makes goes through here. A failed attempt
rolls the session back, waits attempt * delay and tries again; after
max_attempts the last error surfaces as a PersistenceError. Unique violations
surface as DuplicateRecordError and a zero-row update as NotFoundError, neither
of which is retried under the default policy.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_settings
from app.core.retry import RetryPolicy
from app.db import Base
from app.exceptions import DuplicateRecordError, NotFoundError, PersistenceError

ModelT = TypeVar("ModelT", bound=Base)

logger = logging.getLogger(__name__)


def default_retry_policy() -> RetryPolicy:
    settings = get_settings()
    return RetryPolicy(
        max_attempts=settings.persistence_max_attempts,
        delay_seconds=settings.persistence_retry_delay_seconds,
    )


class PersistenceService:
    def __init__(self, db: Session, policy: Optional[RetryPolicy] = None) -> None:
        self.db = db
        self.policy = policy or default_retry_policy()

    def insert_with_retry(
        self,
        model: Type[ModelT],
        values: Mapping[str, Any],
        max_attempts: Optional[int] = None,
    ) -> ModelT:
        """Insert one row built from values and return it refreshed."""
        table = model.__tablename__

        def attempt_insert(attempt: int) -> ModelT:
            row = model(**dict(values))
            self.db.add(row)
            self._commit(table, row)
            logger.info(
                "Inserted into %s (attempt %d)",
                table,
                attempt,
                extra={"table": table, "attempt": attempt},
            )
            return row

        return self.policy.with_attempts(max_attempts).run(
            attempt_insert,
            description=f"insert into {table}",
            on_failure=self._rollback,
        )

    def update_with_retry(
        self,
        model: Type[ModelT],
        patch: Mapping[str, Any],
        match_filter: Mapping[str, Any],
        max_attempts: Optional[int] = None,
    ) -> ModelT:
        """
        Apply patch to the first row matching every column == value pair in
        match_filter. Raises NotFoundError when nothing matches.
        """
        if not match_filter:
            raise ValueError("match_filter must not be empty")
        table = model.__tablename__

        def attempt_update(attempt: int) -> ModelT:
            row = self._find_one(model, match_filter)
            if row is None:
                raise NotFoundError(
                    f"No {table} row matches {dict(match_filter)!r}"
                )
            for key, value in patch.items():
                setattr(row, key, value)
            self._commit(table, row)
            logger.info(
                "Updated %s (attempt %d)",
                table,
                attempt,
                extra={"table": table, "attempt": attempt},
            )
            return row

        return self.policy.with_attempts(max_attempts).run(
            attempt_update,
            description=f"update {table}",
            on_failure=self._rollback,
        )

    def _find_one(
        self, model: Type[ModelT], match_filter: Mapping[str, Any]
    ) -> Optional[ModelT]:
        try:
            query = self.db.query(model)
            for column, value in match_filter.items():
                query = query.filter(getattr(model, column) == value)
            return query.first()
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Lookup on {model.__tablename__} failed: {exc}"
            ) from exc

    def _commit(self, table: str, row: Base) -> None:
        try:
            self.db.commit()
            self.db.refresh(row)
        except IntegrityError as exc:
            raise DuplicateRecordError(
                f"Constraint violation on {table}: {exc.orig}"
            ) from exc
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Write to {table} failed: {exc}") from exc

    def _rollback(self, exc: BaseException) -> None:
        try:
            self.db.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback failed after %s", exc)
