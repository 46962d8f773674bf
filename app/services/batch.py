"""
Chunked atomic write batches.

The ledger never writes while it is still computing: every change is staged
here as a SQLAlchemy Core statement and committed at the end. Statements are
staged in atomic groups (for example one user's prediction updates plus the
matching increment of that user's total). A group is never split across
chunks, so each committed chunk leaves predictions and user totals agreeing
with each other and a retry of the whole operation computes zero deltas for
everything that already landed.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError

from app import db
from app.exceptions import PartialCommitError
from app.models import Fixture, Prediction, Season, User

logger = logging.getLogger(__name__)


def utcnow():
    return datetime.now(timezone.utc)


class WriteBatch:
    """Stages writes and commits them in bounded, independently atomic chunks"""

    def __init__(self, max_operations=None):
        if max_operations is None:
            max_operations = current_app.config.get("LEDGER_BATCH_SIZE", 500)
        if max_operations < 1:
            raise ValueError("max_operations must be at least 1")

        self.max_operations = max_operations
        self._groups = []
        self._open_group = None

    def __len__(self):
        return sum(len(group) for group in self._groups)

    @property
    def group_count(self):
        return len(self._groups)

    @contextmanager
    def group(self):
        """Statements staged inside this block always land in the same chunk"""
        if self._open_group is not None:
            raise RuntimeError("Atomic groups cannot be nested")

        self._open_group = []
        try:
            yield self
        finally:
            statements, self._open_group = self._open_group, None
        if statements:
            self._groups.append(statements)

    def add(self, statement):
        """Stage a raw statement (as its own group when no group is open)"""
        if self._open_group is not None:
            self._open_group.append(statement)
        else:
            self._groups.append([statement])

    # Staging helpers

    def update_prediction_score(self, prediction_id, points, breakdown, calculated_at=None):
        self.add(
            update(Prediction)
            .where(Prediction.id == prediction_id)
            .values(
                points_earned=points,
                breakdown=breakdown,
                calculated_at=calculated_at or utcnow(),
            )
        )

    def increment_user(self, user_id, points=0, scorer_matches=0):
        """Relative increment of a user's counters; zero deltas stage nothing"""
        values = {}
        if points:
            values["total_points"] = User.total_points + points
        if scorer_matches:
            values["scorer_match_count"] = User.scorer_match_count + scorer_matches
        if not values:
            return

        values["last_updated"] = utcnow()
        self.add(update(User).where(User.id == user_id).values(**values))

    def reset_user_points(self, user_id):
        self.add(
            update(User)
            .where(User.id == user_id)
            .values(total_points=0, last_updated=utcnow())
        )

    def update_fixture(self, fixture_id, **values):
        self.add(update(Fixture).where(Fixture.id == fixture_id).values(**values))

    def update_season(self, season_id, **values):
        self.add(update(Season).where(Season.id == season_id).values(**values))

    def delete_prediction(self, prediction_id):
        self.add(delete(Prediction).where(Prediction.id == prediction_id))

    def delete_fixture(self, fixture_id):
        self.add(delete(Fixture).where(Fixture.id == fixture_id))

    def delete_season(self, season_id):
        self.add(delete(Season).where(Season.id == season_id))

    # Committing

    def chunks(self):
        """Pack the staged groups, in order, into chunks of bounded size"""
        chunks = []
        current = []

        for group in self._groups:
            if current and len(current) + len(group) > self.max_operations:
                chunks.append(current)
                current = []
            if len(group) > self.max_operations:
                logger.warning(
                    f"Atomic group of {len(group)} writes exceeds the batch limit "
                    f"of {self.max_operations}, committing it as its own chunk"
                )
            current = current + group
        if current:
            chunks.append(current)

        return chunks

    def _execute_chunk(self, statements):
        for statement in statements:
            db.session.execute(statement)
        db.session.commit()

    def commit(self):
        """
        Commit all staged writes chunk by chunk.

        Returns:
            int: number of chunks committed

        Raises:
            PartialCommitError: a chunk failed; earlier chunks stay committed
        """
        chunks = self.chunks()
        total = len(chunks)

        for index, statements in enumerate(chunks):
            try:
                self._execute_chunk(statements)
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.exception(
                    f"Batch chunk {index + 1}/{total} failed, "
                    f"{index} chunk(s) already committed"
                )
                raise PartialCommitError(
                    f"Commit failed at chunk {index + 1} of {total}: {e}",
                    committed_chunks=index,
                    total_chunks=total,
                ) from e

            logger.debug(
                f"Committed batch chunk {index + 1}/{total} ({len(statements)} writes)"
            )

        self._groups = []
        return total
