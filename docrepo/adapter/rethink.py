"""
RethinkDB query executor.

Runs repository queries against a RethinkDB server through the official
``rethinkdb`` driver. The connection is opened lazily on the first query
unless one is injected.

Invariants:
    - Driver exceptions never escape: connection failures become
      AdapterConnectionError, query logic errors (missing attributes,
      bad comparisons) QueryLogicError, everything else QueryError
    - Queries always target an explicit database
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from rethinkdb import RethinkDB, net
from rethinkdb.errors import ReqlDriverError, ReqlError, ReqlQueryLogicError

from ..config import ConnectionSettings, RunOptions
from ..errors import AdapterConnectionError, MissingDatabaseError, QueryError, QueryLogicError
from .base import Adapter

logger = logging.getLogger(__name__)


class RethinkDbAdapter(Adapter):
    """Adapter backed by a RethinkDB server.

    Example:
        >>> adapter = RethinkDbAdapter(database="blog")
        >>> adapter.query("article", lambda t, r: t.count())
        42
    """

    cursor_types = (net.Cursor,)

    def __init__(
        self,
        connection: Any = None,
        *,
        database: Optional[str] = "test",
        settings: Optional[ConnectionSettings] = None,
        run_options: Optional[RunOptions] = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            connection: Open driver connection (created lazily if None)
            database: Default database name
            settings: Connection settings (loaded from env if None)
            run_options: Options passed with every query
        """
        super().__init__(database=database, run_options=run_options)
        self.r = RethinkDB()
        self.settings = settings or ConnectionSettings()
        self._connection = connection

    @property
    def connection(self) -> Any:
        """Driver connection, opened on first use.

        Raises:
            AdapterConnectionError: If the server cannot be reached
        """
        if self._connection is None:
            logger.info(f"Connecting to RethinkDB at {self.settings.address}")
            try:
                self._connection = self.r.connect(
                    host=self.settings.host,
                    port=self.settings.port,
                    db=self.database,
                    user=self.settings.user,
                    password=self.settings.password,
                    timeout=self.settings.timeout,
                )
            except ReqlDriverError as e:
                raise AdapterConnectionError(
                    f"Failed to connect to RethinkDB: {e}",
                    address=self.settings.address,
                ) from e
        return self._connection

    def _expression(self, table: Optional[str], database: Optional[str]) -> Any:
        database = database or self.database
        if not database:
            raise MissingDatabaseError()
        db = self.r.db(database)
        return db if table is None else db.table(table)

    def _run(self, expression: Any, table: Optional[str]) -> Any:
        try:
            return expression.run(self.connection, **self._run_kwargs())
        except ReqlDriverError as e:
            raise AdapterConnectionError(str(e), address=self.settings.address) from e
        except ReqlQueryLogicError as e:
            raise QueryLogicError(str(e), table=table) from e
        except ReqlError as e:
            raise QueryError(str(e), table=table) from e

    def close(self) -> None:
        if self._connection is not None:
            try:
                self._connection.close()
            except ReqlDriverError as e:
                logger.warning(f"Error closing RethinkDB connection: {e}")
            self._connection = None
