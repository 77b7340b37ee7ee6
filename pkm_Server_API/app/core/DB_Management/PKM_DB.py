# PKM_DB.py
# Description: DB Library for users, graphs, nodes, edges, notes, checklists and images.
#
# Imports
import sqlite3
from pathlib import Path
import threading
import logging
from typing import List, Dict, Optional, Any, Set, Union
#
# Third-Party Libraries
#
# Local Imports
from pkm_Server_API.app.core.Sync.clock import SyncClock, default_clock, iso_to_ms, ms_to_iso
#
########################################################################################################################
#
# Functions:

logger = logging.getLogger(__name__)


# --- Custom Exceptions ---
class PKMDatabaseError(Exception):
    """Base exception for PKMDatabase related errors."""
    pass


class SchemaError(PKMDatabaseError):
    """Exception for schema version mismatches or setup failures."""
    pass


class InputError(ValueError):
    """Custom exception for input validation errors."""
    pass


class ConflictError(PKMDatabaseError):
    """Indicates a unique constraint violation, e.g. a reused client-assigned id or username."""

    def __init__(self, message="Conflict detected.", entity: Optional[str] = None, entity_id: Any = None):
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id

    def __str__(self):
        base = super().__str__()
        details = []
        if self.entity:
            details.append(f"Entity: {self.entity}")
        if self.entity_id:
            details.append(f"ID: {self.entity_id}")
        return f"{base} ({', '.join(details)})" if details else base


class NotFoundError(Exception):
    """
    The requested row is absent, soft-deleted, or owned by someone else.
    Callers cannot tell the three cases apart.
    """

    def __init__(self, message="Not found.", entity: Optional[str] = None, entity_id: Any = None):
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id


# Tables carrying created_at / updated_at / deleted_at
SYNCABLE_TABLES = ("graphs", "nodes", "edges", "notes", "checklists", "checklist_items", "images")


# --- Database Class ---
class PKMDatabase:
    """
    Manages the SQLite connection, schema and transactions for the PKM store.

    Every row mutation is stamped with a timestamp from a SyncClock, which the
    database seeds on start-up with the newest stamp already stored.
    """
    _CURRENT_SCHEMA_VERSION = 1
    _SCHEMA_NAME = "pkm_schema"  # Used for the db_schema_version table

    _FULL_SCHEMA_SQL_V1 = """
/*───────────────────────────────────────────────────────────────
  PKM Schema  –  Version 1
───────────────────────────────────────────────────────────────*/
PRAGMA foreign_keys = ON;

/*----------------------------------------------------------------
  0. Schema-version registry
----------------------------------------------------------------*/
CREATE TABLE IF NOT EXISTS db_schema_version(
  schema_name TEXT PRIMARY KEY NOT NULL,
  version     INTEGER NOT NULL
);
INSERT OR IGNORE INTO db_schema_version(schema_name,version)
VALUES('pkm_schema',0);

/*----------------------------------------------------------------
  1. Users (not synced)
----------------------------------------------------------------*/
CREATE TABLE IF NOT EXISTS users(
  id            INTEGER PRIMARY KEY AUTOINCREMENT,
  username      TEXT    UNIQUE NOT NULL,
  email         TEXT,
  password_hash TEXT    NOT NULL,
  is_active     INTEGER NOT NULL DEFAULT 1,
  created_at    TEXT    NOT NULL,
  updated_at    TEXT    NOT NULL
);

/*----------------------------------------------------------------
  2. Images
----------------------------------------------------------------*/
CREATE TABLE IF NOT EXISTS images(
  id          INTEGER PRIMARY KEY AUTOINCREMENT,
  filename    TEXT    NOT NULL,
  filepath    TEXT    UNIQUE NOT NULL,
  mimetype    TEXT    NOT NULL,
  size        INTEGER NOT NULL,
  uploaded_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
  created_at  TEXT    NOT NULL,
  updated_at  TEXT    NOT NULL,
  deleted_at  TEXT
);
CREATE INDEX IF NOT EXISTS idx_images_uploaded_by ON images(uploaded_by);
CREATE INDEX IF NOT EXISTS idx_images_updated_at  ON images(updated_at);
CREATE INDEX IF NOT EXISTS idx_images_deleted_at  ON images(deleted_at);

-- A user's row stopped pointing at an upload url. Not syncable; read by the sync collector only.
CREATE TABLE IF NOT EXISTS image_scope_releases(
  id          INTEGER PRIMARY KEY AUTOINCREMENT,
  user_id     INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  image_url   TEXT    NOT NULL,
  released_at TEXT    NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_image_scope_releases_user ON image_scope_releases(user_id, released_at);

-- Highest stamp issued by any process sharing this file; advanced under the write lock
CREATE TABLE IF NOT EXISTS sync_clock(
  id      INTEGER PRIMARY KEY CHECK (id = 1),
  last_ms INTEGER NOT NULL
);
INSERT OR IGNORE INTO sync_clock(id, last_ms) VALUES (1, 0);

/*----------------------------------------------------------------
  3. Graphs, nodes and edges
----------------------------------------------------------------*/
CREATE TABLE IF NOT EXISTS graphs(
  id         INTEGER PRIMARY KEY AUTOINCREMENT,
  user_id    INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  title      TEXT    NOT NULL,
  created_at TEXT    NOT NULL,
  updated_at TEXT    NOT NULL,
  deleted_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_graphs_user_id    ON graphs(user_id);
CREATE INDEX IF NOT EXISTS idx_graphs_updated_at ON graphs(updated_at);
CREATE INDEX IF NOT EXISTS idx_graphs_deleted_at ON graphs(deleted_at);

CREATE TABLE IF NOT EXISTS nodes(
  id           TEXT    PRIMARY KEY NOT NULL,
  graph_id     INTEGER NOT NULL REFERENCES graphs(id) ON DELETE CASCADE,
  type         TEXT    NOT NULL DEFAULT 'bubble',
  position_x   REAL    NOT NULL,
  position_y   REAL    NOT NULL,
  data_label   TEXT,
  data_content TEXT,
  image_url    TEXT,
  style_width  REAL,
  style_height REAL,
  created_at   TEXT    NOT NULL,
  updated_at   TEXT    NOT NULL,
  deleted_at   TEXT
);
CREATE INDEX IF NOT EXISTS idx_nodes_graph_id   ON nodes(graph_id);
CREATE INDEX IF NOT EXISTS idx_nodes_updated_at ON nodes(updated_at);
CREATE INDEX IF NOT EXISTS idx_nodes_deleted_at ON nodes(deleted_at);

CREATE TABLE IF NOT EXISTS edges(
  id             TEXT    PRIMARY KEY NOT NULL,
  graph_id       INTEGER NOT NULL REFERENCES graphs(id) ON DELETE CASCADE,
  source_node_id TEXT    NOT NULL REFERENCES nodes(id) ON DELETE CASCADE,
  target_node_id TEXT    NOT NULL REFERENCES nodes(id) ON DELETE CASCADE,
  source_handle  TEXT,
  target_handle  TEXT,
  marker_start   TEXT,
  marker_end     TEXT,
  created_at     TEXT    NOT NULL,
  updated_at     TEXT    NOT NULL,
  deleted_at     TEXT
);
CREATE INDEX IF NOT EXISTS idx_edges_graph_id   ON edges(graph_id);
CREATE INDEX IF NOT EXISTS idx_edges_source     ON edges(source_node_id);
CREATE INDEX IF NOT EXISTS idx_edges_target     ON edges(target_node_id);
CREATE INDEX IF NOT EXISTS idx_edges_updated_at ON edges(updated_at);
CREATE INDEX IF NOT EXISTS idx_edges_deleted_at ON edges(deleted_at);

/*----------------------------------------------------------------
  4. Notes
----------------------------------------------------------------*/
CREATE TABLE IF NOT EXISTS notes(
  id         INTEGER PRIMARY KEY AUTOINCREMENT,
  user_id    INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  title      TEXT,
  content    TEXT    NOT NULL,
  tags       TEXT,
  image_url  TEXT,
  created_at TEXT    NOT NULL,
  updated_at TEXT    NOT NULL,
  deleted_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_notes_user_id    ON notes(user_id);
CREATE INDEX IF NOT EXISTS idx_notes_updated_at ON notes(updated_at);
CREATE INDEX IF NOT EXISTS idx_notes_deleted_at ON notes(deleted_at);

/*----------------------------------------------------------------
  5. Checklists and items
----------------------------------------------------------------*/
CREATE TABLE IF NOT EXISTS checklists(
  id         INTEGER PRIMARY KEY AUTOINCREMENT,
  user_id    INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
  title      TEXT    NOT NULL,
  created_at TEXT    NOT NULL,
  updated_at TEXT    NOT NULL,
  deleted_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_checklists_user_id    ON checklists(user_id);
CREATE INDEX IF NOT EXISTS idx_checklists_updated_at ON checklists(updated_at);
CREATE INDEX IF NOT EXISTS idx_checklists_deleted_at ON checklists(deleted_at);

CREATE TABLE IF NOT EXISTS checklist_items(
  id             INTEGER PRIMARY KEY AUTOINCREMENT,
  checklist_id   INTEGER NOT NULL REFERENCES checklists(id) ON DELETE CASCADE,
  parent_item_id INTEGER REFERENCES checklist_items(id) ON DELETE CASCADE,
  content        TEXT    NOT NULL,
  is_completed   INTEGER NOT NULL DEFAULT 0,
  "order"        INTEGER NOT NULL,
  image_url      TEXT,
  created_at     TEXT    NOT NULL,
  updated_at     TEXT    NOT NULL,
  deleted_at     TEXT
);
CREATE INDEX IF NOT EXISTS idx_checklist_items_checklist_id ON checklist_items(checklist_id);
CREATE INDEX IF NOT EXISTS idx_checklist_items_parent       ON checklist_items(parent_item_id);
CREATE INDEX IF NOT EXISTS idx_checklist_items_updated_at   ON checklist_items(updated_at);
CREATE INDEX IF NOT EXISTS idx_checklist_items_deleted_at   ON checklist_items(deleted_at);

-- Final step: Update schema version to 1
UPDATE db_schema_version SET version = 1 WHERE schema_name = 'pkm_schema' AND version = 0;
    """

    def __init__(self, db_path: Union[str, Path], clock: Optional[SyncClock] = None):
        if isinstance(db_path, Path):
            self.is_memory_db = False
            self.db_path = db_path.resolve()
        else:
            self.is_memory_db = (db_path == ':memory:')
            self.db_path = Path(db_path).resolve() if not self.is_memory_db else Path(":memory:")
        self.db_path_str = str(self.db_path) if not self.is_memory_db else ':memory:'
        self.clock = clock or default_clock

        if not self.is_memory_db:
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise PKMDatabaseError(f"Failed to create database directory {self.db_path.parent}: {e}")

        logger.info(f"Initializing PKMDatabase for path: {self.db_path_str}")
        self._local = threading.local()
        # Every connection opened for any thread, so shutdown can close them all
        self._connections: Set[sqlite3.Connection] = set()
        self._connections_lock = threading.Lock()
        try:
            self._initialize_schema()
            self._seed_clock()
            logger.debug(f"PKMDatabase initialization completed successfully for {self.db_path_str}")
        except (PKMDatabaseError, sqlite3.Error) as e:
            logger.critical(f"FATAL: DB Initialization failed for {self.db_path_str}: {e}", exc_info=True)
            self.close_connection()
            if isinstance(e, SchemaError):
                raise
            raise PKMDatabaseError(f"Database initialization failed: {e}") from e

    # --- Connection Management ---
    def _get_thread_connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, 'conn', None)
        if conn:
            try:
                conn.execute("SELECT 1")  # Check if connection is still alive
            except (sqlite3.ProgrammingError, sqlite3.OperationalError):
                logger.warning(
                    f"Thread-local connection for {self.db_path_str} was closed or became unusable. Reopening.")
                try:
                    conn.close()
                except sqlite3.Error:
                    pass
                with self._connections_lock:
                    self._connections.discard(conn)
                conn = None

        if not conn:
            try:
                # isolation_level=None: transactions are opened explicitly by TransactionContextManager
                conn = sqlite3.connect(
                    self.db_path_str,
                    check_same_thread=False,
                    timeout=15,
                    isolation_level=None,
                )
                conn.row_factory = sqlite3.Row
                if not self.is_memory_db:
                    conn.execute("PRAGMA journal_mode=WAL;")
                conn.execute("PRAGMA foreign_keys = ON;")
                self._local.conn = conn
                with self._connections_lock:
                    self._connections.add(conn)
                logger.debug(f"Opened SQLite connection to {self.db_path_str} for thread {threading.get_ident()}")
            except sqlite3.Error as e:
                logger.error(f"Failed to connect to database {self.db_path_str}: {e}", exc_info=True)
                self._local.conn = None
                raise PKMDatabaseError(f"Failed to connect to database '{self.db_path_str}': {e}") from e
        return self._local.conn

    def get_connection(self) -> sqlite3.Connection:
        return self._get_thread_connection()

    def _close_tracked(self, conn: sqlite3.Connection) -> None:
        with self._connections_lock:
            self._connections.discard(conn)
        try:
            if conn.in_transaction:
                logger.warning(
                    f"Connection to {self.db_path_str} is in an uncommitted transaction during close. Rolling back.")
                conn.rollback()
            if not self.is_memory_db:
                mode_row = conn.execute("PRAGMA journal_mode;").fetchone()
                if mode_row and mode_row[0].lower() == 'wal':
                    try:
                        conn.execute("PRAGMA wal_checkpoint(TRUNCATE);")
                    except sqlite3.Error as cp_err:
                        logger.warning(f"WAL checkpoint failed for {self.db_path_str}: {cp_err}")
            conn.close()
        except sqlite3.Error as e:
            logger.warning(f"Error during SQLite connection close for {self.db_path_str}: {e}")

    def close_connection(self):
        """Closes the calling thread's connection."""
        conn = getattr(self._local, 'conn', None)
        if conn is not None:
            try:
                self._close_tracked(conn)
                logger.debug(f"Closed connection for thread {threading.get_ident()} to {self.db_path_str}.")
            finally:
                self._local.conn = None

    def close_all_connections(self) -> int:
        """
        Closes every connection this instance opened, whichever thread opened it.
        For shutdown: a thread still using its connection gets a fresh one on
        its next call. Returns the number of connections closed.
        """
        with self._connections_lock:
            connections = list(self._connections)
        for conn in connections:
            self._close_tracked(conn)
        self._local.conn = None
        logger.debug(f"Closed {len(connections)} connection(s) to {self.db_path_str}.")
        return len(connections)

    # --- Query Execution ---
    def execute_query(self, query: str, params: Optional[Union[tuple, list, Dict[str, Any]]] = None, *,
                      script: bool = False) -> sqlite3.Cursor:
        conn = self.get_connection()
        try:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"Executing SQL (script={script}): {query[:300]}... Params: {str(params)[:200]}...")
            if script:
                return conn.executescript(query)
            return conn.execute(query, params or ())
        except sqlite3.IntegrityError as e:
            logger.warning(f"Integrity constraint violation: {query[:300]}... Error: {e}")
            if "unique constraint failed" in str(e).lower():
                raise ConflictError(message=f"Unique constraint violation: {e}") from e
            raise PKMDatabaseError(f"Database constraint violation: {e}") from e
        except sqlite3.Error as e:
            logger.error(f"Query execution failed: {query[:300]}... Error: {e}", exc_info=True)
            raise PKMDatabaseError(f"Query execution failed: {e}") from e

    # --- Transaction Context ---
    def transaction(self) -> 'TransactionContextManager':
        return TransactionContextManager(self)

    # --- Timestamps ---
    def now_ms(self) -> int:
        """
        Next stamp from the sync clock, in ms.

        Inside a transaction the stamp is also ordered against every other
        process using the same file: the shared high-water mark in `sync_clock`
        is read and advanced while the write lock is held.
        """
        conn = getattr(self._local, 'conn', None)
        if conn is None or not conn.in_transaction:
            return self.clock.now_ms()
        row = conn.execute("SELECT last_ms FROM sync_clock WHERE id = 1").fetchone()
        if row is not None:
            self.clock.observe(row[0])
        stamp = self.clock.now_ms()
        conn.execute("UPDATE sync_clock SET last_ms = ? WHERE id = 1 AND last_ms < ?", (stamp, stamp))
        return stamp

    def now_iso(self) -> str:
        """Next timestamp from the sync clock, in stored format."""
        return ms_to_iso(self.now_ms())

    def _seed_clock(self):
        parts = []
        for table in SYNCABLE_TABLES:
            parts.append(f"SELECT MAX(updated_at) AS ts FROM {table}")
            parts.append(f"SELECT MAX(deleted_at) AS ts FROM {table}")
        conn = self.get_connection()
        clock_row = conn.execute("SELECT last_ms FROM sync_clock WHERE id = 1").fetchone()
        if clock_row and clock_row[0]:
            self.clock.observe(clock_row[0])
        row = conn.execute(
            f"SELECT MAX(ts) AS latest FROM ({' UNION ALL '.join(parts)})").fetchone()
        if row and row['latest']:
            self.clock.observe(iso_to_ms(row['latest']))

    # --- Schema Initialization ---
    def _get_db_version(self, conn: sqlite3.Connection) -> int:
        try:
            cursor = conn.execute("SELECT version FROM db_schema_version WHERE schema_name = ? LIMIT 1",
                                  (self._SCHEMA_NAME,))
            result = cursor.fetchone()
            return result['version'] if result else 0
        except sqlite3.Error as e:
            if "no such table" in str(e).lower() and "db_schema_version" in str(e).lower():
                return 0
            logger.error(f"Could not determine database schema version for '{self._SCHEMA_NAME}': {e}", exc_info=True)
            raise SchemaError(f"Could not determine schema version for '{self._SCHEMA_NAME}': {e}") from e

    def _apply_schema_v1(self, conn: sqlite3.Connection):
        logger.info(f"Applying schema Version 1 for '{self._SCHEMA_NAME}' to DB: {self.db_path_str}...")
        try:
            conn.executescript(self._FULL_SCHEMA_SQL_V1)
            final_version = self._get_db_version(conn)
            if final_version != 1:
                raise SchemaError(
                    f"[{self._SCHEMA_NAME} V1] Schema version update check failed. Expected 1, got: {final_version}")
            logger.info(f"[{self._SCHEMA_NAME} V1] Schema applied and version confirmed for DB: {self.db_path_str}.")
        except sqlite3.Error as e:
            logger.error(f"[{self._SCHEMA_NAME} V1] Schema application failed: {e}", exc_info=True)
            raise SchemaError(f"DB schema V1 setup failed for '{self._SCHEMA_NAME}': {e}") from e

    def _initialize_schema(self):
        conn = self.get_connection()
        current_db_version = self._get_db_version(conn)
        target_version = self._CURRENT_SCHEMA_VERSION
        logger.info(
            f"Checking DB schema '{self._SCHEMA_NAME}'. Current version: {current_db_version}. Code supports: {target_version}")

        if current_db_version == target_version:
            logger.debug(f"Database schema '{self._SCHEMA_NAME}' is up to date.")
            return
        if current_db_version > target_version:
            raise SchemaError(
                f"Database schema '{self._SCHEMA_NAME}' version ({current_db_version}) is newer than supported by code ({target_version}). Aborting.")
        self._apply_schema_v1(conn)

    # --- Generic Row Helpers (used inside an open transaction) ---
    @staticmethod
    def insert_record(conn: sqlite3.Connection, table: str, data: Dict[str, Any]) -> int:
        """Inserts one row and returns its rowid. Unique violations become ConflictError."""
        columns = ", ".join(f'"{col}"' for col in data)
        placeholders = ", ".join("?" for _ in data)
        try:
            cursor = conn.execute(f"INSERT INTO {table} ({columns}) VALUES ({placeholders})", tuple(data.values()))
        except sqlite3.IntegrityError as e:
            if "unique constraint failed" in str(e).lower():
                raise ConflictError(f"A record with this identifier already exists in {table}.",
                                    entity=table, entity_id=data.get("id")) from e
            raise PKMDatabaseError(f"Database constraint violation in {table}: {e}") from e
        return cursor.lastrowid

    @staticmethod
    def update_record(conn: sqlite3.Connection, table: str, pk_value: Any, data: Dict[str, Any],
                      pk_column: str = "id") -> int:
        """Updates one live row. Returns the number of rows changed (0 or 1)."""
        assignments = ", ".join(f'"{col}" = ?' for col in data)
        params = tuple(data.values()) + (pk_value,)
        try:
            cursor = conn.execute(
                f"UPDATE {table} SET {assignments} WHERE {pk_column} = ? AND deleted_at IS NULL", params)
        except sqlite3.IntegrityError as e:
            raise PKMDatabaseError(f"Database constraint violation in {table}: {e}") from e
        return cursor.rowcount

    @staticmethod
    def fetch_record(conn: sqlite3.Connection, table: str, pk_value: Any,
                     pk_column: str = "id") -> Optional[Dict[str, Any]]:
        """Fetches one live row as a dict, or None."""
        row = conn.execute(
            f"SELECT * FROM {table} WHERE {pk_column} = ? AND deleted_at IS NULL", (pk_value,)).fetchone()
        return dict(row) if row else None

    @staticmethod
    def rows_to_dicts(rows: List[sqlite3.Row]) -> List[Dict[str, Any]]:
        return [dict(row) for row in rows]


class TransactionContextManager:
    """
    Opens ``BEGIN IMMEDIATE`` on the outermost block, so the write lock is held
    from the first statement. Timestamps issued inside the block are therefore
    committed before any later transaction can issue its own.
    """

    def __init__(self, db_instance: PKMDatabase):
        self.db = db_instance
        self.conn: Optional[sqlite3.Connection] = None
        self.is_outermost_transaction = False

    def __enter__(self) -> sqlite3.Connection:
        self.conn = self.db.get_connection()
        if not self.conn.in_transaction:
            try:
                self.conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise PKMDatabaseError(f"Could not begin transaction: {e}") from e
            self.is_outermost_transaction = True
            logger.debug(f"Transaction started (outermost) on thread {threading.get_ident()}.")
        else:
            logger.debug(f"Entering nested transaction block on thread {threading.get_ident()}.")
        return self.conn

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self.conn:
            logger.error("Transaction context: Connection is None in __exit__.")
            return False

        if self.is_outermost_transaction:
            if exc_type:
                logger.error(
                    f"Transaction (outermost) failed, rolling back on thread {threading.get_ident()}: {exc_type.__name__} - {exc_val}")
                try:
                    self.conn.rollback()
                except sqlite3.Error as rb_err:
                    logger.critical(f"Rollback FAILED on thread {threading.get_ident()}: {rb_err}", exc_info=True)
            else:
                try:
                    self.conn.commit()
                    logger.debug(f"Transaction (outermost) committed successfully on thread {threading.get_ident()}.")
                except sqlite3.Error as commit_err:
                    logger.error(f"Commit FAILED on thread {threading.get_ident()}, attempting rollback: {commit_err}",
                                 exc_info=True)
                    try:
                        self.conn.rollback()
                    except sqlite3.Error as rb_err_after_commit_fail:
                        logger.critical(
                            f"Rollback after failed commit also FAILED on thread {threading.get_ident()}: {rb_err_after_commit_fail}",
                            exc_info=True)
                    raise PKMDatabaseError(f"Commit failed: {commit_err}") from commit_err
        return False  # Propagate any exception

#
# End of PKM_DB.py
########################################################################################################################
