"""
SQLite数据库存储实现
左右值、深度保存在节点表中，每次写操作在一个事务内完成
"""
import re
import sqlite3
import threading
import json
from typing import Dict, List, Any, Optional
from datetime import datetime
from pathlib import Path
from contextlib import contextmanager

from .adapter import NestedSetStore
from .exceptions import StorageConnectionError, StorageOperationError
from ...interfaces import INode
from ...exceptions import NodeNotFoundError

_TABLE_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
_MEMORY = ":memory:"


class SQLiteStore(NestedSetStore):
    """SQLite数据库存储实现"""

    store_type = "sqlite"

    def __init__(self, db_path: str, table: str = "nodes", **kwargs):
        """
        初始化SQLite存储

        Args:
            db_path: 数据库文件路径，":memory:" 使用进程内数据库
            table: 节点表名，同一个库中可以存放多棵独立的树
        """
        super().__init__(**kwargs)
        if not _TABLE_PATTERN.match(table):
            raise StorageOperationError(f"无效的表名: {table}", "INIT", self.store_type)

        self.table = table
        self._lock = threading.RLock()
        self._shared_conn: Optional[sqlite3.Connection] = None

        if db_path == _MEMORY:
            self.db_path = db_path
            self._shared_conn = self._connect()
        else:
            self.db_path = Path(db_path)
            # 确保目录存在
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                timeout=30.0
            )
        except sqlite3.Error as e:
            raise StorageConnectionError(str(e), self.store_type) from e
        conn.row_factory = sqlite3.Row  # 返回字典式行
        return conn

    @contextmanager
    def _get_connection(self, operation: str = "QUERY"):
        """获取数据库连接（上下文管理器），退出时提交，异常时回滚

        sqlite3 的错误在回滚后包装为 StorageOperationError
        """
        conn = self._shared_conn or self._connect()

        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageOperationError(str(e), operation, self.store_type) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            if conn is not self._shared_conn:
                conn.close()

    def _init_database(self):
        """初始化数据库表结构"""
        with self._get_connection("INIT") as conn:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    node_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    parent_id INTEGER,
                    lft INTEGER NOT NULL DEFAULT 0,
                    rgt INTEGER NOT NULL DEFAULT 0,
                    depth INTEGER NOT NULL DEFAULT 0,
                    position INTEGER NOT NULL DEFAULT 0,
                    attributes TEXT,  -- JSON字符串
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    deleted_at TEXT
                )
            """)

            # 创建索引
            conn.execute(f"CREATE INDEX IF NOT EXISTS idx_{self.table}_parent ON {self.table}(parent_id)")
            conn.execute(f"CREATE INDEX IF NOT EXISTS idx_{self.table}_bounds ON {self.table}(lft, rgt)")

    # ========== 写操作 ==========

    def insert(self, attributes: Dict[str, Any]) -> INode:
        """新建根节点"""
        with self._lock:
            now = datetime.now().isoformat()
            with self._get_connection("INSERT") as conn:
                cursor = conn.execute(f"""
                    INSERT INTO {self.table}
                    (parent_id, position, attributes, created_at, updated_at)
                    VALUES (NULL, ?, ?, ?, ?)
                """, (
                    self._next_position(conn),
                    self._dump(attributes),
                    now,
                    now
                ))
                node_id = cursor.lastrowid
                self._rebuild(conn)
                node = self._load(conn, node_id)

            self._fire('saved', node)
            return node

    def save(self, node: INode, attributes: Dict[str, Any]) -> INode:
        """更新业务属性"""
        with self._lock:
            with self._get_connection("SAVE") as conn:
                current = self._load_live(conn, node.node_id)
                merged = dict(current.attributes)
                merged.update(attributes)
                conn.execute(f"""
                    UPDATE {self.table} SET attributes = ?, updated_at = ?
                    WHERE node_id = ?
                """, (self._dump(merged), datetime.now().isoformat(), node.node_id))
                saved = self._load(conn, node.node_id)

            self._fire('saved', saved)
            return saved

    def touch(self, node: INode) -> INode:
        """只更新时间戳，用于触发saved事件"""
        with self._lock:
            with self._get_connection("TOUCH") as conn:
                self._load_live(conn, node.node_id)
                conn.execute(
                    f"UPDATE {self.table} SET updated_at = ? WHERE node_id = ?",
                    (datetime.now().isoformat(), node.node_id)
                )
                touched = self._load(conn, node.node_id)

            self._fire('saved', touched)
            return touched

    def move(self, node: INode, parent: Optional[INode]) -> INode:
        """移动节点，成为新父节点的最后一个子节点（或最后一个根节点）"""
        with self._lock:
            with self._get_connection("MOVE") as conn:
                current = self._load_live(conn, node.node_id)
                target = self._load_live(conn, parent.node_id) if parent is not None else None
                self.check_move(current, target)

                conn.execute(f"""
                    UPDATE {self.table} SET parent_id = ?, position = ?, updated_at = ?
                    WHERE node_id = ?
                """, (
                    target.node_id if target else None,
                    self._next_position(conn),
                    datetime.now().isoformat(),
                    current.node_id
                ))
                self._rebuild(conn)
                moved = self._load(conn, current.node_id)

            self._fire('moved', moved)
            return moved

    def delete(self, node: INode, soft: bool = False) -> bool:
        """删除节点及其子树"""
        with self._lock:
            with self._get_connection("DELETE") as conn:
                row = conn.execute(
                    f"SELECT * FROM {self.table} WHERE node_id = ? AND deleted_at IS NULL",
                    (node.node_id,)
                ).fetchone()
                if not row:
                    return False
                removed = self._row_to_node(row)

                if soft:
                    now = datetime.now()
                    conn.execute(f"""
                        UPDATE {self.table} SET deleted_at = ?
                        WHERE lft >= ? AND rgt <= ? AND deleted_at IS NULL
                    """, (now.isoformat(), removed.lft, removed.rgt))
                    removed.deleted_at = now
                else:
                    conn.execute(f"""
                        DELETE FROM {self.table} WHERE lft >= ? AND rgt <= ?
                    """, (removed.lft, removed.rgt))

            self._fire('deleted', removed)
            return True

    # ========== 查询 ==========

    def find(self, node_id: Any) -> Optional[INode]:
        with self._lock:
            with self._get_connection("FIND") as conn:
                row = conn.execute(
                    f"SELECT * FROM {self.table} WHERE node_id = ? AND deleted_at IS NULL",
                    (node_id,)
                ).fetchone()
                return self._row_to_node(row) if row else None

    def query_parent(self, node: INode) -> Optional[INode]:
        with self._lock:
            with self._get_connection("QUERY_PARENT") as conn:
                current = self._bounds_of(conn, node)
            if current['parent_id'] is None:
                return None
            return self.find(current['parent_id'])

    def query_children(self, node: INode) -> List[INode]:
        return self._select("parent_id = ?", (node.node_id,))

    def query_ancestors(self, node: INode, include_self: bool = True) -> List[INode]:
        with self._lock:
            with self._get_connection("QUERY_ANCESTORS") as conn:
                current = self._bounds_of(conn, node)
            if include_self:
                return self._select("lft <= ? AND rgt >= ?", (current['lft'], current['rgt']))
            return self._select("lft < ? AND rgt > ?", (current['lft'], current['rgt']))

    def query_descendants(self, node: INode, include_self: bool = True) -> List[INode]:
        with self._lock:
            with self._get_connection("QUERY_DESCENDANTS") as conn:
                current = self._bounds_of(conn, node)
            if include_self:
                return self._select("lft >= ? AND rgt <= ?", (current['lft'], current['rgt']))
            return self._select("lft > ? AND rgt < ?", (current['lft'], current['rgt']))

    def query_roots(self) -> List[INode]:
        return self._select("parent_id IS NULL", ())

    def query_trunks(self, node: Optional[INode] = None) -> List[INode]:
        where = f"t.parent_id IS NOT NULL AND EXISTS ({self._live_child_sql()})"
        return self._select_within(where, node)

    def query_leaves(self, node: Optional[INode] = None) -> List[INode]:
        where = f"NOT EXISTS ({self._live_child_sql()})"
        return self._select_within(where, node)

    def count(self, include_deleted: bool = False) -> int:
        with self._lock:
            with self._get_connection("COUNT") as conn:
                query = f"SELECT COUNT(*) FROM {self.table}"
                if not include_deleted:
                    query += " WHERE deleted_at IS NULL"
                return conn.execute(query).fetchone()[0]

    def clear(self):
        """清空所有数据（测试用）"""
        with self._lock:
            with self._get_connection("CLEAR") as conn:
                conn.execute(f"DELETE FROM {self.table}")
                conn.execute("DELETE FROM sqlite_sequence WHERE name = ?", (self.table,))

    def close(self):
        """关闭数据库连接"""
        # 文件库的连接按操作打开和关闭，只有内存库持有长连接
        if self._shared_conn is not None:
            self._shared_conn.close()
            self._shared_conn = None

    # ========== 内部方法 ==========

    def _live_child_sql(self) -> str:
        return (f"SELECT 1 FROM {self.table} c "
                f"WHERE c.parent_id = t.node_id AND c.deleted_at IS NULL")

    def _select_within(self, where: str, node: Optional[INode]) -> List[INode]:
        params = ()
        if node is not None:
            with self._lock:
                with self._get_connection("SELECT") as conn:
                    current = self._bounds_of(conn, node)
            where += " AND t.lft > ? AND t.rgt < ?"
            params = (current['lft'], current['rgt'])
        return self._select(where, params)

    def _select(self, where: str, params) -> List[INode]:
        with self._lock:
            with self._get_connection("SELECT") as conn:
                cursor = conn.execute(
                    f"SELECT t.* FROM {self.table} t "
                    f"WHERE t.deleted_at IS NULL AND {where} ORDER BY t.lft",
                    params
                )
                return [self._row_to_node(row) for row in cursor.fetchall()]

    def _bounds_of(self, conn, node: INode) -> Dict[str, Any]:
        """优先使用库中的最新左右值；已硬删除的节点退回到快照中的值"""
        row = conn.execute(
            f"SELECT node_id, parent_id, lft, rgt FROM {self.table} WHERE node_id = ?",
            (node.node_id,)
        ).fetchone()
        if row:
            return dict(row)
        return {
            'node_id': node.node_id,
            'parent_id': node.parent_id,
            'lft': node.lft,
            'rgt': node.rgt,
        }

    def _next_position(self, conn) -> int:
        return conn.execute(
            f"SELECT COALESCE(MAX(position), 0) + 1 FROM {self.table}"
        ).fetchone()[0]

    def _rebuild(self, conn) -> None:
        """在当前事务内重算所有节点的左右值和深度"""
        rows = conn.execute(
            f"SELECT node_id, parent_id, position FROM {self.table}"
        ).fetchall()
        bounds = self.compute_bounds({
            row['node_id']: (row['parent_id'], row['position']) for row in rows
        })
        conn.executemany(
            f"UPDATE {self.table} SET lft = ?, rgt = ?, depth = ? WHERE node_id = ?",
            [(lft, rgt, depth, node_id) for node_id, (lft, rgt, depth) in bounds.items()]
        )

    def _load(self, conn, node_id: Any) -> INode:
        row = conn.execute(
            f"SELECT * FROM {self.table} WHERE node_id = ?", (node_id,)
        ).fetchone()
        return self._row_to_node(row)

    def _load_live(self, conn, node_id: Any) -> INode:
        row = conn.execute(
            f"SELECT * FROM {self.table} WHERE node_id = ? AND deleted_at IS NULL",
            (node_id,)
        ).fetchone()
        if not row:
            raise NodeNotFoundError(node_id)
        return self._row_to_node(row)

    def _row_to_node(self, row) -> INode:
        data = dict(row)

        # 解析attributes
        try:
            data['attributes'] = json.loads(data['attributes']) if data.get('attributes') else {}
        except json.JSONDecodeError:
            data['attributes'] = {}

        return self._to_node(data)

    @staticmethod
    def _dump(attributes: Dict[str, Any]) -> str:
        return json.dumps(attributes, ensure_ascii=False, default=str)

    def __str__(self):
        return f"SQLiteStore(db={self.db_path}, table={self.table}, nodes={self.count()})"
