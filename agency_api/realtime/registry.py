# agency_api/realtime/registry.py
from __future__ import annotations

import threading
from collections import defaultdict
from typing import Dict, List, Set


class ConnectionRegistry:
    """
    Both connection indexes behind one lock:

      project_id -> {Connection}   (subscribers)
      user_id    -> {Connection}   (every open device/tab of a user)

    A key is dropped as soon as its set becomes empty, so neither map ever
    holds an empty set. Readers get list snapshots, never the live sets.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._projects: Dict[int, Set] = {}
        self._users: Dict[int, Set] = {}
        self._memberships: Dict[object, Set[int]] = defaultdict(set)

    # ---------- writes ----------

    def register(self, conn) -> None:
        with self._lock:
            self._users.setdefault(conn.user_id, set()).add(conn)
            self._memberships.setdefault(conn, set())

    def is_registered(self, conn) -> bool:
        with self._lock:
            return conn in self._users.get(conn.user_id, ())

    def subscribe(self, conn, project_id: int) -> bool:
        """Idempotent. False when `conn` has already been removed (closed meanwhile)."""
        with self._lock:
            if not self.is_registered(conn):
                return False
            self._projects.setdefault(project_id, set()).add(conn)
            self._memberships[conn].add(project_id)
            return True

    def unsubscribe(self, conn, project_id: int) -> bool:
        with self._lock:
            subs = self._projects.get(project_id)
            if not subs or conn not in subs:
                return False
            subs.discard(conn)
            if not subs:
                del self._projects[project_id]
            if conn in self._memberships:
                self._memberships[conn].discard(project_id)
            return True

    def remove_connection(self, conn) -> bool:
        with self._lock:
            project_ids = self._memberships.pop(conn, None)
            for pid in project_ids or ():
                subs = self._projects.get(pid)
                if subs is None:
                    continue
                subs.discard(conn)
                if not subs:
                    del self._projects[pid]
            conns = self._users.get(conn.user_id)
            found = bool(conns and conn in conns)
            if found:
                conns.discard(conn)
                if not conns:
                    del self._users[conn.user_id]
            return found or project_ids is not None

    # ---------- reads ----------

    def subscribers_of(self, project_id: int) -> List:
        with self._lock:
            return list(self._projects.get(project_id, ()))

    def connections_of(self, user_id: int) -> List:
        with self._lock:
            return list(self._users.get(user_id, ()))

    def projects_of(self, conn) -> Set[int]:
        with self._lock:
            return set(self._memberships.get(conn, ()))

    def all_connections(self) -> List:
        with self._lock:
            return [c for conns in self._users.values() for c in conns]

    def project_ids(self) -> Set[int]:
        with self._lock:
            return set(self._projects)

    def user_ids(self) -> Set[int]:
        with self._lock:
            return set(self._users)
