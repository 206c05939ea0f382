# adaptive_core/stores.py

"""
Các cộng tác viên lưu trữ của engine:

- QuestionRepository: tra cứu câu hỏi theo môn + exam type (chỉ đọc)
- ProfileStore: đọc / ghi đè nguyên khối profile
- SessionStore: lưu phiên thi (bao gồm toàn bộ response)

Có bản in-memory (dùng cho test) và bản JSON / SQLite cho CLI.
"""

import os
import json
import logging
import sqlite3
from datetime import datetime
from typing import AbstractSet, Dict, Iterable, List, Optional, Protocol

from .errors import SessionNotFound
from .schema import Profile, Question, Session, SessionStatus

logger = logging.getLogger(__name__)


class QuestionRepository(Protocol):
    def find_questions(self, subject_ids: AbstractSet[str], exam_type: str) -> List[Question]:
        ...


class ProfileStore(Protocol):
    def get_profile(self, user_id: str) -> Profile:
        ...

    def save_profile(self, profile: Profile) -> None:
        ...


class SessionStore(Protocol):
    def save_session(self, session: Session) -> None:
        ...

    def get_session(self, session_id: str) -> Session:
        ...

    def list_sessions(self, user_id: str) -> List[Session]:
        ...


def _filter_questions(questions: Iterable[Question], subject_ids: AbstractSet[str], exam_type: str) -> List[Question]:
    found = [
        q for q in questions
        if q.applies_to(exam_type) and (not subject_ids or q.subject_id in subject_ids)
    ]
    return sorted(found, key=lambda q: q.id)


# ============================
# Ngân hàng câu hỏi
# ============================

class InMemoryQuestionRepository:
    def __init__(self, questions: Iterable[Question] = ()):
        self._questions: Dict[str, Question] = {q.id: q for q in questions}

    def add(self, question: Question) -> None:
        self._questions[question.id] = question

    def all(self) -> List[Question]:
        return sorted(self._questions.values(), key=lambda q: q.id)

    def find_questions(self, subject_ids: AbstractSet[str], exam_type: str) -> List[Question]:
        return _filter_questions(self._questions.values(), subject_ids, exam_type)


def load_question_file(path: str, default_subject: Optional[str] = None) -> List[Question]:
    """Đọc một file JSON (list câu hỏi). Thiếu subject_id thì lấy tên thư mục chứa file."""
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    subject = default_subject or os.path.basename(os.path.dirname(os.path.abspath(path)))
    out = []
    for item in raw:
        item = dict(item)
        item.setdefault("subject_id", subject)
        out.append(Question.from_dict(item))
    return out


class JsonQuestionRepository:
    """
    Ngân hàng câu hỏi dạng file:
        data/<subject>/questions.json
    hoặc một file questions.json duy nhất (mỗi câu tự khai báo subject_id).
    """

    FILE_NAME = "questions.json"

    def __init__(self, base_dir: str = "data"):
        self.base_dir = base_dir
        self._questions: Optional[List[Question]] = None

    def _load(self) -> List[Question]:
        if os.path.isfile(self.base_dir):
            questions = load_question_file(self.base_dir)
            logger.info(f"Loaded {len(questions)} questions from {self.base_dir}")
            return questions

        questions: List[Question] = []
        for root, _, files in os.walk(self.base_dir):
            if self.FILE_NAME not in files:
                continue
            path = os.path.join(root, self.FILE_NAME)
            loaded = load_question_file(path)
            questions.extend(loaded)
            logger.info(f"Loaded {len(loaded)} questions from {root}")
        if not questions:
            logger.warning(f"⚠️ Không tìm thấy {self.FILE_NAME} nào trong {self.base_dir}")
        return questions

    def reload(self) -> None:
        self._questions = self._load()

    def all(self) -> List[Question]:
        if self._questions is None:
            self.reload()
        return list(self._questions)

    def find_questions(self, subject_ids: AbstractSet[str], exam_type: str) -> List[Question]:
        return _filter_questions(self.all(), subject_ids, exam_type)


def save_question_file(path: str, questions: Iterable[Question]) -> None:
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump([q.to_dict() for q in questions], f, ensure_ascii=False, indent=2)


# ============================
# Profile
# ============================

class InMemoryProfileStore:
    def __init__(self):
        self._profiles: Dict[str, Profile] = {}

    def get_profile(self, user_id: str) -> Profile:
        return self._profiles.get(user_id) or Profile(user_id=user_id)

    def save_profile(self, profile: Profile) -> None:
        self._profiles[profile.user_id] = profile


class SqliteProfileStore:
    """Mỗi profile là một dòng JSON; save_profile ghi đè trong một transaction."""

    def __init__(self, db_path: str = "adaptive.db"):
        self.db_path = db_path
        os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _init_db(self):
        conn = self._connect()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS profiles (
                    user_id TEXT PRIMARY KEY,
                    updated_at TEXT,
                    data TEXT NOT NULL
                );
            """)
            conn.commit()
        finally:
            conn.close()

    def get_profile(self, user_id: str) -> Profile:
        conn = self._connect()
        try:
            row = conn.execute("SELECT data FROM profiles WHERE user_id=?", (user_id,)).fetchone()
        finally:
            conn.close()
        return Profile.from_dict(json.loads(row[0])) if row else Profile(user_id=user_id)

    def save_profile(self, profile: Profile) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    "INSERT OR REPLACE INTO profiles VALUES (?, ?, ?)",
                    (profile.user_id, datetime.now().isoformat(), json.dumps(profile.to_dict(), ensure_ascii=False)),
                )
        finally:
            conn.close()


# ============================
# Phiên thi
# ============================

class InMemorySessionStore:
    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    def save_session(self, session: Session) -> None:
        self._sessions[session.id] = session

    def get_session(self, session_id: str) -> Session:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFound(session_id) from None

    def list_sessions(self, user_id: str) -> List[Session]:
        found = [s for s in self._sessions.values() if s.user_id == user_id]
        return sorted(found, key=lambda s: s.start_time)


class SqliteSessionStore:
    def __init__(self, db_path: str = "adaptive.db"):
        self.db_path = db_path
        os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _init_db(self):
        conn = self._connect()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    status TEXT NOT NULL,
                    start_time TEXT NOT NULL,
                    data TEXT NOT NULL
                );
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions(user_id, start_time);")
            conn.commit()
        finally:
            conn.close()

    def save_session(self, session: Session) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    "INSERT OR REPLACE INTO sessions VALUES (?, ?, ?, ?, ?)",
                    (
                        session.id,
                        session.user_id,
                        session.status.value,
                        session.start_time.isoformat(),
                        json.dumps(session.to_dict(), ensure_ascii=False),
                    ),
                )
        finally:
            conn.close()

    def get_session(self, session_id: str) -> Session:
        conn = self._connect()
        try:
            row = conn.execute("SELECT data FROM sessions WHERE id=?", (session_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise SessionNotFound(session_id)
        return Session.from_dict(json.loads(row[0]))

    def list_sessions(self, user_id: str) -> List[Session]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT data FROM sessions WHERE user_id=? ORDER BY start_time", (user_id,)
            ).fetchall()
        finally:
            conn.close()
        return [Session.from_dict(json.loads(r[0])) for r in rows]


def recent_question_ids(store: SessionStore, user_id: str, last_n: int = 3) -> frozenset:
    """ID câu hỏi đã gặp trong last_n phiên đã hoàn tất gần nhất."""
    if last_n <= 0:
        return frozenset()
    done = [s for s in store.list_sessions(user_id) if s.status == SessionStatus.COMPLETED]
    ids = set()
    for s in done[-last_n:]:
        ids.update(r.question_id for r in s.responses)
    return frozenset(ids)
