# adaptive_core/errors.py

from typing import Iterable, Optional


class AdaptiveTestError(Exception):
    """Gốc của mọi lỗi trong engine thi thích ứng."""


class InvalidQuestion(AdaptiveTestError, ValueError):
    """Câu hỏi vi phạm bất biến (đáp án ngoài phạm vi, thiếu exam type...)."""

    def __init__(self, question_id: str, reason: str):
        super().__init__(f"Câu hỏi {question_id} không hợp lệ: {reason}")
        self.question_id = question_id
        self.reason = reason


class UnknownExamType(AdaptiveTestError, ValueError):
    def __init__(self, exam_type: str, known: Iterable[str]):
        known = sorted(known)
        super().__init__(f"Exam type '{exam_type}' không được hỗ trợ (có: {', '.join(known)})")
        self.exam_type = exam_type
        self.known = known


class NoQuestionsAvailable(AdaptiveTestError):
    """Không có câu nào để bắt đầu phiên thi."""

    def __init__(self, exam_type: str, subject_ids: Iterable[str] = ()):
        subject_ids = sorted(subject_ids)
        super().__init__(
            f"Không có câu hỏi cho exam_type={exam_type}, subjects={subject_ids or 'tất cả'}"
        )
        self.exam_type = exam_type
        self.subject_ids = subject_ids


class DuplicateAnswer(AdaptiveTestError):
    """Một câu hỏi được nộp đáp án hai lần trong cùng phiên."""

    def __init__(self, session_id: str, question_id: str):
        super().__init__(f"Câu {question_id} đã được trả lời trong phiên {session_id}")
        self.session_id = session_id
        self.question_id = question_id


class InvalidAnswerIndex(AdaptiveTestError, ValueError):
    def __init__(self, question_id: str, chosen_index: int, n_options: int):
        super().__init__(
            f"Đáp án {chosen_index} nằm ngoài phạm vi [0, {n_options - 1}] của câu {question_id}"
        )
        self.question_id = question_id
        self.chosen_index = chosen_index
        self.n_options = n_options


class UnexpectedQuestion(AdaptiveTestError):
    """Đáp án gửi cho một câu không phải câu đang hiển thị."""

    def __init__(self, session_id: str, expected_id: Optional[str], got_id: str):
        super().__init__(
            f"Phiên {session_id} đang chờ câu {expected_id}, nhận được câu {got_id}"
        )
        self.session_id = session_id
        self.expected_id = expected_id
        self.got_id = got_id


class SessionStateError(AdaptiveTestError):
    """Thao tác không hợp lệ với trạng thái hiện tại của phiên."""

    def __init__(self, session_id: str, status: str, action: str):
        super().__init__(f"Không thể '{action}' khi phiên {session_id} đang ở trạng thái {status}")
        self.session_id = session_id
        self.status = status
        self.action = action


class SessionNotFound(AdaptiveTestError, KeyError):
    def __init__(self, session_id: str):
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"Không tìm thấy phiên {self.session_id}"


class ProfilePersistenceFailure(AdaptiveTestError):
    """Ghi profile thất bại sau khi đã hết lượt retry."""

    def __init__(self, user_id: str, attempts: int, last_exception: Optional[BaseException]):
        super().__init__(
            f"Không lưu được profile của user {user_id} sau {attempts} lần thử: {last_exception}"
        )
        self.user_id = user_id
        self.attempts = attempts
        self.last_exception = last_exception
