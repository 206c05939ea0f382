import os
import logging

from dotenv import load_dotenv

from adaptive_core.calibration import calibrate_bank
from adaptive_core.stores import load_question_file, save_question_file

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
load_dotenv(dotenv_path=os.path.join(BASE_DIR, ".env"))
logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s - %(message)s")

logger = logging.getLogger(__name__)

FILE_NAME = "questions.json"


def find_bank_files(base_dir: str):
    if os.path.isfile(base_dir):
        return [base_dir]
    paths = []
    for root, _, files in os.walk(base_dir):
        if FILE_NAME in files:
            paths.append(os.path.join(root, FILE_NAME))
    return sorted(paths)


def recalibrate(base_dir: str = "data", min_attempts: int = 20, relabel: bool = False, dry_run: bool = False) -> int:
    """Hiệu chỉnh b cho mọi file questions.json trong base_dir; trả về tổng số câu đã đổi."""
    paths = find_bank_files(base_dir)
    if not paths:
        logger.warning(f"⚠️ Không tìm thấy {FILE_NAME} nào trong {base_dir}")
        return 0

    total = 0
    for path in paths:
        questions = load_question_file(path)
        updated, changed = calibrate_bank(questions, min_attempts=min_attempts, relabel=relabel)
        total += changed
        if changed and not dry_run:
            save_question_file(path, updated)
            logger.info(f"✅ Đã ghi {path} ({changed} câu thay đổi)")
    return total


def main():
    print("\n🧮 HIỆU CHỈNH ĐỘ KHÓ NGÂN HÀNG CÂU HỎI\n")
    base_dir = input("👉 Thư mục / file ngân hàng (Enter = data): ").strip() or "data"
    raw = input("👉 Số lượt làm tối thiểu (Enter = 20): ").strip()
    min_attempts = int(raw) if raw.isdigit() else 20
    relabel = input("👉 Cập nhật nhãn easy/moderate/difficult? (y/N): ").strip().lower() == "y"
    dry_run = input("👉 Chỉ xem trước, không ghi file? (y/N): ").strip().lower() == "y"

    total = recalibrate(base_dir, min_attempts=min_attempts, relabel=relabel, dry_run=dry_run)
    print(f"\n🏁 Hoàn tất: {total} câu hỏi được hiệu chỉnh{' (chưa ghi)' if dry_run else ''}.")


if __name__ == "__main__":
    main()
