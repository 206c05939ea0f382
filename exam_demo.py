import os
import sys
import pathlib
from dotenv import load_dotenv

ROOT = pathlib.Path(__file__).parent
ENV_FILE = ROOT / ".env"

load_dotenv(ENV_FILE)

RESET = "\033[0m"
BOLD = "\033[1m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
CYAN = "\033[96m"
RED = "\033[91m"

def check_env():
    # AI là tùy chọn: thiếu key vẫn chạy được với gợi ý cục bộ
    if not os.getenv("OPENAI_API_KEY"):
        print(f"{YELLOW}Chua thiet lap OPENAI_API_KEY, goi y hoc tap se dung ban cuc bo.{RESET}")
    if not os.getenv("GOOGLE_API_KEY"):
        print(f"{YELLOW}Chua thiet lap GOOGLE_API_KEY, bo qua giai thich dap an bang Gemini.{RESET}")

def main():
    check_env()
    print(f"\n{BOLD}{CYAN}IOE / CEE ADAPTIVE PREP - CLI DEMO{RESET}")
    print("-" * 40)
    print("1. Lam bai thi thich ung (Adaptive Test)")
    print("2. Hieu chinh do kho ngan hang cau hoi (Calibration)")
    print("0. Thoat")
    print("-" * 40)
    choice = input("Chon chuc nang (0-2): ").strip()
    if choice == "1":
        from cli.run_adaptive_test import run_adaptive_test
        run_adaptive_test()
    elif choice == "2":
        from cli.calibrate_bank import main as run_calibration
        run_calibration()
    elif choice == "0":
        print(f"{GREEN}Tam biet!{RESET}")
        sys.exit(0)
    else:
        print(f"{YELLOW}Lua chon khong hop le, vui long nhap 0-2.{RESET}")

if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print(f"\n{RED}Da dung chuong trinh.{RESET}")
