"""
Main entry point for the storefront console
"""
import sys

from config import load_settings, configure_logging
from core.storefront import Storefront
from ui.console_ui import ConsoleStoreUI


def main():
    # 프로그램의 메인 진입점 - 사용자에게 메뉴 제공
    settings = load_settings()
    configure_logging(settings)

    print("=== Storefront ===")
    print("1. Console storefront")
    print("2. Load demo catalog")
    print("3. Exit")

    while True:
        choice = input("\nChoose (1-3): ").strip()

        if choice == "1":
            store = Storefront(settings)
            ConsoleStoreUI(store).run()
            break

        elif choice == "2":
            # 개발용 기본 데이터 등록
            Storefront(settings).seed_demo_data()
            print("Demo catalog loaded.")

        elif choice == "3":
            print("Bye!")
            sys.exit(0)

        else:
            print("Invalid choice, pick 1-3.")


if __name__ == "__main__":
    main()
