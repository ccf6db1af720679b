"""Run the event processor worker: python -m shopnotify [--once]."""

from shopnotify.runner import main

if __name__ == "__main__":
    main()
