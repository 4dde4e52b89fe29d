"""Standalone scheduler process: python -m mindwell.jobs"""
from apscheduler.schedulers.blocking import BlockingScheduler

from mindwell.core.logging_config import configure_logging
from mindwell.jobs.scheduler import start_scheduler
from mindwell.services.events import event_bus
from mindwell.services.listeners import register_listeners


def main() -> None:
    configure_logging()
    register_listeners(event_bus)
    try:
        start_scheduler(BlockingScheduler(timezone="UTC"))
    except (KeyboardInterrupt, SystemExit):
        pass


if __name__ == "__main__":
    main()
