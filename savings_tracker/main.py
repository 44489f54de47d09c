from contextlib import asynccontextmanager

from fastapi import FastAPI

from savings_tracker.config import load_config
from savings_tracker.db import configure_logging, init_db, log_info
from savings_tracker.routes import pots, scheduler, transactions
from savings_tracker.services.notification_service import Notifier
from savings_tracker.services.scheduler_service import MaterializationScheduler


def startup(app):
    config = load_config()
    configure_logging(config.log_level, config.log_file)
    init_db(path=config.database_path, seed_users=config.seed_users)

    notifier = Notifier(config.notifications)
    app.state.config = config
    app.state.notifier = notifier
    app.state.scheduler = MaterializationScheduler(config, notifier=notifier)

    if config.scheduler.enabled:
        app.state.scheduler.start()
    else:
        log_info("Scheduler disabled by configuration")


def shutdown(app):
    app.state.scheduler.stop()


@asynccontextmanager
async def lifespan(app):
    startup(app)
    try:
        yield
    finally:
        shutdown(app)


app = FastAPI(title="Savings Tracker", lifespan=lifespan)
app.include_router(pots.router)
app.include_router(transactions.router)
app.include_router(scheduler.router)


@app.get("/health")
def health():
    return {"status": "ok", "scheduler": app.state.scheduler.running}
