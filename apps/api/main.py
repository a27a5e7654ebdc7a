import logging

from apps.api.app_factory import create_app
from apps.common.settings import load_settings
from services.engine import EngineConfig, WorkflowEngine
from services.storage.store import LocalJsonStore

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

SETTINGS = load_settings()

engine = WorkflowEngine(
    store=LocalJsonStore(root_dir=str(SETTINGS.store_dir)),
    config=EngineConfig.from_settings(SETTINGS),
)

app = create_app(engine=engine)
