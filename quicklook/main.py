from prometheus_fastapi_instrumentator import Instrumentator

from quicklook.core.logging import setup_logging
from . import app as ledger_app

setup_logging()
app = ledger_app
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app)


@app.get("/health")
async def health() -> dict[str, bool]:
    return {"ok": True}
