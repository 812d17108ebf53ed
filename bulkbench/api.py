from fastapi import FastAPI

from bulkbench.config import Settings
from bulkbench.router.handlers import install_exception_handlers
from bulkbench.router.router import BenchRouter


def create_app(settings: Settings | None = None) -> FastAPI:
    router = BenchRouter(settings=settings)
    app = FastAPI(
        title="bulkbench",
        description="ORM versus bulk persistence benchmarks",
        lifespan=router.lifespan,
    )
    install_exception_handlers(app)
    app.include_router(router)
    return app


app = create_app()
