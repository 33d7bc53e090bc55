from fastapi import APIRouter

VALIDATION_PREFIX = "/api/validation"


def register_routers(router: APIRouter) -> None:
    from checkout_guard.api.modules.validation.routes import router as validation_router

    router.include_router(validation_router, prefix=VALIDATION_PREFIX, tags=["Validation"])
