from typing import Annotated

from dishka import FromDishka
from dishka.integrations.fastapi import DishkaRoute
from fastapi import APIRouter, Header, Path, Query, Request

from checkout_guard.api.common.schema import ErrorResponse
from checkout_guard.api.modules.validation.schema import (
    CaptchaRequest,
    CaptchaResponse,
    GeolocationPurgeResponse,
    ProceedCheckoutRequest,
    ProceedCheckoutResponse,
    ValidateUserRequest,
    ValidateUserResponse,
    ValidationRecordResponse,
    ValidationSettingResponse,
    ValidationSettingUpsertRequest,
    ValidationStatsResponse,
    WidgetConfigResponse,
)
from checkout_guard.api.modules.validation.service import ValidationFacadeService

router = APIRouter(route_class=DishkaRoute)

SettingKey = Annotated[str, Path(min_length=1, max_length=128)]

BAD_REQUEST = {400: {"model": ErrorResponse}}


@router.post(
    "/validate-user",
    response_model=ValidateUserResponse,
    status_code=200,
    responses=BAD_REQUEST,
)
async def validate_user(
    request: Request,
    payload: ValidateUserRequest,
    facade: FromDishka[ValidationFacadeService],
) -> ValidateUserResponse:
    return await facade.check_request(request=request, payload=payload)


@router.post(
    "/captcha",
    response_model=CaptchaResponse,
    status_code=200,
    responses={**BAD_REQUEST, 404: {"model": ErrorResponse}},
)
async def submit_captcha(
    payload: CaptchaRequest,
    facade: FromDishka[ValidationFacadeService],
) -> CaptchaResponse:
    return await facade.submit_captcha(payload)


@router.post(
    "/proceed-checkout",
    response_model=ProceedCheckoutResponse,
    status_code=200,
)
async def proceed_checkout(
    payload: ProceedCheckoutRequest,
    facade: FromDishka[ValidationFacadeService],
) -> ProceedCheckoutResponse:
    return await facade.mark_proceed(payload)


@router.get("/stats", response_model=ValidationStatsResponse, status_code=200)
async def get_stats(
    facade: FromDishka[ValidationFacadeService],
) -> ValidationStatsResponse:
    return await facade.get_stats()


@router.get(
    "/recent",
    response_model=list[ValidationRecordResponse],
    status_code=200,
)
async def get_recent(
    facade: FromDishka[ValidationFacadeService],
    limit: int | None = Query(default=None, ge=1),
    days: int | None = Query(default=None, ge=1, le=3650),
) -> list[ValidationRecordResponse]:
    return await facade.list_recent(limit=limit, days=days)


@router.get(
    "/config",
    response_model=WidgetConfigResponse,
    status_code=200,
    responses={403: {"model": ErrorResponse}},
)
async def get_widget_config(
    facade: FromDishka[ValidationFacadeService],
    origin: str | None = Header(default=None),
    referer: str | None = Header(default=None),
    host: str | None = Header(default=None),
) -> WidgetConfigResponse:
    return facade.get_widget_config(origin=origin, referer=referer, host=host)


@router.get(
    "/settings",
    response_model=list[ValidationSettingResponse],
    status_code=200,
)
async def list_settings(
    facade: FromDishka[ValidationFacadeService],
) -> list[ValidationSettingResponse]:
    return await facade.list_settings()


@router.get(
    "/settings/{key}",
    response_model=ValidationSettingResponse,
    status_code=200,
    responses={404: {"model": ErrorResponse}},
)
async def get_setting(
    key: SettingKey,
    facade: FromDishka[ValidationFacadeService],
) -> ValidationSettingResponse:
    return await facade.get_setting(key)


@router.put(
    "/settings/{key}",
    response_model=ValidationSettingResponse,
    status_code=200,
)
async def put_setting(
    key: SettingKey,
    payload: ValidationSettingUpsertRequest,
    facade: FromDishka[ValidationFacadeService],
) -> ValidationSettingResponse:
    return await facade.upsert_setting(
        key,
        payload.setting_value,
        payload.description,
    )


@router.post(
    "/geolocations/purge",
    response_model=GeolocationPurgeResponse,
    status_code=200,
)
async def purge_geolocations(
    facade: FromDishka[ValidationFacadeService],
) -> GeolocationPurgeResponse:
    deleted = await facade.purge_geolocations()
    return GeolocationPurgeResponse(deleted=deleted)
