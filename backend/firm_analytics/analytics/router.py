from typing import Annotated

from fastapi import APIRouter, Depends

from firm_analytics.analytics.periods import resolve_period
from firm_analytics.analytics.schemas import (
    AnalyticsReport,
    ClientActivityRequest,
    ClientRollup,
    EngineConfig,
    PeriodRequest,
    PersonDetail,
    ReportRequest,
    ResolvedPeriod,
)
from firm_analytics.analytics.service import build_client_activity, build_person_detail, build_report
from firm_analytics.dependencies import get_engine_config, resolve_now

router = APIRouter()


@router.post("/report", response_model=AnalyticsReport)
async def analytics_report(
    data: ReportRequest,
    config: Annotated[EngineConfig, Depends(get_engine_config)],
):
    return build_report(
        data.entries,
        data.targets,
        data.period,
        resolve_now(data.now, config),
        person_names=data.person_names,
        people=data.people,
        person_filter=data.person_filter,
        rates=data.rates,
        config=config,
    )


@router.post("/people/{person_name}", response_model=PersonDetail)
async def person_detail(
    person_name: str,
    data: ReportRequest,
    config: Annotated[EngineConfig, Depends(get_engine_config)],
):
    return build_person_detail(
        person_name,
        data.entries,
        data.targets,
        data.period,
        resolve_now(data.now, config),
        person_names=data.person_names,
        rates=data.rates,
        config=config,
    )


@router.post("/client-activity", response_model=list[ClientRollup])
async def client_activity(
    data: ClientActivityRequest,
    config: Annotated[EngineConfig, Depends(get_engine_config)],
):
    return build_client_activity(
        data.entries,
        data.period,
        resolve_now(data.now, config),
        start=data.start,
        end=data.end,
        person_names=data.person_names,
        config=config,
    )


@router.post("/period", response_model=ResolvedPeriod)
async def describe_period(
    data: PeriodRequest,
    config: Annotated[EngineConfig, Depends(get_engine_config)],
):
    return resolve_period(data.period, resolve_now(data.now, config), config.tz)
