"""이 파일은 .py FastAPI 앱 모듈로 REST 엔드포인트를 제공합니다."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from sqlalchemy.orm import Session

from app.adapters.base import FetcherFactory
from app.adapters.http import requests_fetcher_factory
from app.core.config import API_PREFIX, PLUGINS_DIR
from app.core.domains import index_by_hostname, load_domains, select_domains
from app.core.errors import ConfigError
from app.core.plugin_loader import CheckRegistry, PluginLoader
from app.core.severity import SeverityTable
from app.core.types import Category, IssueStatus, Severity
from app.db import models
from app.db.session import get_session, init_db
from app.services.fix_packet import save_fix_packet
from app.services.issue_assembler import IssueAssembler
from app.services.issue_store import IssueFilter, SqlAlchemyIssueStore
from app.services.orchestrator import AuditRunner
from app.services.verification import VerificationEngine

from .schemas import (
    CheckResponse,
    DomainResultResponse,
    FixPacketCreate,
    FixPacketResponse,
    IssueResponse,
    IssueStatusUpdate,
    RunCreate,
    RunResponse,
    SuppressionCreate,
    SuppressionResponse,
    VerificationCreate,
    VerificationResponse,
)


def get_fetcher_factory() -> FetcherFactory:
    # 테스트에서는 dependency_overrides로 가짜 수집기를 주입한다.
    return requests_fetcher_factory


def get_plugin_loader() -> PluginLoader:
    return PluginLoader(PLUGINS_DIR)


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    # 기동 시 테이블을 준비한다.
    init_db()
    yield


app = FastAPI(title="site-auditops", lifespan=lifespan)


@app.post(f"{API_PREFIX}/runs", response_model=RunResponse, status_code=201)
def create_run(
    payload: RunCreate,
    session: Session = Depends(get_session),
    fetcher_factory: FetcherFactory = Depends(get_fetcher_factory),
    loader: PluginLoader = Depends(get_plugin_loader),
) -> RunResponse:
    try:
        domains = select_domains(load_domains(), payload.domains or None, payload.tier)
        registry = CheckRegistry.from_loader(loader, run_config=payload.check_config)
    except ConfigError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if not domains:
        raise HTTPException(status_code=400, detail="No enabled domains selected")

    runner = AuditRunner(session, registry, fetcher_factory=fetcher_factory)
    summary = runner.run(
        domains,
        categories=payload.categories or None,
        max_runtime_minutes=payload.max_runtime_minutes,
        triggered_by=payload.triggered_by,
    )
    return _run_response(session, summary.run_id)


@app.get(f"{API_PREFIX}/runs/{{run_id}}", response_model=RunResponse)
def get_run(
    run_id: str,
    session: Session = Depends(get_session),
) -> RunResponse:
    return _run_response(session, run_id)


@app.get(f"{API_PREFIX}/issues", response_model=List[IssueResponse])
def list_issues(
    run_id: Optional[str] = None,
    status: Optional[IssueStatus] = None,
    severity: Optional[Severity] = None,
    domain: Optional[str] = None,
    category: Optional[Category] = None,
    limit: Optional[int] = None,
    session: Session = Depends(get_session),
) -> List[IssueResponse]:
    store = SqlAlchemyIssueStore(session)
    issues = store.list_issues(
        IssueFilter(
            run_id=run_id,
            status=status,
            severity=severity,
            domain=domain,
            category=category,
            limit=limit,
        )
    )
    return [IssueResponse.model_validate(issue) for issue in issues]


@app.patch(f"{API_PREFIX}/issues/{{issue_id}}/status", response_model=IssueResponse)
def update_issue_status(
    issue_id: int,
    payload: IssueStatusUpdate,
    session: Session = Depends(get_session),
) -> IssueResponse:
    store = SqlAlchemyIssueStore(session)
    try:
        issue = store.update_status(issue_id, payload.status)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Issue not found") from exc
    return IssueResponse.model_validate(issue)


@app.post(f"{API_PREFIX}/suppressions", response_model=SuppressionResponse, status_code=201)
def create_suppression(
    payload: SuppressionCreate,
    session: Session = Depends(get_session),
) -> SuppressionResponse:
    store = SqlAlchemyIssueStore(session)
    suppression = store.add_suppression(
        payload.fingerprint,
        reason=payload.reason,
        created_by=payload.created_by,
        expires_at=payload.expires_at,
    )
    return SuppressionResponse.model_validate(suppression)


@app.post(f"{API_PREFIX}/runs/{{run_id}}/fix-packet", response_model=FixPacketResponse, status_code=201)
def create_fix_packet(
    run_id: str,
    payload: FixPacketCreate,
    session: Session = Depends(get_session),
) -> FixPacketResponse:
    try:
        record = save_fix_packet(session, run_id, min_severity=payload.min_severity)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Run not found") from exc
    return FixPacketResponse.model_validate(record)


@app.post(f"{API_PREFIX}/verifications", response_model=List[VerificationResponse])
def create_verification(
    payload: VerificationCreate,
    session: Session = Depends(get_session),
    fetcher_factory: FetcherFactory = Depends(get_fetcher_factory),
    loader: PluginLoader = Depends(get_plugin_loader),
) -> List[VerificationResponse]:
    store = SqlAlchemyIssueStore(session)
    issues = None
    if payload.issue_ids:
        issues = []
        for issue_id in payload.issue_ids:
            issue = store.get_issue_by_id(issue_id)
            if issue is None:
                raise HTTPException(status_code=404, detail=f"Issue not found: {issue_id}")
            issues.append(issue)
    try:
        registry = CheckRegistry.from_loader(loader)
        domains = index_by_hostname(load_domains())
    except ConfigError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    engine = VerificationEngine(
        store,
        IssueAssembler(store, SeverityTable.from_default()),
        registry,
        domains=domains,
        fetcher_factory=fetcher_factory,
    )
    return [
        VerificationResponse(
            issue_id=result.issue_id,
            fingerprint=result.fingerprint,
            outcome=result.outcome,
            status=result.status,
            new_issue_fingerprints=[item.fingerprint for item in result.new_issues],
        )
        for result in engine.verify(issues)
    ]


@app.get(f"{API_PREFIX}/checks", response_model=List[CheckResponse])
def list_checks(loader: PluginLoader = Depends(get_plugin_loader)) -> List[CheckResponse]:
    metas = sorted(loader.discover(), key=lambda meta: (meta.order, meta.plugin_id))
    return [
        CheckResponse(
            plugin_id=meta.plugin_id,
            name=meta.name,
            version=meta.version,
            category=meta.category,
            order=meta.order,
            auto_fixable=meta.auto_fixable,
            route_scoped=meta.route_scoped,
            description=meta.description,
        )
        for meta in metas
    ]


def _run_response(session: Session, run_id: str) -> RunResponse:
    run = session.query(models.AuditRun).filter(models.AuditRun.run_id == run_id).one_or_none()
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found")
    response = RunResponse.model_validate(run)
    response.domain_results = [
        DomainResultResponse.model_validate(item)
        for item in sorted(run.domain_results, key=lambda item: item.domain)
    ]
    return response
