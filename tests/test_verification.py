"""이 파일은 .py 테스트 모듈로 fixing Issue 재점검 결과(해결, 잔존, 판단 보류, 신규 Issue)를 검증합니다."""

from datetime import datetime
from typing import List

from app.core.errors import FetchError
from app.core.plugin_base import BaseCheck
from app.core.plugin_loader import CheckRegistry
from app.core.severity import SeverityTable
from app.core.types import Category, DomainConfig, FetchedPage, Finding, IssueStatus
from app.services.issue_assembler import IssueAssembler
from app.services.issue_store import SqlAlchemyIssueStore
from app.services.verification import (
    OUTCOME_INCONCLUSIVE,
    OUTCOME_STILL_PRESENT,
    OUTCOME_VERIFIED,
    VerificationEngine,
)

NOW = datetime(2026, 3, 1, 12, 0, 0)


class TitleCheck(BaseCheck):
    def __init__(self) -> None:
        super().__init__("seo_title", Category.SEO)

    def inspect(self, page: FetchedPage, domain: DomainConfig) -> List[Finding]:
        findings = []
        if "<title>" not in page.html:
            findings.append(self.finding("seo-title-missing", "title 누락", "missing title", page))
        if "<h1>" not in page.html:
            findings.append(self.finding("seo-h1-missing", "H1 누락", "missing h1", page))
        return findings


class LinkCheck(BaseCheck):
    def __init__(self) -> None:
        super().__init__("links_counter", Category.LINKS)
        self.calls = 0

    def inspect(self, page: FetchedPage, domain: DomainConfig) -> List[Finding]:
        self.calls += 1
        return []


def _setup(db_session, site, domain):
    store = SqlAlchemyIssueStore(db_session)
    assembler = IssueAssembler(store, SeverityTable.from_default())
    registry = CheckRegistry()
    registry.register(TitleCheck())
    registry.register(LinkCheck())
    page = FetchedPage(url=site.url("/pricing"), status=200, html="<h1>Pricing</h1>")
    [created] = assembler.assemble("example.test", TitleCheck().inspect(page, domain), "run_1", NOW)
    store.update_status(created.issue_id, IssueStatus.FIXING, NOW)
    engine = VerificationEngine(
        store,
        assembler,
        registry,
        domains={"example.test": domain},
        fetcher_factory=site.factory,
    )
    return store, engine, created


def test_still_present_reopens_and_requests_escalation(db_session, site, domain) -> None:
    store, engine, created = _setup(db_session, site, domain)
    site.page("/pricing", html="<h1>Pricing</h1>")

    [result] = engine.verify(run_id="verify_1", now=NOW)

    issue = store.get_issue(created.fingerprint)
    assert result.outcome == OUTCOME_STILL_PRESENT
    assert issue.status == IssueStatus.OPEN.value
    assert issue.escalation_requested is True
    assert site.calls == [site.url("/pricing")]


def test_absent_finding_marks_verified(db_session, site, domain) -> None:
    store, engine, created = _setup(db_session, site, domain)
    site.page("/pricing", html="<title>Pricing plans</title><h1>Pricing</h1>")

    [result] = engine.verify(run_id="verify_1", now=NOW)

    issue = store.get_issue(created.fingerprint)
    assert result.outcome == OUTCOME_VERIFIED
    assert result.new_issues == []
    assert issue.status == IssueStatus.VERIFIED.value
    assert issue.verified_at == NOW


def test_unfetchable_route_is_inconclusive(db_session, site, domain) -> None:
    store, engine, created = _setup(db_session, site, domain)
    site.fail("/pricing", FetchError("connection reset"))

    [result] = engine.verify(run_id="verify_1", now=NOW)

    assert result.outcome == OUTCOME_INCONCLUSIVE
    assert result.status == IssueStatus.FIXING
    assert store.get_issue(created.fingerprint).status == IssueStatus.FIXING.value
    # 수집 실패 자체는 새 Issue로 추적된다.
    assert [item.category for item in result.new_issues] == ["LINKS"]


def test_new_defect_on_route_becomes_issue(db_session, site, domain) -> None:
    store, engine, created = _setup(db_session, site, domain)
    site.page("/pricing", html="<title>Pricing plans</title>")

    [result] = engine.verify(run_id="verify_1", now=NOW)

    assert result.outcome == OUTCOME_VERIFIED
    assert len(result.new_issues) == 1
    new_issue = store.get_issue(result.new_issues[0].fingerprint)
    assert new_issue.rule_id == "seo-h1-missing"
    assert new_issue.first_seen_run_id == "verify_1"


def test_only_issue_category_checks_run(db_session, site, domain) -> None:
    store, engine, created = _setup(db_session, site, domain)
    site.page("/pricing", html="<title>Pricing plans</title><h1>Pricing</h1>")

    engine.verify(run_id="verify_1", now=NOW)

    assert engine.registry.checks_for(Category.LINKS)[0].calls == 0


def test_explicit_issue_list_ignores_other_statuses(db_session, site, domain) -> None:
    store, engine, created = _setup(db_session, site, domain)
    store.update_status(created.issue_id, IssueStatus.OPEN, NOW)
    site.page("/pricing", html="<title>Pricing plans</title><h1>Pricing</h1>")

    assert engine.verify(run_id="verify_1", now=NOW) == []
    [result] = engine.verify([store.get_issue(created.fingerprint)], run_id="verify_2", now=NOW)
    assert result.outcome == OUTCOME_VERIFIED


class EmptyHrefCheck(BaseCheck):
    def __init__(self) -> None:
        super().__init__("links_empty_href", Category.LINKS)

    def inspect(self, page: FetchedPage, domain: DomainConfig) -> List[Finding]:
        if 'href=""' in page.html:
            return [self.finding("link-empty-href", "빈 href", "empty href", page)]
        return []


def _fixing_issue(db_session, site, domain, findings):
    store = SqlAlchemyIssueStore(db_session)
    assembler = IssueAssembler(store, SeverityTable.from_default())
    registry = CheckRegistry()
    registry.register(EmptyHrefCheck())
    [created] = assembler.assemble("example.test", findings, "run_1", NOW)
    store.update_status(created.issue_id, IssueStatus.FIXING, NOW)
    engine = VerificationEngine(
        store,
        assembler,
        registry,
        domains={"example.test": domain},
        fetcher_factory=site.factory,
    )
    return store, engine, created


def test_link_content_issue_on_failing_route_is_inconclusive(db_session, site, domain) -> None:
    page = FetchedPage(url=site.url("/blog"), status=200, html='<a href="">x</a>')
    store, engine, created = _fixing_issue(db_session, site, domain, EmptyHrefCheck().inspect(page, domain))
    site.page("/blog", status=500)

    [result] = engine.verify(run_id="verify_1", now=NOW)

    assert result.outcome == OUTCOME_INCONCLUSIVE
    assert store.get_issue(created.fingerprint).status == IssueStatus.FIXING.value


def test_http_error_issue_verified_when_route_recovers(db_session, site, domain) -> None:
    http_error = Finding(
        category=Category.LINKS,
        rule_id="page-http-error",
        title="HTTP 오류 응답 (500)",
        message="500",
        route=site.url("/blog"),
    )
    store, engine, created = _fixing_issue(db_session, site, domain, [http_error])
    site.page("/blog", html="<h1>Blog</h1>")

    [result] = engine.verify(run_id="verify_1", now=NOW)

    assert result.outcome == OUTCOME_VERIFIED
    assert store.get_issue(created.fingerprint).status == IssueStatus.VERIFIED.value


def test_redirect_issue_verified_without_page_body(db_session, site, domain) -> None:
    too_long = Finding(
        category=Category.LINKS,
        rule_id="redirect-chain-too-long",
        title="리다이렉트 체인이 너무 김",
        message="too long",
        route=site.url("/old"),
    )
    store, engine, created = _fixing_issue(db_session, site, domain, [too_long])
    site.redirect("/old", "/new")
    site.page("/new", status=404)

    [result] = engine.verify(run_id="verify_1", now=NOW)

    assert result.outcome == OUTCOME_VERIFIED
    [new_issue] = result.new_issues
    assert store.get_issue(new_issue.fingerprint).rule_id == "page-http-error"
