"""이 파일은 .py Issue 저장소 모듈로 저장소 인터페이스와 SQLAlchemy 구현을 제공합니다."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import IssueStoreError
from app.core.types import Category, IssueStatus, Severity
from app.db import models

logger = logging.getLogger(__name__)


@dataclass
class IssueFilter:
    run_id: Optional[str] = None
    status: Optional[Union[IssueStatus, Sequence[IssueStatus]]] = None
    severity: Optional[Union[Severity, Sequence[Severity]]] = None
    domain: Optional[str] = None
    category: Optional[Category] = None
    limit: Optional[int] = None


class IssueStore(ABC):
    # fingerprint당 한 행만 존재한다. upsert는 같은 fingerprint에 대해 멱등이다.
    @abstractmethod
    def upsert_issue(self, fingerprint: str, fields: Dict[str, Any]) -> models.Issue:
        raise NotImplementedError

    @abstractmethod
    def get_issue(self, fingerprint: str) -> Optional[models.Issue]:
        raise NotImplementedError

    @abstractmethod
    def get_issue_by_id(self, issue_id: int) -> Optional[models.Issue]:
        raise NotImplementedError

    @abstractmethod
    def list_issues(self, issue_filter: Optional[IssueFilter] = None) -> List[models.Issue]:
        raise NotImplementedError

    @abstractmethod
    def update_status(
        self,
        issue_id: int,
        status: IssueStatus,
        timestamp: Optional[datetime] = None,
    ) -> models.Issue:
        raise NotImplementedError

    @abstractmethod
    def active_suppression(self, fingerprint: str, now: datetime) -> Optional[models.Suppression]:
        raise NotImplementedError

    @abstractmethod
    def known_fingerprints(self, fingerprints: Iterable[str]) -> Set[str]:
        raise NotImplementedError


class SqlAlchemyIssueStore(IssueStore):
    def __init__(self, session: Session) -> None:
        self.session = session

    def upsert_issue(self, fingerprint: str, fields: Dict[str, Any]) -> models.Issue:
        try:
            issue = self._query_issue(fingerprint)
            if issue is None:
                issue = models.Issue(fingerprint=fingerprint)
                self.session.add(issue)
            for key, value in fields.items():
                setattr(issue, key, value)
            self.session.commit()
            return issue
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise IssueStoreError(f"Failed to upsert issue {fingerprint}: {exc}") from exc

    def get_issue(self, fingerprint: str) -> Optional[models.Issue]:
        try:
            return self._query_issue(fingerprint)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise IssueStoreError(f"Failed to load issue {fingerprint}: {exc}") from exc

    def get_issue_by_id(self, issue_id: int) -> Optional[models.Issue]:
        try:
            return self.session.get(models.Issue, issue_id)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise IssueStoreError(f"Failed to load issue {issue_id}: {exc}") from exc

    def list_issues(self, issue_filter: Optional[IssueFilter] = None) -> List[models.Issue]:
        issue_filter = issue_filter or IssueFilter()
        query = self.session.query(models.Issue)
        if issue_filter.run_id:
            query = query.filter(models.Issue.last_seen_run_id == issue_filter.run_id)
        if issue_filter.status:
            query = query.filter(models.Issue.status.in_(_values(issue_filter.status)))
        if issue_filter.severity:
            query = query.filter(models.Issue.severity.in_(_values(issue_filter.severity)))
        if issue_filter.domain:
            query = query.filter(models.Issue.domain == issue_filter.domain.lower())
        if issue_filter.category:
            query = query.filter(models.Issue.category == Category(issue_filter.category).value)
        query = query.order_by(models.Issue.id.asc())
        if issue_filter.limit:
            query = query.limit(issue_filter.limit)
        try:
            return query.all()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise IssueStoreError(f"Failed to list issues: {exc}") from exc

    def update_status(
        self,
        issue_id: int,
        status: IssueStatus,
        timestamp: Optional[datetime] = None,
    ) -> models.Issue:
        issue = self.get_issue_by_id(issue_id)
        if issue is None:
            raise KeyError("Issue not found")
        status = IssueStatus(status)
        moment = timestamp or datetime.utcnow()
        issue.status = status.value
        issue.updated_at = moment
        if status == IssueStatus.VERIFIED:
            issue.verified_at = moment
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise IssueStoreError(f"Failed to update issue {issue_id}: {exc}") from exc
        return issue

    def active_suppression(self, fingerprint: str, now: datetime) -> Optional[models.Suppression]:
        try:
            suppression = (
                self.session.query(models.Suppression)
                .filter(models.Suppression.fingerprint == fingerprint)
                .one_or_none()
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise IssueStoreError(f"Failed to load suppression {fingerprint}: {exc}") from exc
        if suppression is None or not suppression.is_effective(now):
            return None
        return suppression

    def known_fingerprints(self, fingerprints: Iterable[str]) -> Set[str]:
        candidates = list(set(fingerprints))
        if not candidates:
            return set()
        try:
            rows = (
                self.session.query(models.Issue.fingerprint)
                .filter(models.Issue.fingerprint.in_(candidates))
                .all()
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise IssueStoreError(f"Failed to look up fingerprints: {exc}") from exc
        return {row[0] for row in rows}

    def add_suppression(
        self,
        fingerprint: str,
        reason: str,
        created_by: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> models.Suppression:
        # fingerprint당 억제 규칙도 하나다. 기존 규칙이 있으면 갱신해 다시 활성화한다.
        suppression = (
            self.session.query(models.Suppression)
            .filter(models.Suppression.fingerprint == fingerprint)
            .one_or_none()
        )
        if suppression is None:
            suppression = models.Suppression(fingerprint=fingerprint)
            self.session.add(suppression)
        suppression.reason = reason
        suppression.created_by = created_by
        suppression.expires_at = expires_at
        suppression.is_active = True

        # 이미 추적 중인 미해결 Issue는 즉시 suppressed로 바꾼다.
        issue = self._query_issue(fingerprint)
        if issue is not None and issue.status in (IssueStatus.OPEN.value, IssueStatus.FIXING.value):
            issue.status = IssueStatus.SUPPRESSED.value
            issue.updated_at = datetime.utcnow()
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise IssueStoreError(f"Failed to save suppression {fingerprint}: {exc}") from exc
        return suppression

    def _query_issue(self, fingerprint: str) -> Optional[models.Issue]:
        return (
            self.session.query(models.Issue)
            .filter(models.Issue.fingerprint == fingerprint)
            .one_or_none()
        )


def _values(value) -> List[str]:
    items = [value] if isinstance(value, (str, IssueStatus, Severity)) else list(value)
    return [item.value if hasattr(item, "value") else str(item) for item in items]
