"""Per-app wiring of the lending core. Components live in app.extensions["lending"]."""
from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from library_app.extensions import db
from library_app.repositories.book_repo import CatalogGateway
from library_app.repositories.copy_repo import CopyLedger
from library_app.repositories.member_repo import MemberGateway
from library_app.repositories.transaction_repo import TransactionStore
from library_app.services.eligibility_service import EligibilityEngine
from library_app.services.lending_service import LendingService
from library_app.services.overdue_service import OverdueService
from library_app.services.policy import GracePeriodPolicy, LoanPolicy
from library_app.services.risk_service import RiskScorer
from library_app.utils.clock import utcnow
from library_app.utils.locks import KeyedLocks


@dataclass
class LendingComponents:
    ledger: CopyLedger
    store: TransactionStore
    catalog: CatalogGateway
    members: MemberGateway
    eligibility: EligibilityEngine
    lending: LendingService
    risk: RiskScorer
    overdue: OverdueService
    loan_policy: LoanPolicy
    grace_policy: GracePeriodPolicy


def build_components(config, session=None, clock=utcnow) -> LendingComponents:
    session = session or db.session

    loan_policy = LoanPolicy.from_config(config)
    grace_policy = GracePeriodPolicy.from_config(config)

    ledger = CopyLedger(session)
    store = TransactionStore(session)
    catalog = CatalogGateway(session)
    members = MemberGateway(session)
    eligibility = EligibilityEngine(ledger, store, catalog, loan_policy)

    lending = LendingService(
        session=session,
        ledger=ledger,
        store=store,
        eligibility=eligibility,
        members=members,
        catalog=catalog,
        loan_policy=loan_policy,
        grace_policy=grace_policy,
        locks=KeyedLocks(timeout=config.get("LOCK_TIMEOUT_SECONDS")),
        clock=clock,
    )

    return LendingComponents(
        ledger=ledger,
        store=store,
        catalog=catalog,
        members=members,
        eligibility=eligibility,
        lending=lending,
        risk=RiskScorer(store, members, grace_policy, clock=clock),
        overdue=OverdueService(store, members, grace_policy, clock=clock),
        loan_policy=loan_policy,
        grace_policy=grace_policy,
    )


def init_lending(app, clock=utcnow) -> LendingComponents:
    components = build_components(app.config, clock=clock)
    app.extensions["lending"] = components
    return components


def lending_components() -> LendingComponents:
    return current_app.extensions["lending"]
