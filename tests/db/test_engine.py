"""
Tests for engine lifecycle and the transactional scope.

Uses a file-backed SQLite database so committed rows are visible to a
second session.
"""

import pytest

from onboarding_kernel.db import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from onboarding_kernel.domain.party import AccountStatus, PartyKind
from onboarding_kernel.services import PartyService
from onboarding_services import ArchiveWorkflow


@pytest.fixture
def file_engine(tmp_path):
    engine = init_engine_from_url(f"sqlite:///{tmp_path / 'onboarding.db'}")
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


class TestEngineLifecycle:
    def test_uninitialized_engine_raises(self):
        reset_engine()

        with pytest.raises(RuntimeError):
            get_engine()
        with pytest.raises(RuntimeError):
            get_session()

    def test_init_returns_current_engine(self, file_engine):
        assert get_engine() is file_engine
        assert file_engine.dialect.name == "sqlite"


class TestSessionScope:
    def test_commits_on_success(self, file_engine, actor_id):
        with session_scope() as session:
            party_id = PartyService(session).create_party(PartyKind.CLIENT, actor_id).id

        with session_scope() as session:
            assert PartyService(session).get(party_id).account_status == AccountStatus.PENDING

    def test_rolls_back_on_error(self, file_engine, actor_id, head_id):
        with session_scope() as session:
            party_id = PartyService(session).create_party(PartyKind.CLIENT, actor_id).id

        with pytest.raises(RuntimeError):
            with session_scope() as session:
                ArchiveWorkflow.from_session(session).request_archive(
                    party_id, requester_id=head_id, requester_is_top_approver=True,
                )
                raise RuntimeError("caller failed after the write")

        with session_scope() as session:
            assert PartyService(session).get(party_id).account_status == AccountStatus.PENDING
