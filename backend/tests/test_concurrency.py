from __future__ import annotations

from uuid import UUID

import pytest
from sqlalchemy.orm.exc import StaleDataError
from sqlmodel import Session

from settleup.core.errors import ConflictError
from settleup.models.client import Client
from settleup.schemas.client import ClientUpdate
from settleup.services.client import ClientService
from settleup.services.concurrency import run_with_retry
from tests.conftest import add_client, register_and_login, unique_email  # type: ignore


def test_stale_write_is_detected_by_version(client, db_engine) -> None:
    token, _ = register_and_login(client, "owner")
    created = add_client(client, token, unique_email("raced"))
    client_id = UUID(created["id"])

    with Session(db_engine) as first, Session(db_engine) as second:
        mine = first.get(Client, client_id)
        theirs = second.get(Client, client_id)

        mine.notes = "first writer"
        first.add(mine)
        first.commit()

        theirs.notes = "second writer"
        second.add(theirs)
        with pytest.raises(StaleDataError):
            second.commit()


def test_retry_reapplies_mutation_after_stale_write(db_session) -> None:
    attempts = []

    def mutation() -> str:
        attempts.append(1)
        if len(attempts) < 3:
            raise StaleDataError("stale")
        return "done"

    assert run_with_retry(db_session, mutation, attempts=3) == "done"
    assert len(attempts) == 3


def test_retry_gives_up_with_conflict(db_session) -> None:
    def mutation() -> None:
        raise StaleDataError("stale")

    with pytest.raises(ConflictError):
        run_with_retry(db_session, mutation, attempts=2)


def test_update_survives_a_concurrent_writer(client, db_engine, monkeypatch) -> None:
    token, owner = register_and_login(client, "owner")
    created = add_client(client, token, unique_email("contended"))
    client_id = UUID(created["id"])

    with Session(db_engine) as session:
        service = ClientService(session)
        service.get_client(UUID(owner["id"]), client_id)

        original_get = service.get_client
        interfered = []

        def get_then_interfere(owner_id, target_id):
            loaded = original_get(owner_id, target_id)
            if not interfered:
                interfered.append(True)
                with Session(db_engine) as other:
                    row = other.get(Client, target_id)
                    row.company_name = "Changed Elsewhere"
                    other.add(row)
                    other.commit()
            return loaded

        monkeypatch.setattr(service, "get_client", get_then_interfere)
        updated = service.update_client(UUID(owner["id"]), client_id, ClientUpdate(notes="kept"))

        assert interfered == [True]
        assert updated.notes == "kept"
        assert updated.company_name == "Changed Elsewhere"
        assert updated.version == 3
