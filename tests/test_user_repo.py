import logging
from dataclasses import asdict, fields

import psycopg2
import pytest

from db.connection import Database
from errors import DuplicateEmailError, ValidationError
from models.user import PublicUser, User, UserUpdate
from repositories.user_repo import UserRepository, normalize_email

from conftest import FakePool


@pytest.fixture()
def repo(migrated_db: Database) -> UserRepository:
    return UserRepository(migrated_db)


@pytest.fixture()
def user(repo: UserRepository) -> User:
    return repo.create("a@x.com", "Passw0rd", "A", "B")


def test_create_returns_populated_user(user: User) -> None:
    assert user.id == 1
    assert user.email == "a@x.com"
    assert user.first_name == "A"
    assert user.last_name == "B"
    assert user.created_at is not None
    assert user.updated_at is not None


def test_password_is_stored_hashed(repo: UserRepository, user: User, fake_pool: FakePool) -> None:
    found = repo.find_by_email("a@x.com")

    assert found is not None
    assert found.password != "Passw0rd"
    assert fake_pool.store.users[user.id]["password"] != "Passw0rd"
    assert "Passw0rd" not in repr(found)
    assert found.password not in repr(found)


def test_duplicate_email_is_rejected(repo: UserRepository, user: User, fake_pool: FakePool) -> None:
    original = dict(fake_pool.store.users[user.id])

    with pytest.raises(DuplicateEmailError) as excinfo:
        repo.create("a@x.com", "Other1234", "C", "D")

    assert excinfo.value.email == "a@x.com"
    assert not isinstance(excinfo.value, psycopg2.Error)
    assert fake_pool.store.users == {user.id: original}


def test_emails_are_case_insensitive(repo: UserRepository, user: User) -> None:
    assert repo.find_by_email("  A@X.COM ") == user
    with pytest.raises(DuplicateEmailError):
        repo.create("A@x.com", "Passw0rd", "C", "D")


@pytest.mark.parametrize("email, password, first, last", [
    ("", "Passw0rd", "A", "B"),
    ("a@x.com", "", "A", "B"),
    ("a@x.com", "Passw0rd", "  ", "B"),
    ("a@x.com", "Passw0rd", "A", None),
])
def test_create_enforces_non_empty_fields(repo: UserRepository, email, password, first, last) -> None:
    with pytest.raises(ValidationError):
        repo.create(email, password, first, last)


def test_find_misses_return_none(repo: UserRepository) -> None:
    assert repo.find_by_email("nobody@x.com") is None
    assert repo.find_by_id(42) is None


def test_find_by_id(repo: UserRepository, user: User) -> None:
    assert repo.find_by_id(user.id) == user


def test_update_profile_stamps_updated_at(repo: UserRepository, user: User) -> None:
    updated = repo.update(user.id, UserUpdate(first_name="Alice"))

    assert updated is not None
    assert updated.first_name == "Alice"
    assert updated.last_name == "B"
    assert updated.email == user.email
    assert updated.password == user.password
    assert updated.created_at == user.created_at
    assert updated.updated_at > user.updated_at


def test_empty_update_still_touches(repo: UserRepository, user: User) -> None:
    updated = repo.update(user.id, UserUpdate())

    assert updated is not None
    assert updated.updated_at > user.updated_at
    assert updated.first_name == user.first_name


def test_update_missing_user_returns_none(repo: UserRepository) -> None:
    assert repo.update(99, UserUpdate(first_name="Ghost")) is None
    assert repo.change_password(99, "NewPass1") is None


def test_update_rejects_blank_name(repo: UserRepository, user: User) -> None:
    with pytest.raises(ValidationError):
        repo.update_profile(user.id, last_name="")


def test_change_password(repo: UserRepository, user: User) -> None:
    updated = repo.update(user.id, UserUpdate(password="NewPass1"))

    assert updated is not None
    assert updated.password != "NewPass1"
    assert updated.password != user.password
    assert repo.verify_credentials("a@x.com", "NewPass1") == updated
    assert repo.verify_credentials("a@x.com", "Passw0rd") is None


def test_update_profile_and_change_password_entry_points(repo: UserRepository, user: User) -> None:
    renamed = repo.update_profile(user.id, first_name="Ann", last_name="Bee")
    assert (renamed.first_name, renamed.last_name) == ("Ann", "Bee")
    assert renamed.password == user.password

    repo.change_password(user.id, "Another9")
    assert repo.verify_credentials("a@x.com", "Another9") is not None
    with pytest.raises(ValidationError):
        repo.change_password(user.id, "")


def test_delete_twice(repo: UserRepository, user: User) -> None:
    assert repo.delete(user.id) == 1
    assert repo.delete(user.id) == 0
    assert repo.find_by_id(user.id) is None


def test_verify_credentials(repo: UserRepository, user: User) -> None:
    assert repo.verify_credentials("a@x.com", "Passw0rd") == user
    assert repo.verify_credentials("a@x.com", "wrong") is None
    assert repo.verify_credentials("nobody@x.com", "Passw0rd") is None


def test_sanitize_strips_password(user: User) -> None:
    public = UserRepository.sanitize(user)

    assert isinstance(public, PublicUser)
    assert "password" not in asdict(public)
    assert "password" not in {f.name for f in fields(public)}
    assert "password" not in public.to_dict()
    assert public.to_dict()["email"] == "a@x.com"
    assert isinstance(public.to_dict()["created_at"], str)


def test_storage_errors_propagate(db: Database) -> None:
    repo = UserRepository(db)  # schema never created
    with pytest.raises(psycopg2.errors.UndefinedTable):
        repo.create("a@x.com", "Passw0rd", "A", "B")


def test_normalize_email() -> None:
    assert normalize_email("  Mixed@Case.COM ") == "mixed@case.com"


def test_change_password_to_long_value(repo: UserRepository, user: User) -> None:
    long_password = "Nn2" + "z" * 77

    assert repo.change_password(user.id, long_password) is not None
    assert repo.verify_credentials("a@x.com", long_password) is not None
    assert repo.verify_credentials("a@x.com", "Passw0rd") is None


def test_update_log_names_changed_columns(
    repo: UserRepository, user: User, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.INFO, logger="repositories.user_repo"):
        repo.update(user.id, UserUpdate(last_name="Bee", password="NewPass1"))
        repo.update(user.id, UserUpdate())

    messages = [r.getMessage() for r in caplog.records]
    assert f"Updated user #{user.id} (last_name, password)" in messages
    assert f"Updated user #{user.id} (touch)" in messages
    assert not any("NewPass1" in m for m in messages)


def test_user_update_is_empty() -> None:
    assert UserUpdate().is_empty()
    assert not UserUpdate(password="x").is_empty()
