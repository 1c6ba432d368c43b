import pytest
from authsession.repositories.user import UserRepository
from authsession.services._shared.errors import (
    ConflictError,
    InvalidCredentialsError,
    InvalidInputError,
    NotFoundError,
)
from authsession.services.identity import IdentityService, UserAuthIn, UserRegisterIn

from tests.factories.user import DEFAULT_PASSWORD, UserFactory


class TestIdentityService:
    """Validate IdentityService behaviours for the User aggregate."""

    @pytest.fixture()
    def service(self, session) -> IdentityService:
        return IdentityService()

    @pytest.fixture()
    def repo(self, session) -> UserRepository:
        return UserRepository(session=session)

    # --------------------------------------------------------------------- #
    # Registration
    # --------------------------------------------------------------------- #

    def test_register_user_creates_new_user(self, service, repo):
        result = service.register_user(UserRegisterIn(username="new_user", password="password123"))

        assert result.username == "new_user"
        stored = repo.get_by_username("new_user")
        assert stored is not None
        assert stored.id == result.id
        assert stored.password_hash != "password123"
        assert stored.verify_password("password123")

    def test_register_user_raises_conflict_when_username_exists(self, service):
        UserFactory(username="dup")

        with pytest.raises(ConflictError):
            service.register_user(UserRegisterIn(username="dup", password="otherpass"))

    @pytest.mark.parametrize(
        ("username", "password"),
        [
            ("ab", "password"),
            ("a" * 51, "password"),
            ("bad-name", "password"),
            ("has space", "password"),
            ("valid_name", "short"),
            ("valid_name", "x" * 129),
            ("valid_name", "line\nbreak"),
        ],
    )
    def test_register_user_enforces_credential_rules(self, service, repo, username, password):
        with pytest.raises(InvalidInputError):
            service.register_user(UserRegisterIn(username=username, password=password))
        assert not repo.exists_by_username(username)

    # --------------------------------------------------------------------- #
    # Authentication
    # --------------------------------------------------------------------- #

    def test_authenticate_returns_user_on_valid_credentials(self, service):
        user = UserFactory(password="validpass")

        result = service.authenticate(UserAuthIn(username=user.username, password="validpass"))

        assert result.id == user.id
        assert result.username == user.username

    @pytest.mark.parametrize(("username", "password"), [("ghost", DEFAULT_PASSWORD), (None, None)])
    def test_authenticate_rejects_unknown_user(self, service, session, username, password):
        UserFactory()
        with pytest.raises(InvalidCredentialsError):
            service.authenticate(UserAuthIn(username=username, password=password))

    def test_authenticate_rejects_wrong_password(self, service):
        user = UserFactory()
        with pytest.raises(InvalidCredentialsError):
            service.authenticate(UserAuthIn(username=user.username, password="wrong-pass"))

    # --------------------------------------------------------------------- #
    # Retrieval
    # --------------------------------------------------------------------- #

    def test_get_user(self, service):
        user = UserFactory(username="finder")
        assert service.get_user(user.id).username == "finder"

    def test_get_user_missing_raises_not_found(self, service, session):
        with pytest.raises(NotFoundError):
            service.get_user(9999)
