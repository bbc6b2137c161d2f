# Overview: Pytest coverage for the flask CLI command groups.

from shopguard.models import Shop, User
from shopguard.services import audit_service, session_service


class TestCliCommands:

    def test_create_user_and_shop(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=[
            "users", "create", "--username", "alice", "--email", "Alice@Example.com", "--multi-shop-admin",
        ])
        assert result.exit_code == 0, result.output
        alice = db_session.query(User).filter_by(username="alice").one()
        assert alice.is_multi_shop_admin is True
        assert alice.email == "alice@example.com"

        result = runner.invoke(args=["shops", "create", "--name", "Corner Repairs", "--owner-id", str(alice.id)])
        assert result.exit_code == 0, result.output
        assert db_session.query(Shop).filter_by(owner_id=alice.id).count() == 1

    def test_duplicate_user_fails(self, app, db_session, owner):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["users", "create", "--username", owner.username, "--email", "x@example.com"])

        assert result.exit_code != 0
        assert "already exists" in result.output

    def test_issue_session_prints_valid_token(self, app, db_session, admin):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["sessions", "issue", "--user-id", str(admin.id)])

        assert result.exit_code == 0, result.output
        token = result.output.strip().splitlines()[-1]
        assert session_service.validate_session(token).user.id == admin.id

    def test_audit_list(self, app, db_session):
        audit_service.append(77, "permission_request", "success", target_shop_id=5)
        runner = app.test_cli_runner()

        result = runner.invoke(args=["audit", "list", "--shop-id", "5"])
        assert result.exit_code == 0, result.output
        assert "permission_request" in result.output

        result = runner.invoke(args=["audit", "list"])
        assert result.exit_code != 0

    def test_ratelimit_sweep(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["ratelimit", "sweep"])

        assert result.exit_code == 0
        assert "Removed 0" in result.output
