"""
CLI command tests (flask system / users / inventory groups).
"""

from palletrack.extensions import db
from palletrack.models import ProductVariant, StorageLocation, User


class TestSeed:

    def test_seed_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["system", "seed"])
        assert first.exit_code == 0, first.output
        assert "13 locations created" in first.output
        assert "20 product variants created" in first.output

        second = runner.invoke(args=["system", "seed"])
        assert "0 locations created" in second.output
        assert "0 product variants created" in second.output

        assert db.session.query(StorageLocation).count() == 13
        assert db.session.query(ProductVariant).count() == 20


class TestUserCommands:

    def test_create_and_list(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["users", "create", "--name", "Anna", "--pin", "4321", "--admin"])
        assert result.exit_code == 0, result.output

        user = db.session.query(User).filter_by(name="Anna").one()
        assert user.is_admin

        listing = runner.invoke(args=["users", "list"])
        assert "Anna" in listing.output

    def test_create_rejects_bad_pin(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["users", "create", "--name", "Anna", "--pin", "12"])
        assert result.exit_code != 0
        assert "PIN must be exactly 4 digits" in result.output


class TestRollupCommand:

    def test_rollup(self, app, warehouse):
        result = app.test_cli_runner().invoke(args=["inventory", "rollup", str(warehouse["root"].id)])
        assert result.exit_code == 0, result.output
        assert "capacity:    150" in result.output

    def test_unknown_location(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["inventory", "rollup", "999"])
        assert result.exit_code != 0
