# Overview: Pytest coverage for the Flask CLI command groups.

from storefront.models import Organization, User
from storefront.services import get_services


class TestCli:
    def test_system_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=['system', 'init', '--org', 'Acme'])
        second = runner.invoke(args=['system', 'init', '--org', 'Acme'])

        assert first.exit_code == 0, first.output
        assert second.exit_code == 0, second.output
        assert "already exists" in second.output
        assert db_session.query(Organization).filter_by(title='Acme').count() == 1
        assert db_session.query(User).count() == 2

        org = db_session.query(Organization).filter_by(title='Acme').one()
        admin = db_session.query(User).filter_by(email='admin@storefront.local').one()
        assert org.default_admin_id == admin.id

    def test_create_user_requires_org(self, app, db_session):
        result = app.test_cli_runner().invoke(args=['users', 'create', '--email', 'x@y.test', '--role', 'User'])
        assert result.exit_code != 0
        assert "org_id is required" in result.output

    def test_issue_token_resolves(self, app, org_a, shopper_a):
        result = app.test_cli_runner().invoke(args=['tokens', 'issue', '--email', 'shopper@acme.test'])
        assert result.exit_code == 0, result.output

        caller = get_services(app).identity.resolve(result.output.strip())
        assert caller == shopper_a

    def test_caps_list(self, app):
        result = app.test_cli_runner().invoke(args=['caps', 'list'])
        assert "PLACE_ORDER" in result.output
