from agrimart.cli import seed_demo
from agrimart.model import CoinConfiguration, CouponCode, Product, User


class TestSeedDemo:
    def test_seeds_once(self, app):
        runner = app.test_cli_runner()

        result = runner.invoke(seed_demo)
        assert result.exit_code == 0
        assert "Seeded" in result.output
        assert Product.query.count() == 2
        assert CoinConfiguration.query.count() == 2
        assert CouponCode.query.filter_by(code="SAVE10").count() == 1
        assert User.query.filter_by(role="admin").count() == 1

        result = runner.invoke(seed_demo)
        assert "already has data" in result.output
        assert Product.query.count() == 2
