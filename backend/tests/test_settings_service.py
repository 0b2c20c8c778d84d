import unittest
from decimal import Decimal

from inventario import create_app
from inventario.extensions import db
from inventario.models import Organization, Setting
from inventario.services import settings_service
from inventario.validation import ValidationError


class ExchangeRateSettingsTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "DEFAULT_EXCHANGE_RATE": "45.10",
        })
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(Setting).delete()
        db.session.query(Organization).delete()
        db.session.commit()

        self.org = Organization(name="Test Org", is_active=True)
        self.other_org = Organization(name="Other Org", is_active=True)
        db.session.add_all([self.org, self.other_org])
        db.session.commit()

    def test_default_rate_when_unset(self):
        self.assertEqual(settings_service.get_exchange_rate(self.org.id), Decimal("45.10"))

    def test_set_and_read_rate(self):
        rate = settings_service.set_exchange_rate(self.org.id, "36.255")
        self.assertEqual(rate, Decimal("36.26"))
        self.assertEqual(settings_service.get_exchange_rate(self.org.id), Decimal("36.26"))

    def test_update_keeps_single_row(self):
        settings_service.set_exchange_rate(self.org.id, 40)
        settings_service.set_exchange_rate(self.org.id, 41.5)

        self.assertEqual(db.session.query(Setting).filter_by(organization_id=self.org.id).count(), 1)
        self.assertEqual(settings_service.get_exchange_rate(self.org.id), Decimal("41.50"))

    def test_rate_is_per_organization(self):
        settings_service.set_exchange_rate(self.org.id, "60")
        self.assertEqual(settings_service.get_exchange_rate(self.other_org.id), Decimal("45.10"))

    def test_non_positive_rate_rejected(self):
        for value in ("0", "-1", "abc", None):
            with self.assertRaises(ValidationError):
                settings_service.set_exchange_rate(self.org.id, value)
        self.assertIsNone(settings_service.get_setting(self.org.id, settings_service.EXCHANGE_RATE_KEY))

    def test_corrupt_stored_rate_falls_back_to_default(self):
        db.session.add(Setting(organization_id=self.org.id, key=settings_service.EXCHANGE_RATE_KEY, value="n/a"))
        db.session.commit()

        self.assertEqual(settings_service.get_exchange_rate(self.org.id), Decimal("45.10"))


if __name__ == "__main__":
    unittest.main()
